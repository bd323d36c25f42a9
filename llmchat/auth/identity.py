"""Identity and session lookup against an external auth service.

Authentication itself is delegated: this module only asks the service who
an access token belongs to, and forwards password sign-in and sign-up
requests. Transport failures surface as ProviderUnavailable; a rejected
token is simply "no identity".
"""

import logging
from typing import Any, Protocol

import httpx
from starlette.requests import HTTPConnection

from llmchat.auth.config import AuthConfig, get_auth_config
from llmchat.errors import ProviderUnavailable, Unauthenticated
from llmchat.models.schemas import Identity, Session

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Per-request view of who is calling."""

    async def get_current_identity(self) -> Identity | None: ...

    async def get_current_session(self) -> Session | None: ...


class AuthClient(Protocol):
    """Operations the app needs from the auth service."""

    async def get_user(self, access_token: str) -> Identity | None: ...

    async def sign_in_with_password(self, email: str, password: str) -> Session: ...

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> None: ...


class AuthServiceClient:
    """httpx client for a GoTrue-compatible auth service.

    Endpoints used:
        - GET  /auth/v1/user
        - POST /auth/v1/token?grant_type=password
        - POST /auth/v1/signup
    """

    def __init__(
        self,
        config: AuthConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_auth_config()
        self._client = http_client or httpx.AsyncClient(
            base_url=self._config.auth_url,
            timeout=self._config.timeout,
        )

    @property
    def cookie_name(self) -> str:
        return self._config.cookie_name

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._config.api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ProviderUnavailable(f"Auth service unreachable: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        for key in ("error_description", "msg", "message", "error"):
            if isinstance(body, dict) and body.get(key):
                return str(body[key])
        return f"HTTP {response.status_code}"

    async def get_user(self, access_token: str) -> Identity | None:
        """Resolve an access token to an identity.

        Returns:
            The identity, or None if the service rejects the token.

        Raises:
            ProviderUnavailable: On transport errors or 5xx responses.
        """
        response = await self._request("GET", "/auth/v1/user", headers=self._headers(access_token))

        if response.status_code in (401, 403, 404):
            return None
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"Auth service error while reading user: {self._error_message(response)}"
            )

        body = response.json()
        return Identity(id=str(body["id"]), email=body.get("email"))

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        """Exchange email and password for a session.

        Raises:
            Unauthenticated: If the service refuses the credentials.
            ProviderUnavailable: On transport errors or 5xx responses.
        """
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )

        if 400 <= response.status_code < 500:
            raise Unauthenticated(self._error_message(response))
        if response.status_code >= 500:
            raise ProviderUnavailable(f"Auth service error: {self._error_message(response)}")

        body = response.json()
        user = body.get("user") or {}
        return Session(
            access_token=body["access_token"],
            identity=Identity(id=str(user.get("id", "")), email=user.get("email")),
        )

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> None:
        """Register a new account; confirmation is handled by the service.

        Raises:
            Unauthenticated: If the service refuses the registration.
            ProviderUnavailable: On transport errors or 5xx responses.
        """
        payload: dict[str, Any] = {"email": email, "password": password}
        if full_name:
            payload["data"] = {"full_name": full_name}

        response = await self._request(
            "POST", "/auth/v1/signup", json=payload, headers=self._headers()
        )

        if 400 <= response.status_code < 500:
            raise Unauthenticated(self._error_message(response))
        if response.status_code >= 500:
            raise ProviderUnavailable(f"Auth service error: {self._error_message(response)}")

    async def aclose(self) -> None:
        await self._client.aclose()


class TokenIdentityProvider:
    """IdentityProvider bound to one access token for one request.

    The auth service is asked at most once; later calls reuse the answer.
    A failed lookup is not remembered, so the next call asks again.
    """

    def __init__(self, client: AuthClient, access_token: str | None) -> None:
        self._client = client
        self._access_token = access_token
        self._resolved = False
        self._identity: Identity | None = None

    async def get_current_identity(self) -> Identity | None:
        if not self._access_token:
            return None
        if not self._resolved:
            self._identity = await self._client.get_user(self._access_token)
            self._resolved = True
        return self._identity

    async def get_current_session(self) -> Session | None:
        identity = await self.get_current_identity()
        if identity is None or not self._access_token:
            return None
        return Session(access_token=self._access_token, identity=identity)


def read_access_token(connection: HTTPConnection, cookie_name: str) -> str | None:
    """Read the access token from a bearer header, falling back to the cookie."""
    authorization = connection.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return connection.cookies.get(cookie_name) or None
