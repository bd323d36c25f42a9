"""Integration tests for the session gate middleware and auth form endpoints.

The NiceGUI pages are not mounted here; plain routes stand in for them at
the same paths so the middleware sees the real URLs.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse
from httpx import AsyncClient

from llmchat.api.app import create_app
from llmchat.api.deps import Services, require_identity
from llmchat.models.schemas import Identity
from tests.conftest import COOKIE_NAME, USER_TOKEN, FakeAuthClient


@pytest.fixture
def app(services: Services) -> FastAPI:
    application = create_app(services=services)

    async def page() -> PlainTextResponse:
        return PlainTextResponse("page")

    async def me(identity: Identity = Depends(require_identity)) -> dict[str, str]:
        return {"id": identity.id}

    application.add_api_route("/chat", page)
    application.add_api_route("/chat/me", me)
    application.add_api_route("/login", page)
    application.add_api_route("/register", page)
    return application


def location(response) -> tuple[str, dict[str, list[str]]]:
    parts = urlsplit(response.headers["location"])
    return parts.path, parse_qs(parts.query)


class TestGateRedirects:
    """Allow/redirect behavior on page routes."""

    async def test_signed_out_chat_redirects_to_login(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.get("/chat", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login?redirectedFrom=/chat"

    async def test_signed_out_nested_path_is_kept(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.get("/chat/me", follow_redirects=False)

        assert response.headers["location"] == "/login?redirectedFrom=/chat/me"

    async def test_signed_in_chat_passes(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/chat", follow_redirects=False)

        assert response.status_code == 200
        assert response.text == "page"

    async def test_cookie_session_passes(self, anonymous_client: AsyncClient) -> None:
        anonymous_client.cookies.set(COOKIE_NAME, USER_TOKEN)

        response = await anonymous_client.get("/chat", follow_redirects=False)

        assert response.status_code == 200

    @pytest.mark.parametrize("path", ["/login", "/register"])
    async def test_signed_in_auth_pages_redirect_to_chat(
        self, async_client: AsyncClient, path: str
    ) -> None:
        response = await async_client.get(path, follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/chat"

    @pytest.mark.parametrize("path", ["/login", "/register"])
    async def test_signed_out_auth_pages_pass(
        self, anonymous_client: AsyncClient, path: str
    ) -> None:
        response = await anonymous_client.get(path, follow_redirects=False)

        assert response.status_code == 200

    async def test_public_path_skips_lookup(
        self, async_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        response = await async_client.get("/health")

        assert response.json() == {"status": "healthy", "service": "llmchat"}
        assert auth_client.lookups == 0

    async def test_gate_and_endpoint_share_lookup(
        self, async_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        response = await async_client.get("/chat/me")

        assert response.json() == {"id": "user-alice"}
        assert auth_client.lookups == 1

    async def test_auth_outage_redirects_protected_path(
        self, async_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        auth_client.fail = True

        response = await async_client.get("/chat", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login?redirectedFrom=/chat"

    async def test_auth_outage_lets_login_through(
        self, async_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        auth_client.fail = True

        response = await async_client.get("/login", follow_redirects=False)

        assert response.status_code == 200


class TestLanding:
    """Root path sends users to the right surface."""

    async def test_signed_in_goes_to_chat(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/chat"

    async def test_signed_out_goes_to_login(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/login"

    async def test_auth_outage_goes_to_login(
        self, async_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        auth_client.fail = True

        response = await async_client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/login"


class TestAuthForms:
    """Login, registration and logout form endpoints."""

    async def test_login_sets_cookie_and_redirects(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.post(
            "/auth/login",
            data={"email": "alice@example.com", "password": "correct-horse"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/chat"
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{COOKIE_NAME}={USER_TOKEN}")
        assert "httponly" in cookie.lower()

    async def test_login_returns_to_requested_page(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.post(
            "/auth/login",
            data={
                "email": "alice@example.com",
                "password": "correct-horse",
                "redirectedFrom": "/chat/me",
            },
            follow_redirects=False,
        )

        assert response.headers["location"] == "/chat/me"

    async def test_login_ignores_offsite_target(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.post(
            "/auth/login",
            data={
                "email": "alice@example.com",
                "password": "correct-horse",
                "redirectedFrom": "//evil.example.com",
            },
            follow_redirects=False,
        )

        assert response.headers["location"] == "/chat"

    async def test_bad_password_returns_to_login(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.post(
            "/auth/login",
            data={"email": "alice@example.com", "password": "wrong", "redirectedFrom": "/chat"},
            follow_redirects=False,
        )

        path, query = location(response)
        assert response.status_code == 303
        assert path == "/login"
        assert query == {"error": ["Invalid login credentials"], "redirectedFrom": ["/chat"]}
        assert "set-cookie" not in response.headers

    async def test_login_service_outage(
        self, anonymous_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        auth_client.fail = True

        response = await anonymous_client.post(
            "/auth/login",
            data={"email": "alice@example.com", "password": "correct-horse"},
            follow_redirects=False,
        )

        path, query = location(response)
        assert path == "/login"
        assert query["error"] == ["Authentication service unavailable"]

    async def test_register_success(
        self, anonymous_client: AsyncClient, auth_client: FakeAuthClient
    ) -> None:
        response = await anonymous_client.post(
            "/auth/register",
            data={"email": "carol@example.com", "password": "pw", "full_name": "Carol"},
            follow_redirects=False,
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/login?registered=1"
        assert auth_client.sign_ups == [("carol@example.com", "Carol")]

    async def test_register_duplicate(self, anonymous_client: AsyncClient) -> None:
        response = await anonymous_client.post(
            "/auth/register",
            data={"email": "alice@example.com", "password": "pw"},
            follow_redirects=False,
        )

        path, query = location(response)
        assert path == "/register"
        assert query == {"error": ["User already registered"]}

    async def test_logout_clears_cookie(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/auth/logout", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert response.headers["set-cookie"].startswith(f"{COOKIE_NAME}=")
        assert "max-age=0" in response.headers["set-cookie"].lower()
