"""Pytest fixtures and shared test configuration.

Provides reusable fakes and fixtures for unit and integration tests.

Fixtures:
    - backend: SQLite-backed SqlBackend in a temporary directory
    - identity / other_identity: two distinct users
    - auth_client: FakeAuthClient knowing both users' tokens
    - provider: ScriptedProvider with configurable fragments and failure
    - services / app / async_client: FastAPI app wired with the fakes
"""

from collections.abc import AsyncGenerator, AsyncIterator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from llmchat.api.app import create_app
from llmchat.api.deps import Services
from llmchat.errors import ProviderUnavailable, Unauthenticated
from llmchat.models.schemas import Identity, Session
from llmchat.store.backend import SqlBackend
from llmchat.store.config import StoreConfig

USER_TOKEN = "token-alice"
OTHER_TOKEN = "token-bob"
COOKIE_NAME = "test-access-token"


class FakeAuthClient:
    """In-memory stand-in for the auth service."""

    def __init__(self, users: dict[str, Identity], passwords: dict[str, str] | None = None) -> None:
        self.users = users
        self.passwords = passwords or {}
        self.fail = False
        self.lookups = 0
        self.sign_ups: list[tuple[str, str | None]] = []

    async def get_user(self, access_token: str) -> Identity | None:
        self.lookups += 1
        if self.fail:
            raise ProviderUnavailable("auth service down")
        return self.users.get(access_token)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        if self.fail:
            raise ProviderUnavailable("auth service down")
        if self.passwords.get(email) != password:
            raise Unauthenticated("Invalid login credentials")
        for token, identity in self.users.items():
            if identity.email == email:
                return Session(access_token=token, identity=identity)
        raise Unauthenticated("Invalid login credentials")

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> None:
        if self.fail:
            raise ProviderUnavailable("auth service down")
        if email in self.passwords:
            raise Unauthenticated("User already registered")
        self.sign_ups.append((email, full_name))


class StaticIdentityProvider:
    """IdentityProvider returning a fixed identity (or none)."""

    def __init__(self, identity: Identity | None) -> None:
        self.identity = identity

    async def get_current_identity(self) -> Identity | None:
        return self.identity

    async def get_current_session(self) -> Session | None:
        if self.identity is None:
            return None
        return Session(access_token="static", identity=self.identity)


class ScriptedProvider:
    """Generation provider yielding a fixed list of fragments.

    Raises ``error`` after all fragments when set.
    """

    def __init__(self, fragments: list[str] | None = None, error: Exception | None = None) -> None:
        self.fragments = fragments if fragments is not None else ["Hel", "lo!"]
        self.error = error
        self.prompts: list[str] = []
        self.closed = False

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        try:
            for fragment in self.fragments:
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.fixture
async def backend(tmp_path: Path) -> AsyncGenerator[SqlBackend]:
    """Create a fresh SQLite backend with schema.

    Yields:
        SqlBackend on a file database under tmp_path.
    """
    config = StoreConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    sql_backend = SqlBackend.from_config(config)
    await sql_backend.create_schema()
    yield sql_backend
    await sql_backend.dispose()


@pytest.fixture
def identity() -> Identity:
    return Identity(id="user-alice", email="alice@example.com")


@pytest.fixture
def other_identity() -> Identity:
    return Identity(id="user-bob", email="bob@example.com")


@pytest.fixture
def auth_client(identity: Identity, other_identity: Identity) -> FakeAuthClient:
    return FakeAuthClient(
        users={USER_TOKEN: identity, OTHER_TOKEN: other_identity},
        passwords={"alice@example.com": "correct-horse"},
    )


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def services(
    backend: SqlBackend, auth_client: FakeAuthClient, provider: ScriptedProvider
) -> Services:
    return Services(
        backend=backend,
        auth=auth_client,
        generation=provider,
        cookie_name=COOKIE_NAME,
    )


@pytest.fixture
def app(services: Services):
    return create_app(services=services)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client authenticated as the default user.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {USER_TOKEN}"},
    ) as client:
        yield client


@pytest.fixture
async def anonymous_client(app) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client without credentials."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
