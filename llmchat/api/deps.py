"""Explicitly constructed collaborators and their FastAPI dependencies.

Nothing here is a module-level singleton: a Services bundle is built once
per application (from the environment in production, by hand in tests),
stored on ``app.state`` and handed to each request through Depends.
"""

import logging
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request, status
from starlette.requests import HTTPConnection

from llmchat.agent.provider import AgnoGenerationProvider, GenerationProvider
from llmchat.agent.relay import ResponseRelay
from llmchat.auth.config import get_auth_config
from llmchat.auth.identity import (
    AuthClient,
    AuthServiceClient,
    IdentityProvider,
    TokenIdentityProvider,
    read_access_token,
)
from llmchat.errors import ProviderUnavailable
from llmchat.models.schemas import Identity
from llmchat.store.backend import PersistenceBackend, SqlBackend
from llmchat.store.config import get_store_config
from llmchat.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


class ConversationLocks:
    """Tracks conversations with a generation in flight.

    One stream per conversation keeps fragments and persisted turns in
    order. Check-and-set happens without an await, so it is atomic on the
    event loop. ``acquire`` hands out an owner token and only that token
    releases the lock, so a late release never drops a newer holder.
    """

    def __init__(self) -> None:
        self._active: dict[str, object] = {}

    def acquire(self, conversation_id: str) -> object | None:
        """Take the lock; None if another stream holds it."""
        if conversation_id in self._active:
            return None
        token = object()
        self._active[conversation_id] = token
        return token

    def release(self, conversation_id: str, token: object) -> bool:
        """Drop the lock if ``token`` still owns it."""
        if self._active.get(conversation_id) is not token:
            return False
        del self._active[conversation_id]
        return True

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._active


@dataclass
class Services:
    """Everything a request needs, built once per application."""

    backend: PersistenceBackend
    auth: AuthClient
    generation: GenerationProvider
    cookie_name: str = "llmchat-access-token"
    touch_attempts: int = 2
    clock: Callable[[], float] = time.monotonic
    locks: ConversationLocks = field(default_factory=ConversationLocks)


@asynccontextmanager
async def default_services() -> AsyncGenerator[Services]:
    """Build services from the environment and tear them down afterwards.

    Yields:
        Services backed by SQLAlchemy, the auth service and an Agno agent.
    """
    store_config = get_store_config()
    auth_config = get_auth_config()

    backend = SqlBackend.from_config(store_config)
    await backend.create_schema()
    auth = AuthServiceClient(auth_config)

    try:
        yield Services(
            backend=backend,
            auth=auth,
            generation=AgnoGenerationProvider(),
            cookie_name=auth_config.cookie_name,
            touch_attempts=store_config.touch_attempts,
        )
    finally:
        await auth.aclose()
        await backend.dispose()


def get_services(connection: HTTPConnection) -> Services:
    """Return the application's services."""
    services = getattr(connection.app.state, "services", None)
    if services is None:
        raise RuntimeError("Application services are not initialised")
    return services


def identity_provider_for(connection: HTTPConnection) -> IdentityProvider:
    """Per-request identity provider, shared by the gate and the endpoints."""
    provider = getattr(connection.state, "identity_provider", None)
    if provider is None:
        services = get_services(connection)
        token = read_access_token(connection, services.cookie_name)
        provider = TokenIdentityProvider(services.auth, token)
        connection.state.identity_provider = provider
    return provider


def get_identity_provider(request: Request) -> IdentityProvider:
    return identity_provider_for(request)


async def require_identity(
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Resolve the caller or fail the request.

    Raises:
        HTTPException: 401 without a valid token, 503 if the auth service is down.
    """
    try:
        identity = await provider.get_current_identity()
    except ProviderUnavailable as e:
        logger.error(f"Auth service unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from e

    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return identity


def get_store(
    services: Services = Depends(get_services),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> ConversationStore:
    return ConversationStore(services.backend, provider, touch_attempts=services.touch_attempts)


def get_relay(services: Services = Depends(get_services)) -> ResponseRelay:
    return ResponseRelay(services.generation, clock=services.clock)
