"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from llmchat.api.auth import router as auth_router
from llmchat.api.chat import router as chat_router
from llmchat.api.conversations import router as conversations_router
from llmchat.api.deps import Services, default_services, identity_provider_for
from llmchat.auth.gate import SessionGate, SessionGateMiddleware
from llmchat.errors import ProviderUnavailable

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Builds services from the environment unless they were injected
    through create_app.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    logger.info("Starting chat API...")
    if getattr(app.state, "services", None) is not None:
        yield
    else:
        async with default_services() as services:
            app.state.services = services
            yield
            app.state.services = None
    logger.info("Shutting down chat API...")


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Pre-built collaborators. Built from the environment at
                  startup when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="LLM Chat API",
        description=(
            "Authenticated chat with a hosted LLM. Streams replies as server-sent "
            "events with live throughput estimates and persists conversation "
            "history per user."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.services = services

    application.add_middleware(
        SessionGateMiddleware,
        gate=SessionGate(),
        sessions_for=identity_provider_for,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(chat_router)
    application.include_router(conversations_router)
    application.include_router(auth_router)

    @application.get("/", include_in_schema=False)
    async def landing(request: Request) -> RedirectResponse:
        """Send signed-in users to the chat, everyone else to login."""
        try:
            session = await identity_provider_for(request).get_current_session()
        except ProviderUnavailable as e:
            logger.warning(f"Session lookup failed on landing page: {e}")
            session = None
        return RedirectResponse("/chat" if session else "/login")

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "llmchat"}

    return application


app = create_app()
