"""Session gate: per-request allow/redirect decision for page routes.

Rules:
    - protected path without a session -> login, with the requested path
      kept in ``redirectedFrom``
    - login/register with a session -> main chat surface
    - anything else passes through

If the session lookup fails, protected paths are treated as having no
session and every other path passes through.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from llmchat.auth.identity import IdentityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allow:
    """Pass the request through."""


@dataclass(frozen=True)
class Redirect:
    """Send the client elsewhere."""

    target: str


GateDecision = Allow | Redirect


class SessionGate:
    """Routing rules for session-dependent pages.

    Args:
        protected_prefixes: Path prefixes that need a session.
        auth_paths: Exact paths only meant for signed-out users.
        login_path: Where signed-out users are sent.
        home_path: Where signed-in users are sent from auth pages.
    """

    def __init__(
        self,
        protected_prefixes: tuple[str, ...] = ("/chat",),
        auth_paths: tuple[str, ...] = ("/login", "/register"),
        login_path: str = "/login",
        home_path: str = "/chat",
    ) -> None:
        self.protected_prefixes = protected_prefixes
        self.auth_paths = auth_paths
        self.login_path = login_path
        self.home_path = home_path

    def is_protected(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.protected_prefixes)

    def is_auth_path(self, path: str) -> bool:
        return path in self.auth_paths

    def login_redirect(self, path: str) -> Redirect:
        query = urlencode({"redirectedFrom": path}, safe="/")
        return Redirect(f"{self.login_path}?{query}")

    def decide(self, path: str, has_session: bool) -> GateDecision:
        """Pure routing decision for a path and session presence."""
        if not has_session and self.is_protected(path):
            return self.login_redirect(path)
        if has_session and self.is_auth_path(path):
            return Redirect(self.home_path)
        return Allow()

    async def evaluate(self, path: str, sessions: IdentityProvider) -> GateDecision:
        """Consult the session provider and decide.

        Only protected and auth paths trigger a lookup.
        """
        if not (self.is_protected(path) or self.is_auth_path(path)):
            return Allow()

        try:
            session = await sessions.get_current_session()
        except Exception as e:
            logger.warning(f"Session lookup failed for {path}: {e}")
            if self.is_protected(path):
                return self.login_redirect(path)
            return Allow()

        return self.decide(path, session is not None)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Apply a SessionGate to every HTTP request.

    Args:
        app: Wrapped ASGI app.
        gate: Routing rules.
        sessions_for: Builds the per-request session provider.
    """

    def __init__(
        self,
        app: ASGIApp,
        gate: SessionGate,
        sessions_for: Callable[[Request], IdentityProvider],
    ) -> None:
        super().__init__(app)
        self._gate = gate
        self._sessions_for = sessions_for

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        decision = await self._gate.evaluate(request.url.path, self._sessions_for(request))
        if isinstance(decision, Redirect):
            logger.debug(f"Redirecting {request.url.path} to {decision.target}")
            return RedirectResponse(decision.target)
        return await call_next(request)
