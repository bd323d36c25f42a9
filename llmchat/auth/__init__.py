"""Identity lookup and request-time session gating.

Session establishment (password login, registration) is delegated to an
external GoTrue-compatible service; this package only resolves tokens and
decides redirects.
"""

from llmchat.auth.config import AuthConfig, get_auth_config
from llmchat.auth.gate import Allow, GateDecision, Redirect, SessionGate, SessionGateMiddleware
from llmchat.auth.identity import (
    AuthClient,
    AuthServiceClient,
    IdentityProvider,
    TokenIdentityProvider,
    read_access_token,
)

__all__ = [
    "Allow",
    "AuthClient",
    "AuthConfig",
    "AuthServiceClient",
    "GateDecision",
    "IdentityProvider",
    "Redirect",
    "SessionGate",
    "SessionGateMiddleware",
    "TokenIdentityProvider",
    "get_auth_config",
    "read_access_token",
]
