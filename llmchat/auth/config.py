"""Auth service configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class AuthConfig(BaseModel):
    """Configuration for the external auth service and the session cookie.

    Attributes:
        auth_url: Base URL of the GoTrue-compatible auth service.
        api_key: Public (anon) key sent as the ``apikey`` header.
        cookie_name: Cookie holding the access token.
        timeout: HTTP timeout in seconds for auth calls.
    """

    auth_url: str = Field(
        default_factory=lambda: os.getenv("AUTH_URL", "http://localhost:9999"),
        description="Auth service base URL",
    )
    api_key: str = Field(
        default_factory=lambda: os.getenv("AUTH_API_KEY", ""),
        description="Auth service public key",
    )
    cookie_name: str = Field(
        default_factory=lambda: os.getenv("AUTH_COOKIE_NAME", "llmchat-access-token"),
        description="Name of the access token cookie",
    )
    timeout: float = Field(
        default_factory=lambda: float(os.getenv("AUTH_TIMEOUT", "10")),
        gt=0,
        description="Timeout for auth service requests in seconds",
    )


def get_auth_config() -> AuthConfig:
    """Create auth configuration from environment."""
    return AuthConfig()
