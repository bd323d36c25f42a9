"""Unit tests for store and auth configuration."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from llmchat.auth.config import AuthConfig
from llmchat.store.config import StoreConfig


class TestStoreConfig:
    """Tests for StoreConfig environment loading."""

    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = StoreConfig()

        assert config.database_url == "sqlite+aiosqlite:///./data/chat.db"
        assert config.echo is False
        assert config.touch_attempts == 2

    def test_reads_environment(self) -> None:
        env = {
            "DATABASE_URL": "postgresql+asyncpg://db/chat",
            "DATABASE_ECHO": "true",
            "STORE_TOUCH_ATTEMPTS": "3",
        }
        with patch.dict("os.environ", env, clear=True):
            config = StoreConfig()

        assert config.database_url == "postgresql+asyncpg://db/chat"
        assert config.echo is True
        assert config.touch_attempts == 3

    def test_rejects_zero_touch_attempts(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(touch_attempts=0)


class TestAuthConfig:
    """Tests for AuthConfig environment loading."""

    def test_reads_environment(self) -> None:
        env = {
            "AUTH_URL": "https://auth.example.com",
            "AUTH_API_KEY": "anon",
            "AUTH_COOKIE_NAME": "sb-token",
            "AUTH_TIMEOUT": "2.5",
        }
        with patch.dict("os.environ", env, clear=True):
            config = AuthConfig()

        assert config.auth_url == "https://auth.example.com"
        assert config.api_key == "anon"
        assert config.cookie_name == "sb-token"
        assert config.timeout == 2.5

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValidationError):
            AuthConfig(timeout=0)
