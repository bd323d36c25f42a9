"""Settings for the single-turn chat model.

Every field falls back to an ``LLM_*`` environment variable (``.env`` is
loaded on import). The model sees one prompt at a time: conversation history
lives in the store, so nothing here configures memory or storage.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_SYSTEM_PROMPT = "A helpful chat assistant."
DEFAULT_INSTRUCTIONS = (
    "Provide helpful and accurate responses.",
    "Be concise yet thorough.",
)


def _env_instructions() -> list[str]:
    raw = os.getenv("LLM_INSTRUCTIONS")
    if raw is None:
        return list(DEFAULT_INSTRUCTIONS)
    return [line.strip() for line in raw.split("|") if line.strip()]


class AgentConfig(BaseModel):
    """How replies are generated for a chat prompt.

    Attributes:
        api_key: Key for the OpenAI-compatible endpoint (LLM_API_KEY, then OPENAI_API_KEY).
        base_url: Endpoint override (LLM_BASE_URL); None means api.openai.com.
        model_name: Chat model id (LLM_MODEL).
        temperature: Sampling temperature (LLM_TEMPERATURE).
        max_tokens: Upper bound on one reply (LLM_MAX_TOKENS).
        system_prompt: Persona sent as the agent description (LLM_SYSTEM_PROMPT).
        instructions: Extra rules, ``|``-separated in LLM_INSTRUCTIONS.
        markdown: Ask the model to format replies as markdown (LLM_MARKDOWN).
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY", ""),
        description="Chat model API key",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL"),
        description="OpenAI-compatible endpoint, None for the default",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"),
        min_length=1,
        description="Chat model id",
    )
    temperature: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.7")),
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )
    max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "2048")),
        ge=1,
        le=128000,
        description="Maximum tokens in one reply",
    )
    system_prompt: str = Field(
        default_factory=lambda: os.getenv("LLM_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        description="Agent description sent with every prompt",
    )
    instructions: list[str] = Field(
        default_factory=_env_instructions,
        description="Additional instructions for the model",
    )
    markdown: bool = Field(
        default_factory=lambda: os.getenv("LLM_MARKDOWN", "true").lower() in ("1", "true", "yes"),
        description="Request markdown-formatted replies",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env")
        return v.strip()

    @field_validator("base_url")
    @classmethod
    def normalise_base_url(cls, v: str | None) -> str | None:
        """Blank means unset; a trailing slash is dropped."""
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")


def get_agent_config() -> AgentConfig:
    """Load the chat model settings from the environment.

    Raises:
        ValidationError: If no API key is set or a value is out of range.
    """
    return AgentConfig()
