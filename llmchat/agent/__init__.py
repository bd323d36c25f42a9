"""Agno-backed generation and the streaming response relay.

Responsibilities:
    - Agent initialization with OpenAI-compatible models
    - Streaming text fragments for a single prompt
    - Character-length token estimates and live throughput

Maintains clean separation from the HTTP layer and from persistence.
"""

from llmchat.agent.config import AgentConfig, get_agent_config
from llmchat.agent.provider import AgnoGenerationProvider, GenerationProvider
from llmchat.agent.relay import (
    RelayStream,
    ResponseRelay,
    estimate_tokens,
    format_throughput,
)

__all__ = [
    "AgentConfig",
    "AgnoGenerationProvider",
    "GenerationProvider",
    "RelayStream",
    "ResponseRelay",
    "estimate_tokens",
    "format_throughput",
    "get_agent_config",
]
