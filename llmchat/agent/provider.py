"""Generation provider: turns a prompt into a stream of text fragments.

The relay only depends on the GenerationProvider protocol. The production
implementation wraps an Agno Agent with an OpenAI-compatible model; tests
use plain async generators.

The agent is created without storage or history. Each prompt is sent as a
single turn, and persistence of the exchange is the caller's job through the
conversation store.
"""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from agno.agent import Agent
from agno.models.openai import OpenAIChat

from llmchat.agent.config import AgentConfig, get_agent_config

logger = logging.getLogger(__name__)


class GenerationProvider(Protocol):
    """Anything that streams text fragments for a prompt.

    The returned iterator is finite and forward-only: it yields zero or more
    fragments, then ends or raises.
    """

    def stream(self, prompt: str) -> AsyncIterator[str]: ...


class AgnoGenerationProvider:
    """Generation provider backed by an Agno agent.

    Wraps Agno's Agent so the rest of the app only sees text fragments.
    Errors from the model are not caught here; the relay wraps them.
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the provider.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()
        self._agent = self._create_agent()

    def _create_agent(self) -> Agent:
        """Create the Agno agent instance.

        Returns:
            Configured Agent with an OpenAI-compatible chat model.
        """
        model = OpenAIChat(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )

        return Agent(
            model=model,
            description=self._config.system_prompt,
            instructions=list(self._config.instructions),
            # Single-turn: the store owns history, the agent keeps none.
            add_history_to_context=False,
            markdown=self._config.markdown,
        )

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream response fragments for a prompt.

        Args:
            prompt: The user's message.

        Yields:
            Non-empty text fragments in arrival order.
        """
        logger.debug(f"Opening generation stream with model {self._config.model_name}")
        response_stream = self._agent.arun(prompt, stream=True)

        async for chunk in response_stream:
            content = getattr(chunk, "content", None)
            if isinstance(content, str) and content:
                yield content
