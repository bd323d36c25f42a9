"""Response relay: streams provider output with live token metrics.

Tokens are estimated from character length (ceil(len / 4)) rather than
counted by the model's tokenizer. Stored message token counts use the same
estimate, so the two must stay in step.
"""

import logging
import math
import time
from collections.abc import AsyncIterator, Callable

from llmchat.agent.provider import GenerationProvider
from llmchat.errors import UpstreamStreamError
from llmchat.models.schemas import StreamChunk

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a text fragment.

    Args:
        text: Fragment or full response text.

    Returns:
        ceil(len(text) / 4).
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def format_throughput(total_tokens: int, elapsed_seconds: float) -> str:
    """Format tokens per second with exactly two decimals.

    Returns "0.00" when no time has elapsed.
    """
    if elapsed_seconds <= 0:
        return f"{0:.2f}"
    return f"{total_tokens / elapsed_seconds:.2f}"


class RelayStream:
    """Single-consumer, pull-based stream of annotated chunks for one prompt.

    The provider request is issued on the first ``__anext__`` and the clock
    starts at that moment. Each subsequent pull suspends on the provider's
    next fragment. The stream is not restartable: once exhausted, failed or
    closed it only raises StopAsyncIteration.
    """

    def __init__(
        self,
        provider: GenerationProvider,
        prompt: str,
        clock: Callable[[], float],
    ) -> None:
        self._provider = provider
        self._prompt = prompt
        self._clock = clock
        self._fragments: AsyncIterator[str] | None = None
        self._started_at = 0.0
        self._total_tokens = 0
        self._parts: list[str] = []
        self._finished = False
        self.last_chunk: StreamChunk | None = None

    @property
    def text(self) -> str:
        """All fragments received so far, in arrival order."""
        return "".join(self._parts)

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> "RelayStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration

        if self._fragments is None:
            if not self._prompt.strip():
                logger.debug("Empty prompt, relay emits nothing")
                self._finished = True
                raise StopAsyncIteration
            self._started_at = self._clock()
            self._fragments = aiter(self._provider.stream(self._prompt))

        try:
            fragment = await anext(self._fragments)
        except StopAsyncIteration:
            self._finished = True
            logger.debug(f"Relay stream ended after {self._total_tokens} estimated tokens")
            raise
        except Exception as e:
            self._finished = True
            logger.error(f"Generation stream failed: {e}")
            raise UpstreamStreamError(f"Generation stream failed: {e}") from e

        self._parts.append(fragment)
        self._total_tokens += estimate_tokens(fragment)
        elapsed = self._clock() - self._started_at

        self.last_chunk = StreamChunk(
            fragment=fragment,
            tokens_per_second=format_throughput(self._total_tokens, elapsed),
            total_tokens=self._total_tokens,
        )
        return self.last_chunk

    async def aclose(self) -> None:
        """Stop consuming and let the provider iterator tear down its connection."""
        self._finished = True
        closer = getattr(self._fragments, "aclose", None)
        if closer is not None:
            await closer()


class ResponseRelay:
    """Opens relay streams against a generation provider.

    Args:
        provider: Source of text fragments.
        clock: Monotonic seconds source, injectable for tests.
    """

    def __init__(
        self,
        provider: GenerationProvider,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._clock = clock

    def stream(self, prompt: str) -> RelayStream:
        """Create a lazy stream for a prompt; nothing is sent until first pull."""
        return RelayStream(self._provider, prompt, self._clock)
