"""Unit tests for the response relay and its token metrics."""

import math
import re

import pytest
import pytest_check as check

from llmchat.agent.relay import ResponseRelay, estimate_tokens, format_throughput
from llmchat.errors import UpstreamStreamError
from tests.conftest import ScriptedProvider

TWO_DECIMALS = re.compile(r"^\d+\.\d{2}$")


class FakeClock:
    """Returns scripted timestamps, then repeats the last one."""

    def __init__(self, *times: float) -> None:
        self._times = list(times)
        self._last = 0.0

    def __call__(self) -> float:
        if self._times:
            self._last = self._times.pop(0)
        return self._last


class TestEstimateTokens:
    """Tests for the character-length token estimate."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("", 0), ("a", 1), ("abc", 1), ("abcd", 1), ("abcde", 2), ("x" * 17, 5)],
    )
    def test_ceil_of_quarter_length(self, text: str, expected: int) -> None:
        assert estimate_tokens(text) == expected

    def test_counts_characters_not_bytes(self) -> None:
        """Multi-byte characters count once each."""
        assert estimate_tokens("éééé") == 1


class TestFormatThroughput:
    """Tests for throughput formatting."""

    def test_zero_elapsed_reports_zero(self) -> None:
        assert format_throughput(10, 0.0) == "0.00"

    def test_two_decimals(self) -> None:
        assert format_throughput(10, 4.0) == "2.50"
        assert format_throughput(1, 3.0) == "0.33"
        assert format_throughput(5, 1.0) == "5.00"


class TestResponseRelay:
    """Tests for ResponseRelay streaming behaviour."""

    async def test_hello_fragments_over_two_seconds(self) -> None:
        """Two fragments of three characters give totals 1 then 2."""
        relay = ResponseRelay(ScriptedProvider(["Hel", "lo!"]), clock=FakeClock(0.0, 1.0, 2.0))

        chunks = [chunk async for chunk in relay.stream("Say hello")]

        check.equal(len(chunks), 2)
        check.equal(chunks[0].fragment, "Hel")
        check.equal(chunks[0].total_tokens, 1)
        check.equal(chunks[0].tokens_per_second, "1.00")
        check.equal(chunks[1].fragment, "lo!")
        check.equal(chunks[1].total_tokens, math.ceil(3 / 4) + math.ceil(3 / 4))
        check.equal(chunks[1].tokens_per_second, "1.00")

    async def test_running_total_is_sum_of_fragment_estimates(self) -> None:
        fragments = ["", "a", "abcd", "abcde", "x" * 17]
        relay = ResponseRelay(ScriptedProvider(fragments), clock=FakeClock(0.0, 1.0))

        totals = [chunk.total_tokens async for chunk in relay.stream("prompt")]

        expected = [sum(math.ceil(len(f) / 4) for f in fragments[: k + 1]) for k in range(len(fragments))]
        assert totals == expected

    async def test_zero_elapsed_reports_zero_throughput(self) -> None:
        relay = ResponseRelay(ScriptedProvider(["instant"]), clock=FakeClock(5.0))

        chunks = [chunk async for chunk in relay.stream("prompt")]

        assert chunks[0].tokens_per_second == "0.00"
        assert chunks[0].total_tokens == 2

    async def test_throughput_always_has_two_decimals(self) -> None:
        relay = ResponseRelay(
            ScriptedProvider(["a", "bb", "ccc", "dddd"]),
            clock=FakeClock(0.0, 0.3, 0.7, 1.1, 3.0),
        )

        async for chunk in relay.stream("prompt"):
            assert TWO_DECIMALS.match(chunk.tokens_per_second)

    async def test_empty_prompt_emits_nothing(self) -> None:
        provider = ScriptedProvider(["never"])
        relay = ResponseRelay(provider)

        chunks = [chunk async for chunk in relay.stream("   ")]

        assert chunks == []
        assert provider.prompts == []

    async def test_provider_not_called_until_first_pull(self) -> None:
        provider = ScriptedProvider(["x"])
        stream = ResponseRelay(provider).stream("prompt")

        assert provider.prompts == []
        await anext(stream)
        assert provider.prompts == ["prompt"]

    async def test_text_accumulates_in_order(self) -> None:
        stream = ResponseRelay(ScriptedProvider(["The ", "quick ", "fox"])).stream("prompt")

        async for _ in stream:
            pass

        assert stream.text == "The quick fox"
        assert stream.finished is True
        assert stream.last_chunk is not None
        assert stream.last_chunk.fragment == "fox"

    async def test_provider_error_propagates_as_upstream_error(self) -> None:
        provider = ScriptedProvider(["par"], error=RuntimeError("connection reset"))
        stream = ResponseRelay(provider).stream("prompt")

        first = await anext(stream)
        assert first.fragment == "par"

        with pytest.raises(UpstreamStreamError) as exc_info:
            await anext(stream)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert stream.text == "par"

    async def test_stream_is_not_restartable(self) -> None:
        provider = ScriptedProvider(["one"])
        stream = ResponseRelay(provider).stream("prompt")

        assert [c.fragment async for c in stream] == ["one"]
        assert [c.fragment async for c in stream] == []
        assert provider.prompts == ["prompt"]

    async def test_aclose_tears_down_provider_iterator(self) -> None:
        provider = ScriptedProvider(["a", "b", "c"])
        stream = ResponseRelay(provider).stream("prompt")

        await anext(stream)
        await stream.aclose()

        assert provider.closed is True
        with pytest.raises(StopAsyncIteration):
            await anext(stream)
