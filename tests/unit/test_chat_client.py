"""Unit tests for the chat page's SSE client."""

import httpx

from llmchat.models.schemas import StreamEvent
from llmchat.ui.chat_page import ApiClient


def sse_transport(body: str, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            content=body.encode(),
            headers={"content-type": "text/event-stream"},
        )

    return httpx.MockTransport(handler)


class TestStreamChat:
    """Tests for ApiClient.stream_chat callbacks."""

    async def test_events_are_delivered_until_done(self) -> None:
        body = (
            'data: {"status": "received", "conversation_id": "c1"}\n\n'
            'data: {"content": "Hi", "status": "generating", "tokens_per_second": "1.00"}\n\n'
            'data: {"done": true, "status": "complete", "message_id": "m1"}\n\n'
        )
        events: list[StreamEvent] = []
        errors: list[str] = []

        await ApiClient("tok", transport=sse_transport(body)).stream_chat(
            "Hi", None, events.append, errors.append
        )

        assert [e.status for e in events] == ["received", "generating", "complete"]
        assert events[-1].message_id == "m1"
        assert errors == []

    async def test_malformed_event_reports_error(self) -> None:
        body = 'data: {"status": "received"}\n\ndata: {not json\n\n'
        events: list[StreamEvent] = []
        errors: list[str] = []

        await ApiClient("tok", transport=sse_transport(body)).stream_chat(
            "Hi", None, events.append, errors.append
        )

        assert len(events) == 1
        assert errors == ["Received an invalid response"]

    async def test_http_error_reports_status(self) -> None:
        errors: list[str] = []

        await ApiClient("tok", transport=sse_transport("busy", status_code=409)).stream_chat(
            "Hi", "c1", lambda event: None, errors.append
        )

        assert errors == ["HTTP 409"]
