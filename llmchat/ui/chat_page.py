"""NiceGUI chat interface with SSE streaming and a conversation sidebar."""

import logging
import os
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from fastapi import Request
from nicegui import ui
from pydantic import ValidationError

from llmchat.auth.config import get_auth_config
from llmchat.auth.identity import read_access_token
from llmchat.models.schemas import Conversation, Message, StreamEvent, StreamStatus

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

FALLBACK_TEXT = "Sorry, something went wrong. Please try again."

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; min-height: 100vh; }

    .message-user {
        background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        color: white;
        border-radius: 18px 18px 4px 18px;
    }

    .message-assistant {
        background: #f3f4f6;
        color: #1f2937;
        border-radius: 18px 18px 18px 4px;
    }

    .message-error { border: 1px solid #fca5a5; background: #fef2f2; color: #991b1b; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #667eea;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }

    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }
</style>
"""


class ApiClient:
    """Thin httpx wrapper for the chat API, authenticated with the user's token."""

    def __init__(
        self,
        access_token: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._transport = transport

    async def _call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=API_BASE_URL, timeout=30.0, transport=self._transport
        ) as client:
            response = await client.request(method, path, headers=self._headers, **kwargs)
            response.raise_for_status()
            return response

    async def list_conversations(self) -> list[Conversation]:
        response = await self._call("GET", "/api/conversations")
        return [Conversation.model_validate(item) for item in response.json()]

    async def active_conversation(self) -> str:
        response = await self._call("GET", "/api/conversations/active")
        return response.json()["conversation_id"]

    async def create_conversation(self) -> str:
        response = await self._call("POST", "/api/conversations", json={})
        return response.json()["conversation_id"]

    async def rename_conversation(self, conversation_id: str, title: str) -> None:
        await self._call("PATCH", f"/api/conversations/{conversation_id}", json={"title": title})

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._call("DELETE", f"/api/conversations/{conversation_id}")

    async def load_messages(self, conversation_id: str) -> list[Message]:
        response = await self._call("GET", f"/api/conversations/{conversation_id}/messages")
        return [Message.model_validate(item) for item in response.json()]

    async def stream_chat(
        self,
        message: str,
        conversation_id: str | None,
        on_event: Callable[[StreamEvent], None],
        on_error: Callable[[str], None],
    ) -> None:
        """Consume the SSE stream from /api/chat/stream."""
        async with httpx.AsyncClient(
            base_url=API_BASE_URL, timeout=120.0, transport=self._transport
        ) as client:
            try:
                async with client.stream(
                    "POST",
                    "/api/chat/stream",
                    json={"message": message, "conversation_id": conversation_id},
                    headers={**self._headers, "Accept": "text/event-stream"},
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        event = StreamEvent.model_validate_json(line.removeprefix("data: "))
                        on_event(event)
                        if event.done:
                            return
            except httpx.HTTPStatusError as e:
                on_error(f"HTTP {e.response.status_code}")
            except httpx.RequestError as e:
                on_error(f"Connection failed: {e}")
            except ValidationError as e:
                logger.error(f"Malformed stream event: {e}")
                on_error("Received an invalid response")


class ChatSession:
    """Manages chat state for one browser tab."""

    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.conversation_id: str | None = None
        self.conversations: list[Conversation] = []
        self.is_streaming: bool = False
        self.tokens_per_second: str = "0.00"

    def add_message(
        self,
        role: str,
        content: str,
        time: datetime | None = None,
        tokens_per_second: str | None = None,
        errored: bool = False,
    ) -> dict:
        message = {
            "role": role,
            "content": content,
            "time": (time or datetime.now()).strftime("%I:%M %p"),
            "tokens_per_second": tokens_per_second,
            "errored": errored,
        }
        self.messages.append(message)
        return message


@ui.page("/chat")
async def chat_page(request: Request) -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    api = ApiClient(read_access_token(request, get_auth_config().cookie_name))
    session = ChatSession()

    messages_container: ui.column
    conversations_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button

    def render_message(msg: dict) -> None:
        is_user = msg["role"] == "user"
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"
        if msg["errored"]:
            bubble += " message-error"

        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[70%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if is_user:
                        ui.label(msg["content"]).classes("text-sm whitespace-pre-wrap")
                    else:
                        ui.markdown(msg["content"]).classes("text-sm")
                meta = msg["time"]
                if msg["tokens_per_second"] and not is_user:
                    meta += f" · {msg['tokens_per_second']} t/s"
                ui.label(meta).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            if not session.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    ui.label("Start a conversation").classes("text-lg text-gray-400")
            else:
                for msg in session.messages:
                    render_message(msg)

    def refresh_conversations() -> None:
        conversations_container.clear()
        with conversations_container:
            for conv in session.conversations:
                active = conv.id == session.conversation_id
                row_classes = "w-full items-center gap-1 px-2 py-1 rounded cursor-pointer"
                if active:
                    row_classes += " bg-indigo-100"
                with ui.row().classes(row_classes):
                    ui.label(conv.title).classes("flex-grow truncate text-sm").on(
                        "click", lambda c=conv: open_conversation(c.id)
                    )
                    ui.badge(str(conv.message_count)).props("color=grey-5")
                    ui.button(icon="edit", on_click=lambda c=conv: rename_dialog(c)).props(
                        "flat dense round size=sm"
                    )
                    ui.button(icon="delete", on_click=lambda c=conv: delete_conversation(c.id)).props(
                        "flat dense round size=sm color=negative"
                    )

    async def reload_conversations() -> None:
        try:
            session.conversations = await api.list_conversations()
        except httpx.HTTPError as e:
            logger.warning(f"Could not load conversations: {e}")
            ui.notify("Could not load conversations", type="warning")
        refresh_conversations()

    async def open_conversation(conversation_id: str) -> None:
        if session.is_streaming:
            return
        session.conversation_id = conversation_id
        session.messages.clear()
        try:
            for message in await api.load_messages(conversation_id):
                session.add_message(
                    message.role.value,
                    message.content,
                    time=message.created_at,
                    tokens_per_second=None,
                )
        except httpx.HTTPError as e:
            logger.warning(f"Could not load messages: {e}")
            ui.notify("Could not load messages", type="warning")
        refresh_messages()
        refresh_conversations()

    async def new_chat() -> None:
        if session.is_streaming:
            return
        try:
            session.conversation_id = await api.create_conversation()
        except httpx.HTTPError as e:
            ui.notify(f"Could not create conversation: {e}", type="negative")
            return
        session.messages.clear()
        refresh_messages()
        await reload_conversations()

    async def delete_conversation(conversation_id: str) -> None:
        try:
            await api.delete_conversation(conversation_id)
        except httpx.HTTPError as e:
            ui.notify(f"Could not delete conversation: {e}", type="negative")
            return
        if conversation_id == session.conversation_id:
            session.conversation_id = None
            session.messages.clear()
            refresh_messages()
        await reload_conversations()

    def rename_dialog(conv: Conversation) -> None:
        with ui.dialog() as dialog, ui.card():
            title_input = ui.input("Title", value=conv.title).classes("w-64")

            async def save() -> None:
                title = (title_input.value or "").strip()
                if title:
                    try:
                        await api.rename_conversation(conv.id, title)
                    except httpx.HTTPError as e:
                        ui.notify(f"Could not rename: {e}", type="negative")
                dialog.close()
                await reload_conversations()

            with ui.row():
                ui.button("Cancel", on_click=dialog.close).props("flat")
                ui.button("Save", on_click=save)
        dialog.open()

    async def send_message() -> None:
        text = (input_field.value or "").strip()
        if not text or session.is_streaming:
            return

        input_field.value = ""
        session.is_streaming = True
        send_btn.disable()

        session.add_message("user", text)
        assistant = session.add_message("assistant", "")
        refresh_messages()

        with messages_container:
            with ui.row().classes("w-full justify-start") as typing_row:
                with ui.element("div").classes("message-assistant px-4 py-3"):
                    with ui.row().classes("gap-1"):
                        for _ in range(3):
                            ui.element("div").classes("typing-dot")

        def on_event(event: StreamEvent) -> None:
            if event.conversation_id:
                session.conversation_id = event.conversation_id
            if event.status == StreamStatus.ERROR:
                assistant["content"] = assistant["content"] or FALLBACK_TEXT
                assistant["errored"] = True
                ui.notify(event.error or FALLBACK_TEXT, type="negative")
                return
            if event.content:
                assistant["content"] += event.content
            if event.tokens_per_second:
                assistant["tokens_per_second"] = event.tokens_per_second
                session.tokens_per_second = event.tokens_per_second
            if event.content:
                typing_row.set_visibility(False)
                refresh_messages()

        def on_error(error: str) -> None:
            assistant["content"] = assistant["content"] or FALLBACK_TEXT
            assistant["errored"] = True
            ui.notify(error, type="negative")

        try:
            await api.stream_chat(text, session.conversation_id, on_event, on_error)
        finally:
            session.is_streaming = False
            send_btn.enable()
        refresh_messages()
        await reload_conversations()

    # === UI Layout ===
    with ui.left_drawer().classes("bg-white p-3"):
        with ui.row().classes("w-full items-center justify-between"):
            ui.label("Conversations").classes("text-sm font-semibold text-gray-600")
            ui.button(icon="add", on_click=new_chat).props("flat round dense")
        conversations_container = ui.column().classes("w-full gap-1")

    with ui.header().classes("items-center justify-between px-5"):
        with ui.row().classes("items-center gap-3"):
            ui.icon("smart_toy").classes("text-3xl")
            ui.label("LLM Chat").classes("text-lg font-semibold")
        with ui.row().classes("items-center gap-3"):
            ui.label().bind_text_from(
                session, "tokens_per_second", lambda v: f"{v} t/s"
            ).classes("text-xs font-mono")
            ui.link("Sign out", "/auth/logout").classes("text-white text-sm")

    with ui.column().classes("w-full max-w-3xl mx-auto").style("height: calc(100vh - 8rem)"):
        with ui.scroll_area().classes("flex-grow w-full bg-gray-50 rounded"):
            messages_container = ui.column().classes("w-full gap-4 p-5")
            refresh_messages()

        with ui.row().classes("w-full gap-3 items-end"):
            input_field = (
                ui.textarea(placeholder="Type a message...")
                .props("autogrow outlined dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated")

    try:
        session.conversation_id = await api.active_conversation()
    except httpx.HTTPError as e:
        logger.warning(f"Could not resolve active conversation: {e}")
    await reload_conversations()
    if session.conversation_id:
        await open_conversation(session.conversation_id)
