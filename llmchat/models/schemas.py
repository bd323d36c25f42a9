from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    RECEIVED = "received"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class Identity(BaseModel):
    """Authenticated user as reported by the auth service.

    Attributes:
        id: Stable user identifier used as conversation owner.
        email: Email address, when the service returns one.
    """

    id: str
    email: str | None = None


class Session(BaseModel):
    """A valid session: the access token and the identity it resolves to."""

    access_token: str
    identity: Identity


class Conversation(BaseModel):
    """A titled, owned container of ordered messages.

    Attributes:
        id: Opaque unique identifier.
        user_id: Owner identifier.
        title: Display title, never empty.
        created_at: Creation timestamp.
        updated_at: Last append or rename timestamp.
        message_count: Derived number of messages, not stored.
    """

    id: str
    user_id: str
    title: str = Field(..., min_length=1)
    created_at: datetime
    updated_at: datetime
    message_count: int = Field(default=0, ge=0)


class Message(BaseModel):
    """One turn of dialogue.

    Attributes:
        id: Opaque unique identifier.
        conversation_id: Parent conversation.
        role: user or assistant.
        content: Message text, immutable once persisted.
        created_at: Creation timestamp, orders messages in a conversation.
        tokens: Character-length token estimate, if recorded.
    """

    id: str
    conversation_id: str
    role: Role
    content: str
    created_at: datetime
    tokens: int | None = None


class StreamChunk(BaseModel):
    """One relayed fragment with running metrics.

    Attributes:
        fragment: Text received from the provider.
        tokens_per_second: Throughput since stream start, two decimals.
        total_tokens: Estimated tokens across all fragments so far.
    """

    fragment: str
    tokens_per_second: str
    total_tokens: int = Field(ge=0)


class ChatRequest(BaseModel):
    """Request payload for the chat streaming endpoint.

    Attributes:
        message: User's prompt.
        conversation_id: Existing conversation to continue, or None for a new one.
    """

    message: str = Field(..., min_length=1)
    conversation_id: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class StreamEvent(BaseModel):
    """One server-sent event of a chat stream.

    Attributes:
        content: Text fragment of this event (empty for status-only events).
        done: Whether this is the final event.
        status: Current processing status.
        error: User-facing error message if the turn failed.
        tokens_per_second: Latest throughput estimate.
        total_tokens: Latest running token estimate.
        conversation_id: Conversation the turn belongs to.
        message_id: Persisted assistant message id, set on completion.
    """

    content: str = ""
    done: bool = False
    status: StreamStatus | None = None
    error: str | None = None
    tokens_per_second: str | None = None
    total_tokens: int | None = None
    conversation_id: str | None = None
    message_id: str | None = None


class ConversationCreate(BaseModel):
    """Body for creating a conversation."""

    title: str | None = None


class ConversationRename(BaseModel):
    """Body for renaming a conversation."""

    title: str = Field(..., min_length=1)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class MessageCreate(BaseModel):
    """Body for appending a message directly."""

    role: Role
    content: str
    tokens: int | None = Field(default=None, ge=0)


class ConversationRef(BaseModel):
    """Identifier returned by create/lookup endpoints."""

    conversation_id: str


class MessageRef(BaseModel):
    """Identifier returned after appending a message."""

    message_id: str
