"""Pydantic models for records, stream chunks and API payloads.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - Conversation, Message: persisted records
    - StreamChunk: transient relay output
    - ChatRequest, StreamEvent: chat streaming endpoint
    - Identity, Session: auth service results
"""

from llmchat.models.schemas import (
    ChatRequest,
    Conversation,
    ConversationCreate,
    ConversationRef,
    ConversationRename,
    Identity,
    Message,
    MessageCreate,
    MessageRef,
    Role,
    Session,
    StreamChunk,
    StreamEvent,
    StreamStatus,
)

__all__ = [
    "ChatRequest",
    "Conversation",
    "ConversationCreate",
    "ConversationRef",
    "ConversationRename",
    "Identity",
    "Message",
    "MessageCreate",
    "MessageRef",
    "Role",
    "Session",
    "StreamChunk",
    "StreamEvent",
    "StreamStatus",
]
