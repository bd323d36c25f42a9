"""Conversation CRUD endpoints over the conversation store.

All routes require an authenticated identity. Store sentinels are mapped
to HTTP errors: an unknown or foreign conversation is 404, a store that
returned nothing for a known conversation is 503.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from llmchat.api.deps import get_store, require_identity
from llmchat.models.schemas import (
    Conversation,
    ConversationCreate,
    ConversationRef,
    ConversationRename,
    Message,
    MessageCreate,
    MessageRef,
)
from llmchat.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/conversations",
    tags=["conversations"],
    dependencies=[Depends(require_identity)],
)


def _unavailable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


async def _require_conversation(store: ConversationStore, conversation_id: str) -> Conversation:
    conversation = await store.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation


@router.get("", response_model=list[Conversation])
async def list_conversations(
    store: ConversationStore = Depends(get_store),
) -> list[Conversation]:
    """List the caller's conversations, most recently updated first."""
    return await store.list_conversations()


@router.post("", response_model=ConversationRef, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    body: ConversationCreate | None = None,
    store: ConversationStore = Depends(get_store),
) -> ConversationRef:
    """Always create a new conversation."""
    conversation_id = await store.create_conversation(body.title if body else None)
    if conversation_id is None:
        raise _unavailable("Could not create conversation")
    return ConversationRef(conversation_id=conversation_id)


@router.get("/active", response_model=ConversationRef)
async def get_active_conversation(
    store: ConversationStore = Depends(get_store),
) -> ConversationRef:
    """Return the newest conversation by creation time, creating one if needed."""
    conversation_id = await store.get_or_create_active_conversation()
    if conversation_id is None:
        raise _unavailable("Could not resolve active conversation")
    return ConversationRef(conversation_id=conversation_id)


@router.get("/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_store),
) -> Conversation:
    return await _require_conversation(store, conversation_id)


@router.patch("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def rename_conversation(
    conversation_id: str,
    body: ConversationRename,
    store: ConversationStore = Depends(get_store),
) -> Response:
    """Rename a conversation and bump its updated timestamp."""
    await _require_conversation(store, conversation_id)
    if not await store.rename_conversation(conversation_id, body.title):
        raise _unavailable("Could not rename conversation")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    store: ConversationStore = Depends(get_store),
) -> Response:
    """Delete a conversation and all of its messages."""
    await _require_conversation(store, conversation_id)
    if not await store.delete_conversation(conversation_id):
        raise _unavailable("Could not delete conversation")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{conversation_id}/messages", response_model=list[Message])
async def list_messages(
    conversation_id: str,
    store: ConversationStore = Depends(get_store),
) -> list[Message]:
    """Messages of a conversation, oldest first."""
    await _require_conversation(store, conversation_id)
    return await store.load_messages(conversation_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageRef,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    conversation_id: str,
    body: MessageCreate,
    store: ConversationStore = Depends(get_store),
) -> MessageRef:
    await _require_conversation(store, conversation_id)
    message_id = await store.append_message(
        conversation_id, body.role, body.content, token_estimate=body.tokens
    )
    if message_id is None:
        raise _unavailable("Could not save message")
    return MessageRef(message_id=message_id)
