"""SSE chat endpoint: one prompt in, a stream of annotated fragments out.

The endpoint is the relay's caller. It persists the user turn before
generation, relays fragments as they arrive, and persists the assistant
turn once the stream ends. If generation fails, the client gets a fallback
message and no assistant turn is stored.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from llmchat.agent.relay import ResponseRelay, estimate_tokens
from llmchat.api.deps import Services, get_relay, get_services, get_store, require_identity
from llmchat.errors import UpstreamStreamError
from llmchat.models.schemas import ChatRequest, Identity, Role, StreamEvent, StreamStatus
from llmchat.store.conversation_store import TITLE_MAX_LENGTH, ConversationStore, derive_title

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

FALLBACK_MESSAGE = "Sorry, something went wrong while generating a response. Please try again."


def _sse(event: StreamEvent) -> str:
    return f"data: {event.model_dump_json()}\n\n"


async def _open_conversation(store: ConversationStore, request: ChatRequest) -> tuple[str, bool]:
    """Resolve the target conversation.

    Returns:
        The conversation id and whether it has no messages yet.
    """
    if request.conversation_id is None:
        conversation_id = await store.create_conversation(request.message[:TITLE_MAX_LENGTH])
        if conversation_id is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Could not create conversation",
            )
        return conversation_id, True

    conversation = await store.get_conversation(request.conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation.id, conversation.message_count == 0


@router.post("/stream")
async def chat_stream(
    request: ChatRequest,
    identity: Identity = Depends(require_identity),
    store: ConversationStore = Depends(get_store),
    relay: ResponseRelay = Depends(get_relay),
    services: Services = Depends(get_services),
) -> StreamingResponse:
    """Stream an assistant reply as server-sent events.

    Each ``data:`` line is a StreamEvent. The first has status "received"
    and the conversation id, then one "generating" event per fragment, then
    a final event with ``done=true`` and status "complete" or "error".

    Raises:
        401: No authenticated identity.
        404: Unknown conversation.
        409: A reply is already streaming for this conversation.
        503: Storage unavailable.
    """
    conversation_id, is_new = await _open_conversation(store, request)

    lock_token = services.locks.acquire(conversation_id)
    if lock_token is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A response is already being generated for this conversation",
        )

    try:
        user_message_id = await store.append_message(conversation_id, Role.USER, request.message)
        if user_message_id is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Could not save message",
            )
        if is_new:
            await store.rename_conversation(conversation_id, derive_title(request.message))
    except HTTPException:
        services.locks.release(conversation_id, lock_token)
        raise

    logger.info(f"Streaming reply for user {identity.id} in conversation {conversation_id}")

    async def event_stream() -> AsyncGenerator[str]:
        stream = relay.stream(request.message)
        try:
            yield _sse(StreamEvent(status=StreamStatus.RECEIVED, conversation_id=conversation_id))

            async for chunk in stream:
                yield _sse(
                    StreamEvent(
                        content=chunk.fragment,
                        status=StreamStatus.GENERATING,
                        tokens_per_second=chunk.tokens_per_second,
                        total_tokens=chunk.total_tokens,
                        conversation_id=conversation_id,
                    )
                )

            text = stream.text
            message_id = await store.append_message(
                conversation_id,
                Role.ASSISTANT,
                text,
                token_estimate=estimate_tokens(text),
            )
            if message_id is None:
                logger.warning(f"Assistant reply for {conversation_id} was not saved")

            last = stream.last_chunk
            yield _sse(
                StreamEvent(
                    done=True,
                    status=StreamStatus.COMPLETE,
                    tokens_per_second=last.tokens_per_second if last else "0.00",
                    total_tokens=stream.total_tokens,
                    conversation_id=conversation_id,
                    message_id=message_id,
                )
            )
        except UpstreamStreamError as e:
            logger.error(f"Generation failed for conversation {conversation_id}: {e}")
            yield _sse(
                StreamEvent(
                    done=True,
                    status=StreamStatus.ERROR,
                    error=FALLBACK_MESSAGE,
                    total_tokens=stream.total_tokens,
                    conversation_id=conversation_id,
                )
            )
        finally:
            await stream.aclose()
            services.locks.release(conversation_id, lock_token)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
