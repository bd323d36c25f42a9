"""Conversation store: CRUD over conversations and messages for one identity.

Every operation is fail-soft. Backend outages, a missing identity and
conversations the identity does not own are logged and turned into
None / False / [] instead of exceptions, so UI-driven callers can treat
the store as fallible but non-raising.

Writes are last-write-wins; there is no versioning. Appending a message is
two explicit steps (insert, then touch the parent's ``updated_at``). If the
touch fails after its retries the message stays and the parent keeps its old
timestamp. Deleting removes messages before the conversation, so a failure
never leaves messages without a parent.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from llmchat.auth.identity import IdentityProvider
from llmchat.errors import NotFound, ProviderUnavailable, Unauthenticated
from llmchat.models.schemas import Conversation, Identity, Message, Role
from llmchat.store.backend import PersistenceBackend

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New conversation"
TITLE_MAX_LENGTH = 50

CONVERSATIONS = "conversations"
MESSAGES = "messages"


def derive_title(prompt: str) -> str:
    """Build a conversation title from its first prompt.

    Keeps the first 50 characters and appends "..." when the prompt is longer.
    """
    text = prompt.strip()
    if not text:
        return DEFAULT_TITLE
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore:
    """Fail-soft conversation persistence scoped to the current identity.

    Args:
        backend: Table-level persistence provider.
        identity_provider: Resolves the caller; rows are filtered by its id.
        touch_attempts: Tries for the timestamp update after an append.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        identity_provider: IdentityProvider,
        touch_attempts: int = 2,
    ) -> None:
        self._backend = backend
        self._identity_provider = identity_provider
        self._touch_attempts = max(1, touch_attempts)

    async def _require_identity(self) -> Identity:
        identity = await self._identity_provider.get_current_identity()
        if identity is None:
            raise Unauthenticated("No authenticated identity")
        return identity

    async def _require_owned(self, conversation_id: str, identity: Identity) -> dict[str, Any]:
        rows = await self._backend.select(
            CONVERSATIONS,
            filters={"id": conversation_id, "user_id": identity.id},
            limit=1,
        )
        if not rows:
            raise NotFound(f"Conversation {conversation_id} not found")
        return rows[0]

    async def _insert_conversation(self, identity: Identity, title_hint: str | None) -> str:
        now = _utcnow()
        conversation_id = str(uuid.uuid4())
        await self._backend.insert(
            CONVERSATIONS,
            {
                "id": conversation_id,
                "user_id": identity.id,
                "title": (title_hint or "").strip() or DEFAULT_TITLE,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info(f"Created conversation {conversation_id} for user {identity.id}")
        return conversation_id

    async def get_or_create_active_conversation(self, title_hint: str | None = None) -> str | None:
        """Return the newest conversation by creation time, creating one if none exist.

        Selection uses ``created_at``, not ``updated_at``: a conversation the
        user touched recently but created earlier is not picked.
        """
        try:
            identity = await self._require_identity()
            rows = await self._backend.select(
                CONVERSATIONS,
                filters={"user_id": identity.id},
                order_by="created_at",
                descending=True,
                limit=1,
            )
            if rows:
                return rows[0]["id"]
            return await self._insert_conversation(identity, title_hint)
        except (ProviderUnavailable, Unauthenticated) as e:
            logger.warning(f"Could not get or create active conversation: {e}")
            return None

    async def create_conversation(self, title_hint: str | None = None) -> str | None:
        """Create a new conversation; None on any failure or without identity."""
        try:
            identity = await self._require_identity()
            return await self._insert_conversation(identity, title_hint)
        except (ProviderUnavailable, Unauthenticated) as e:
            logger.warning(f"Could not create conversation: {e}")
            return None

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Look up one conversation with its message count."""
        try:
            identity = await self._require_identity()
            row = await self._require_owned(conversation_id, identity)
            count = await self._backend.count(
                MESSAGES, filters={"conversation_id": conversation_id}
            )
        except (ProviderUnavailable, Unauthenticated, NotFound) as e:
            logger.info(f"Conversation lookup failed: {e}")
            return None
        return Conversation(**row, message_count=count)

    async def append_message(
        self,
        conversation_id: str,
        role: Role | str,
        content: str,
        token_estimate: int | None = None,
        message_id: str | None = None,
    ) -> str | None:
        """Insert a message, then touch the parent conversation.

        Args:
            conversation_id: Parent conversation, must belong to the caller.
            role: "user" or "assistant".
            content: Message text, stored as given.
            token_estimate: Optional character-length token estimate.
            message_id: Caller-chosen id; generated when omitted.

        Returns:
            The message id, or None if the insert did not happen or the
            role is not a known role.
        """
        try:
            role = Role(role)
        except ValueError:
            logger.warning(f"Refusing message with unknown role {role!r} for {conversation_id}")
            return None
        message_id = message_id or str(uuid.uuid4())

        try:
            identity = await self._require_identity()
            await self._require_owned(conversation_id, identity)
            await self._backend.insert(
                MESSAGES,
                {
                    "id": message_id,
                    "conversation_id": conversation_id,
                    "role": role.value,
                    "content": content,
                    "tokens": token_estimate,
                    "created_at": _utcnow(),
                },
            )
        except (ProviderUnavailable, Unauthenticated, NotFound) as e:
            logger.warning(f"Could not save message to {conversation_id}: {e}")
            return None

        # Second step; a failure here leaves the message in place.
        await self.touch_conversation(conversation_id)
        return message_id

    async def touch_conversation(self, conversation_id: str) -> bool:
        """Set ``updated_at`` to now. Idempotent, retried on backend failure."""
        try:
            identity = await self._require_identity()
        except (ProviderUnavailable, Unauthenticated) as e:
            logger.warning(f"Could not touch conversation {conversation_id}: {e}")
            return False

        for attempt in range(1, self._touch_attempts + 1):
            try:
                updated = await self._backend.update(
                    CONVERSATIONS,
                    {"updated_at": _utcnow()},
                    filters={"id": conversation_id, "user_id": identity.id},
                )
            except ProviderUnavailable as e:
                logger.warning(
                    f"Timestamp update for {conversation_id} failed "
                    f"(attempt {attempt}/{self._touch_attempts}): {e}"
                )
                continue
            if not updated:
                logger.warning(f"Timestamp update found no conversation {conversation_id}")
                return False
            return True

        logger.error(f"Giving up on timestamp update for {conversation_id}")
        return False

    async def rename_conversation(self, conversation_id: str, new_title: str) -> bool:
        """Update title and ``updated_at`` together. Blank titles are rejected."""
        title = new_title.strip()
        if not title:
            logger.warning(f"Refusing blank title for conversation {conversation_id}")
            return False

        try:
            identity = await self._require_identity()
            updated = await self._backend.update(
                CONVERSATIONS,
                {"title": title, "updated_at": _utcnow()},
                filters={"id": conversation_id, "user_id": identity.id},
            )
            if not updated:
                raise NotFound(f"Conversation {conversation_id} not found")
        except (ProviderUnavailable, Unauthenticated, NotFound) as e:
            logger.warning(f"Could not rename conversation: {e}")
            return False
        return True

    async def list_conversations(self) -> list[Conversation]:
        """List the caller's conversations, most recently updated first."""
        try:
            identity = await self._require_identity()
            rows = await self._backend.select(
                CONVERSATIONS,
                filters={"user_id": identity.id},
                order_by="updated_at",
                descending=True,
            )
            counts = await self._backend.count_grouped(
                MESSAGES, "conversation_id", [row["id"] for row in rows]
            )
        except (ProviderUnavailable, Unauthenticated) as e:
            logger.warning(f"Could not list conversations: {e}")
            return []

        return [Conversation(**row, message_count=counts.get(row["id"], 0)) for row in rows]

    async def load_messages(self, conversation_id: str) -> list[Message]:
        """Load a conversation's messages, oldest first."""
        try:
            identity = await self._require_identity()
            await self._require_owned(conversation_id, identity)
            rows = await self._backend.select(
                MESSAGES,
                filters={"conversation_id": conversation_id},
                order_by="created_at",
            )
        except (ProviderUnavailable, Unauthenticated, NotFound) as e:
            logger.warning(f"Could not load messages for {conversation_id}: {e}")
            return []

        return [Message(**row) for row in rows]

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete messages, then the conversation.

        If the message delete fails the conversation is left untouched.
        """
        try:
            identity = await self._require_identity()
            await self._require_owned(conversation_id, identity)
        except (ProviderUnavailable, Unauthenticated, NotFound) as e:
            logger.warning(f"Could not delete conversation: {e}")
            return False

        try:
            removed = await self._backend.delete(
                MESSAGES, filters={"conversation_id": conversation_id}
            )
        except ProviderUnavailable as e:
            logger.error(f"Deleting messages of {conversation_id} failed: {e}")
            return False

        try:
            await self._backend.delete(
                CONVERSATIONS, filters={"id": conversation_id, "user_id": identity.id}
            )
        except ProviderUnavailable as e:
            logger.error(f"Deleting conversation {conversation_id} failed: {e}")
            return False

        logger.info(f"Deleted conversation {conversation_id} with {removed} messages")
        return True
