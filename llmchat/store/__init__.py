"""Conversation persistence.

Components:
    - backend: SQLAlchemy Core tables behind a small table API
    - conversation_store: fail-soft CRUD scoped to the current identity
    - config: database URL and retry settings
"""

from llmchat.store.backend import PersistenceBackend, SqlBackend
from llmchat.store.config import StoreConfig, get_store_config
from llmchat.store.conversation_store import (
    DEFAULT_TITLE,
    ConversationStore,
    derive_title,
)

__all__ = [
    "DEFAULT_TITLE",
    "ConversationStore",
    "PersistenceBackend",
    "SqlBackend",
    "StoreConfig",
    "derive_title",
    "get_store_config",
]
