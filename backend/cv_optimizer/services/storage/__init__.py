from cv_optimizer.services.storage.conversation_store import (
    ConversationStore,
    generate_conversation_id,
    sanitize_conversation_id,
)
from cv_optimizer.services.storage.preference_store import PreferenceStore

__all__ = [
    "ConversationStore",
    "PreferenceStore",
    "generate_conversation_id",
    "sanitize_conversation_id",
]
