from cv_optimizer.models.conversation import Conversation, ConversationSummary, Message
from cv_optimizer.models.preference import Preference

__all__ = ["Conversation", "ConversationSummary", "Message", "Preference"]
