"""Import all models so Base.metadata knows every table."""
from case_chat.infrastructure.db.models.conversation import ConversationModel
from case_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "ConversationModel",
    "MessageModel",
]
