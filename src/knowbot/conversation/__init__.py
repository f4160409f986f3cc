from knowbot.conversation.sql_store import SqlConversationStore
from knowbot.conversation.store import AbstractConversationStore
from knowbot.conversation.types import ConversationTurn, SenderRole

__all__ = [
    "AbstractConversationStore",
    "ConversationTurn",
    "SenderRole",
    "SqlConversationStore",
]
