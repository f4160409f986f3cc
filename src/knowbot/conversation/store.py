from abc import ABC, abstractmethod

from knowbot.conversation.types import ConversationTurn, SenderRole


class AbstractConversationStore(ABC):
    """Append-only persistence of conversations and their messages."""

    @abstractmethod
    def find_conversation(self, conversation_id: str) -> str | None:
        """Return the id if the conversation exists, ``None`` otherwise."""
        ...

    @abstractmethod
    def create_conversation(self, chatbot_id: str, title_hint: str) -> str: ...

    @abstractmethod
    def append_message(self, conversation_id: str, role: SenderRole, content: str) -> None: ...

    @abstractmethod
    def get_recent_messages(
        self,
        conversation_id: str,
        since_minutes_ago: int,
        max_count: int,
    ) -> list[ConversationTurn]:
        """Most recent turns inside the lookback window, oldest first."""
        ...

    @abstractmethod
    def count_messages(self, conversation_id: str) -> int: ...

    @abstractmethod
    def last_message(
        self, conversation_id: str, role: SenderRole | None = None
    ) -> ConversationTurn | None:
        """Newest message, optionally restricted to one sender."""
        ...
