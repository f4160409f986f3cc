from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from knowbot.conversation.models import Conversation, Message
from knowbot.conversation.store import AbstractConversationStore
from knowbot.conversation.types import ConversationTurn, SenderRole
from knowbot.errors import ConversationStoreError
from knowbot.util.db import get_session

_logger = structlog.get_logger()

_TITLE_LENGTH = 50


def _to_turn(message: Message) -> ConversationTurn:
    return ConversationTurn(
        role=SenderRole(message.sender_type),
        content=message.content,
        created_at=message.created_at,
    )


class SqlConversationStore(AbstractConversationStore):
    """Conversation store on the configured SQLAlchemy engine.

    Database errors are re-raised as :class:`ConversationStoreError`.
    """

    def find_conversation(self, conversation_id: str) -> str | None:
        try:
            with get_session() as session:
                conversation = session.get(Conversation, conversation_id)
                return conversation.id if conversation else None
        except SQLAlchemyError as exc:
            raise ConversationStoreError(f"conversation lookup failed: {exc}") from exc

    def create_conversation(self, chatbot_id: str, title_hint: str) -> str:
        try:
            with get_session() as session:
                conversation = Conversation(chatbot_id=chatbot_id, title=title_hint[:_TITLE_LENGTH])
                session.add(conversation)
                session.commit()
                conversation_id = conversation.id
        except SQLAlchemyError as exc:
            raise ConversationStoreError(f"conversation creation failed: {exc}") from exc

        _logger.info("conversation_created", chatbot_id=chatbot_id, conversation_id=conversation_id)
        return conversation_id

    def append_message(self, conversation_id: str, role: SenderRole, content: str) -> None:
        try:
            with get_session() as session:
                session.add(
                    Message(
                        conversation_id=conversation_id,
                        sender_type=role.value,
                        content=content,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise ConversationStoreError(
                f"message append failed: {exc}", conversation_id=conversation_id
            ) from exc

    def get_recent_messages(
        self,
        conversation_id: str,
        since_minutes_ago: int,
        max_count: int,
    ) -> list[ConversationTurn]:
        since = datetime.now(UTC) - timedelta(minutes=since_minutes_ago)
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.created_at >= since)
            .order_by(Message.created_at.desc())
            .limit(max_count)
        )
        try:
            with get_session() as session:
                newest_first = session.scalars(stmt).all()
                return [_to_turn(m) for m in reversed(newest_first)]
        except SQLAlchemyError as exc:
            raise ConversationStoreError(
                f"history lookup failed: {exc}", conversation_id=conversation_id
            ) from exc

    def count_messages(self, conversation_id: str) -> int:
        stmt = select(func.count()).select_from(Message).where(
            Message.conversation_id == conversation_id
        )
        try:
            with get_session() as session:
                return int(session.scalar(stmt) or 0)
        except SQLAlchemyError as exc:
            raise ConversationStoreError(
                f"message count failed: {exc}", conversation_id=conversation_id
            ) from exc

    def last_message(
        self, conversation_id: str, role: SenderRole | None = None
    ) -> ConversationTurn | None:
        stmt = select(Message).where(Message.conversation_id == conversation_id)
        if role is not None:
            stmt = stmt.where(Message.sender_type == role.value)
        stmt = stmt.order_by(Message.created_at.desc()).limit(1)
        try:
            with get_session() as session:
                message = session.scalars(stmt).first()
                return _to_turn(message) if message else None
        except SQLAlchemyError as exc:
            raise ConversationStoreError(
                f"last message lookup failed: {exc}", conversation_id=conversation_id
            ) from exc
