from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SenderRole(StrEnum):
    USER = "USER"
    BOT = "BOT"


@dataclass(frozen=True)
class ConversationTurn:
    role: SenderRole
    content: str
    created_at: datetime
