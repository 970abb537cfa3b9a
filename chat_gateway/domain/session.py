from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Protocol

from .models import ChatMessage


@dataclass
class ConversationSession:
    """一个远端聊天对应的会话。

    history 的第一条始终是携带固定指令的 system 消息，只能随整个会话一起被清除。
    """

    id: int
    history: List[ChatMessage]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def system_message(self) -> ChatMessage:
        return self.history[0]


class SessionStore(Protocol):
    def get_or_create(self, session_id: int) -> ConversationSession:
        ...

    def get(self, session_id: int) -> ConversationSession:
        ...

    def clear(self, session_id: int) -> bool:
        ...

    def append(self, session_id: int, message: ChatMessage) -> None:
        ...

    def __contains__(self, session_id: object) -> bool:
        ...

    def __len__(self) -> int:
        ...
