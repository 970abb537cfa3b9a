"""进程内会话存储。

会话只在进程生命周期内存在，不做落盘；按 chat_id 区分会话。
映射本身由 threading.Lock 保护，多个会话任务（或线程）可以并发地创建、查找、删除会话；
同一会话内的顺序由编排层的 KeyedLocks 保证。
"""

import threading
from typing import Dict

from chat_gateway.domain.exceptions import NotFoundError
from chat_gateway.domain.models import ChatMessage
from chat_gateway.domain.session import ConversationSession, SessionStore
from chat_gateway.infrastructure.logging.logger import logger


class InMemorySessionStore(SessionStore):
    def __init__(self, system_prompt: str):
        self._system_prompt = system_prompt
        self._sessions: Dict[int, ConversationSession] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: int) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ConversationSession(
                    id=session_id,
                    history=[ChatMessage.from_text("system", self._system_prompt)],
                )
                self._sessions[session_id] = session
                created = True
            else:
                created = False
        if created:
            logger.info("Created session", extra={"extra": {"chat_id": session_id}})
        return session

    def get(self, session_id: int) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(code="SESSION_NOT_FOUND", message=str(session_id), http_status=404)
        return session

    def clear(self, session_id: int) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(
                "Cleared session",
                extra={"extra": {"chat_id": session_id, "dropped_messages": len(removed.history)}},
            )
        return removed is not None

    def append(self, session_id: int, message: ChatMessage) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError(code="SESSION_NOT_FOUND", message=str(session_id), http_status=404)
            session.history.append(message)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
