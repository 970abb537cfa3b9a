"""对话编排核心模块。

每个入站事件的处理流程：

1. 取得会话（不存在则创建，首条为 system 提示）。
2. 以 "/" 开头的文本交给 CommandRouter，回复后结束，不调用补全服务。
3. 否则组装一条 user 消息：文本直接成为 TextContent；附件先下载字节，
   再交给 ContentExtractor 转为内容项。
4. user 消息写入会话。
5. 以完整历史调用补全服务（工具自动调用）。
6. assistant 消息写入会话。
7. 以富文本模式把回复发回聊天。

同一 chat_id 的事件在 KeyedLocks 下串行执行，保证「user 写入 → 补全 → assistant 写入」
不会与同一会话的另一事件交错；不同 chat_id 并发执行。

步骤 3-6 处于恢复边界内：失败时记录日志，并（默认）给用户发送一条致歉消息，
关闭 send_failure_notice 时异常原样向上抛出。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from uuid import uuid4
import logging
import time

from chat_gateway.agents.completion import CompletionService
from chat_gateway.domain.exceptions import BusinessError, ModelInvocationError
from chat_gateway.domain.models import ChatMessage, ContentItem, TextContent
from chat_gateway.domain.session import SessionStore
from chat_gateway.gateway.commands import CommandRouter, is_command
from chat_gateway.gateway.extractor import ContentExtractor
from chat_gateway.infrastructure.locks import KeyedLocks
from chat_gateway.infrastructure.logging.logger import log_event

if TYPE_CHECKING:
    from chat_gateway.transport.events import InboundEvent
    from chat_gateway.transport.telegram_client import AttachmentFetcher, MessageTransport


FAILURE_TEXT = (
    "Lo siento, no he podido procesar tu mensaje en este momento. "
    "Por favor, inténtalo de nuevo más tarde."
)


@dataclass
class OrchestratorConfig:
    reply_parse_mode: Optional[str] = "Markdown"
    send_failure_notice: bool = True
    failure_text: str = FAILURE_TEXT


class ConversationOrchestrator:
    def __init__(
        self,
        store: SessionStore,
        completion: CompletionService,
        transport: "MessageTransport",
        fetcher: "AttachmentFetcher",
        extractor: Optional[ContentExtractor] = None,
        commands: Optional[CommandRouter] = None,
        locks: Optional[KeyedLocks] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self._store = store
        self._completion = completion
        self._transport = transport
        self._fetcher = fetcher
        self._extractor = extractor or ContentExtractor()
        self._commands = commands or CommandRouter(store)
        self._locks = locks or KeyedLocks()
        self._config = config or OrchestratorConfig()

    async def handle(self, event: "InboundEvent") -> Optional[str]:
        """处理一个入站事件，返回发给用户的文本（未回复时为 None）。"""

        start_time = time.time()
        chat_id = event.chat_id
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "chat_id": chat_id,
            "kind": event.kind,
        }
        async with self._locks.hold(chat_id):
            self._store.get_or_create(chat_id)

            if event.kind == "text" and is_command(event.text):
                reply = self._commands.handle(chat_id, event.text)
                await self._transport.send_message(chat_id, reply.text)
                return reply.text

            try:
                reply_text = await self._converse(event, log_ctx)
            except Exception as exc:
                self._log(
                    logging.ERROR,
                    "Conversation turn failed",
                    log_ctx,
                    error=str(exc),
                    error_code=getattr(exc, "code", type(exc).__name__),
                    notify=self._config.send_failure_notice,
                )
                if not self._config.send_failure_notice:
                    raise
                await self._transport.send_message(chat_id, self._config.failure_text)
                return self._config.failure_text

            if reply_text is None:
                return None
            await self._transport.send_message(chat_id, reply_text, parse_mode=self._config.reply_parse_mode or None)

        self._log(
            logging.INFO,
            "Completed conversation turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return reply_text

    async def _converse(self, event: "InboundEvent", log_ctx: Dict[str, Any]) -> Optional[str]:
        items = await self._collect_content(event, log_ctx)
        if not items:
            self._log(logging.INFO, "Ignored event without content", log_ctx)
            return None

        user_message = ChatMessage(role="user", items=items, meta=self._event_meta(event))
        self._store.append(event.chat_id, user_message)
        session = self._store.get(event.chat_id)
        self._log(logging.INFO, "Stored user message", log_ctx, item_count=len(items), history=len(session.history))

        assistant_message = await self._completion.complete(list(session.history), log_ctx)
        if not assistant_message.text.strip():
            # 空回复（如 content_filter）不写入历史，交给恢复边界处理
            raise ModelInvocationError(
                code="EMPTY_RESPONSE",
                message="completion returned no text",
                chat_id=event.chat_id,
            )
        self._store.append(event.chat_id, assistant_message)
        self._log(
            logging.INFO,
            "Stored assistant message",
            log_ctx,
            history=len(session.history),
            tool_rounds=assistant_message.meta.get("tool_rounds"),
        )
        return assistant_message.text

    async def _collect_content(self, event: "InboundEvent", log_ctx: Dict[str, Any]) -> List[ContentItem]:
        if event.kind == "text":
            return [TextContent(text=event.text)] if event.text else []
        if event.is_attachment:
            if not event.file_id:
                raise BusinessError(code="ATTACHMENT_WITHOUT_FILE", message="attachment event carries no file_id")
            data = await self._fetcher.fetch(event.file_id)
            self._log(logging.INFO, "Fetched attachment", log_ctx, file_id=event.file_id, size=len(data))
            return await self._extractor.extract(event.kind, data, event.caption)
        # 不支持的附件类型只保留说明文字
        return [TextContent(text=event.caption)] if event.caption else []

    @staticmethod
    def _event_meta(event: "InboundEvent") -> Dict[str, Any]:
        meta: Dict[str, Any] = {"chat_id": event.chat_id, "kind": event.kind}
        if event.message_id is not None:
            meta["message_id"] = event.message_id
        if event.document_name:
            meta["document_name"] = event.document_name
        return meta

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        log_event(level, message, log_ctx, **fields)
