"""getUpdates 长轮询与事件分发。

每条 message update 被转换为 InboundEvent，并作为独立的 asyncio 任务交给处理函数；
同一会话的顺序由处理函数内部的按 chat_id 加锁保证，这里不做串行化。
任务里逃逸的异常在这里记录后丢弃，不影响轮询循环。
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

from chat_gateway.domain.exceptions import BusinessError
from chat_gateway.infrastructure.logging.logger import logger
from chat_gateway.transport.events import InboundEvent
from chat_gateway.transport.telegram_client import TelegramClient


EventHandler = Callable[[InboundEvent], Awaitable[object]]


class UpdatePoller:
    def __init__(
        self,
        client: TelegramClient,
        handler: EventHandler,
        retry_delay: float = 3.0,
        max_retry_delay: float = 60.0,
    ):
        self._client = client
        self._handler = handler
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._offset: Optional[int] = None
        self._tasks: Set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    @property
    def offset(self) -> Optional[int]:
        return self._offset

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def stop(self) -> None:
        self._stopped.set()

    async def run(self) -> None:
        delay = self._retry_delay
        while not self._stopped.is_set():
            try:
                updates = await self._client.get_updates(offset=self._offset)
            except BusinessError as e:
                logger.warning(
                    "Polling failed, retrying",
                    extra={"extra": {"error": e.message, "code": e.code, "retry_in": delay}},
                )
                await self._sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
                continue
            delay = self._retry_delay
            self.dispatch_updates(updates)

    def dispatch_updates(self, updates) -> int:
        """调度一批 update，返回新建任务数。offset 总会推进到最后一条之后。"""

        scheduled = 0
        for update in updates:
            update_id = update.get("update_id")
            if update_id is not None:
                self._offset = max(self._offset or 0, int(update_id) + 1)
            try:
                event = InboundEvent.from_update(update)
            except (KeyError, TypeError, ValueError) as e:
                # 单条格式异常的 update 不能拖垮整批
                logger.warning(
                    "Skipped malformed update",
                    extra={"extra": {"update_id": update_id, "error": repr(e)}},
                )
                continue
            if event is None:
                continue
            self.dispatch(event)
            scheduled += 1
        return scheduled

    def dispatch(self, event: InboundEvent) -> asyncio.Task:
        task = asyncio.create_task(self._handler(event), name=f"chat-{event.chat_id}-{event.update_id}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def drain(self) -> None:
        """等待所有进行中的事件处理结束。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Event handling failed",
                exc_info=exc,
                extra={"extra": {"task": task.get_name(), "error": str(exc)}},
            )

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
