from typing import Callable, Dict, Any

from chat_gateway.infrastructure.logging.logger import logger
from .definitions import ToolCall, ToolResult


ToolFunc = Callable[[Dict[str, Any]], str]


class ToolExecutor:
    """按名称执行已注册的工具函数。

    工具本身的异常不会中断对话：以 "Error: ..." 文本作为工具结果交回模型。
    """

    def __init__(self, tools: Dict[str, ToolFunc]):
        self._tools = dict(tools)

    @property
    def names(self) -> list[str]:
        return sorted(self._tools)

    def execute(self, call: ToolCall) -> ToolResult:
        func = self._tools.get(call.name)
        if not func:
            return ToolResult(call_id=call.id, content="Tool not registered")
        try:
            result = func(call.arguments)
        except Exception as exc:
            logger.warning(
                "Tool raised",
                extra={"extra": {"tool_name": call.name, "tool_call_id": call.id, "error": str(exc)}},
            )
            result = f"Error: {exc}"
        return ToolResult(call_id=call.id, content=str(result))
