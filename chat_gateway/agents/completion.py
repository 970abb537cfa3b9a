"""补全服务编排。

对编排层而言，补全服务是一个整体边界：给定完整的会话历史，返回一条 assistant 消息。
工具调用（function calling）在边界内自动完成：

1. 携带工具定义调用 provider（tool_choice="auto"）。
2. 如果回复里有 tool_calls，执行工具并把结果作为 tool 消息追加到本次请求的消息列表。
3. 重复 1-2，最多 max_tool_rounds 轮；仍未得到最终回答时，
   追加一条提示并以 tool_choice="none" 强制模型直接作答。

工具调用的中间消息只存在于本次请求中，不写回会话历史。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import logging

from chat_gateway.domain.exceptions import ModelInvocationError
from chat_gateway.domain.models import ChatMessage, ChatRequest, ChatResult, ChatUsage
from chat_gateway.infrastructure.logging.logger import log_event, logger
from chat_gateway.providers.base import ProviderClient
from chat_gateway.tools.definitions import ToolDef
from chat_gateway.tools.executor import ToolExecutor


FINAL_HINT = (
    "Ya has completado todas las llamadas a herramientas necesarias. "
    "Responde ahora directamente al paciente con la información obtenida, "
    "sin proponer más acciones."
)


@dataclass
class CompletionConfig:
    provider: str
    model: str
    enable_tools: bool = True
    max_tool_rounds: int = 8  # 最大工具调用轮次（硬上限由配置控制）
    temperature: Optional[float] = None


class CompletionService:
    def __init__(
        self,
        provider_client: ProviderClient,
        tool_executor: Optional[ToolExecutor] = None,
        tool_defs: Optional[List[ToolDef]] = None,
        config: Optional[CompletionConfig] = None,
    ):
        self._provider_client = provider_client
        self._tool_executor = tool_executor
        self._tool_defs = tool_defs
        self._config = config or CompletionConfig(provider=provider_client.name, model="chat")

    @property
    def tools_enabled(self) -> bool:
        return bool(self._config.enable_tools and self._tool_executor and self._tool_defs)

    async def complete(self, history: Sequence[ChatMessage], log_ctx: Optional[Dict[str, Any]] = None) -> ChatMessage:
        """以完整历史调用补全服务，返回最终的 assistant 消息。"""

        log_ctx = dict(log_ctx or {})
        messages = list(history)
        if not self.tools_enabled:
            if self._config.enable_tools:
                logger.warning("Tool mode enabled but no tools available; fallback to simple run")
            result = await self._call(messages, log_ctx)
            return self._final_message(result, log_ctx, tool_rounds=0)

        max_rounds = self._config.max_tool_rounds
        for round_num in range(1, max_rounds + 1):
            log_event(logging.DEBUG, "Tool round", log_ctx, round=round_num, max_rounds=max_rounds)
            result = await self._call(messages, log_ctx, tools=self._tool_defs, tool_choice="auto")
            assistant_msg = self._first_message(result)
            if not assistant_msg.tool_calls:
                return self._final_message(result, log_ctx, tool_rounds=round_num - 1)

            log_event(logging.INFO, "Executing tool calls", log_ctx, call_count=len(assistant_msg.tool_calls))
            messages.append(assistant_msg)
            for tool_call in assistant_msg.tool_calls:
                log_event(
                    logging.INFO,
                    "Tool call received",
                    log_ctx,
                    tool_name=tool_call.name,
                    tool_call_id=tool_call.id,
                    tool_args=tool_call.arguments,
                )
                tool_result = self._tool_executor.execute(tool_call)
                log_event(
                    logging.INFO,
                    "Tool execution finished",
                    log_ctx,
                    tool_call_id=tool_call.id,
                    result_preview=(tool_result.content[:200] if tool_result.content else ""),
                )
                messages.append(
                    ChatMessage.from_text("tool", tool_result.content, tool_call_id=tool_call.id)
                )

        log_event(logging.WARNING, "Reached max tool rounds", log_ctx, max_rounds=max_rounds)
        result = await self._call(
            messages + [ChatMessage.from_text("system", FINAL_HINT)],
            log_ctx,
            tools=self._tool_defs,
            tool_choice="none",
        )
        message = self._final_message(result, log_ctx, tool_rounds=max_rounds)
        message.meta["forced_final"] = True
        return message

    async def _call(
        self,
        messages: List[ChatMessage],
        log_ctx: Dict[str, Any],
        tools: Optional[List[ToolDef]] = None,
        tool_choice: str = "auto",
    ) -> ChatResult:
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=messages,
            temperature=self._config.temperature,
            tools=tools,
            tool_choice=tool_choice,
        )
        log_event(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(messages),
        )
        return await self._provider_client.chat(req)

    def _final_message(self, result: ChatResult, log_ctx: Dict[str, Any], tool_rounds: int) -> ChatMessage:
        message = self._first_message(result)
        usage_meta = self._usage_meta_from_usage(result.usage)
        if usage_meta:
            log_event(logging.INFO, "Token usage", log_ctx, **usage_meta)
        return ChatMessage(
            role="assistant",
            items=list(message.items),
            meta={"provider": self._config.provider, "usage": usage_meta, "tool_rounds": tool_rounds},
        )

    @staticmethod
    def _first_message(result: ChatResult) -> ChatMessage:
        if not result.choices:
            raise ModelInvocationError(code="EMPTY_RESPONSE", message="completion returned no choices")
        return result.choices[0].message

    @staticmethod
    def _usage_meta_from_usage(usage: Optional[ChatUsage]) -> Dict[str, Any]:
        if not usage:
            return {}
        return {
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_tokens": usage.total_tokens,
        }
