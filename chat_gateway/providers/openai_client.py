"""OpenAI / Azure OpenAI Provider 适配器。

两者都使用 chat/completions 协议，差别只在 URL 与认证方式：
- OpenAI 兼容端点: {base_url}/chat/completions，Authorization: Bearer <api_key>
- Azure OpenAI: {endpoint}/openai/deployments/{deployment}/chat/completions?api-version=...，
  api-key: <api_key>

本模块负责「内部多模态 ChatMessage ⇄ chat/completions JSON」的转换：
文本内容项转为 text part，图片内容项转为 base64 data URI 的 image_url part。
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from chat_gateway.config.settings import settings
from chat_gateway.domain.exceptions import (
    ApiError,
    ModelInvocationError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from chat_gateway.domain.models import (
    ChatChoice,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatUsage,
    ImageContent,
    TextContent,
)
from chat_gateway.providers.registry import AZURE_CONFIG, OPENAI_CONFIG, ModelConfig, ProviderConfig
from chat_gateway.tools.definitions import ToolCall


class OpenAIClient:
    """OpenAI 兼容端点的客户端实现。"""

    name = "openai"
    provider_config: ProviderConfig = OPENAI_CONFIG

    def __init__(self, cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        # transport 仅用于测试时注入 httpx.MockTransport
        self._settings = cfg
        self._transport = transport

    async def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式补全调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并把网络错误/限流/服务端错误包装为 ModelInvocationError 子类。
        4. 使用统一的解析函数构造 ChatResult。
        """

        self._check_config()
        model_cfg = self.provider_config.model(req.model, getattr(self._settings, "deployment_name", None))
        payload = self._build_payload(req, model_cfg)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                trust_env=False,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    self._url(model_cfg),
                    params=self._params(),
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code, provider=self.name)
        try:
            data = resp.json()
        except ValueError:
            raise ModelInvocationError(code="BAD_RESPONSE", message=resp.text, provider=self.name)
        return self._parse_response(data, req)

    # ---- 端点差异 ----

    def _check_config(self) -> None:
        if not getattr(self._settings, "openai_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_APIKEY not set")

    def _url(self, model_cfg: ModelConfig) -> str:
        base = getattr(self._settings, "openai_base_url", None) or self.provider_config.base_url
        return f"{base}/chat/completions"

    def _params(self) -> Dict[str, str]:
        return {}

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    # ---- 请求构造 ----

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": [self._message_to_payload(m) for m in req.messages],
        }
        temperature = req.temperature if req.temperature is not None else model_cfg.default_temperature
        if temperature is not None:
            payload["temperature"] = temperature
        if req.top_p is not None:
            payload["top_p"] = req.top_p
        max_tokens = req.max_tokens or model_cfg.max_tokens
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if req.tools:
            payload["tools"] = [tool.to_schema() for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _message_to_payload(self, message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        content = self._content_to_payload(message)
        if content is not None:
            payload["content"] = content
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        return payload

    @staticmethod
    def _content_to_payload(message: ChatMessage) -> Any:
        """纯文本消息发字符串；带图片的消息发 content part 列表（空文本 part 丢弃）。"""

        if not message.images:
            text = message.text
            if not text and message.tool_calls:
                return None
            return text
        parts: List[Dict[str, Any]] = []
        for item in message.items:
            if isinstance(item, TextContent):
                if item.text:
                    parts.append({"type": "text", "text": item.text})
            elif isinstance(item, ImageContent):
                parts.append({"type": "image_url", "image_url": {"url": item.to_data_uri()}})
        return parts

    # ---- 响应解析 ----

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=self._build_chat_message(msg),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        """解析单条 message，兼容 tool_calls 与旧版 function_call 字段。"""

        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(payload.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._parse_arguments(func.get("arguments")),
                )
            )
        function_call = payload.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                )
            )
        return ChatMessage.from_text(
            payload.get("role") or "assistant",
            payload.get("content") or "",
            tool_calls=tool_calls or None,
            tool_call_id=payload.get("tool_call_id"),
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析工具调用的 arguments 字段。

        arguments 通常是 JSON 字符串，解析失败时保留原始字符串到 `_raw`。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}


class AzureOpenAIClient(OpenAIClient):
    """Azure OpenAI 客户端：按部署名路由，api-key 头认证。"""

    name = "azure"
    provider_config = AZURE_CONFIG

    def _check_config(self) -> None:
        super()._check_config()
        if not getattr(self._settings, "openai_endpoint", None):
            raise ValidationError(code="MISSING_ENDPOINT", message="OPENAI_ENDPOINT not set")

    def _url(self, model_cfg: ModelConfig) -> str:
        endpoint = self._settings.openai_endpoint.rstrip("/")
        return f"{endpoint}/openai/deployments/{model_cfg.provider_model}/chat/completions"

    def _params(self) -> Dict[str, str]:
        return {"api-version": self._settings.azure_api_version}

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self._settings.openai_api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        payload = super()._build_payload(req, model_cfg)
        # 部署名已经在 URL 里
        payload.pop("model", None)
        return payload
