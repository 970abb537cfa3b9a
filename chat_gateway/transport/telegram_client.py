"""Telegram Bot API 客户端。

只实现网关用到的几个方法：
- getMe / getUpdates: 启动自检与长轮询。
- sendMessage: 回复（超长文本自动分段，Markdown 解析失败时退回纯文本）。
- getFile + 文件下载: 作为附件获取器（AttachmentFetcher）把 file_id 解析为原始字节。

Bot API 统一返回 {"ok": bool, "result": ..., "description": ...}，
这里把 ok=false 与网络错误统一包装为 TransportError / AttachmentFetchError。
"""

from typing import Any, Dict, List, Optional, Protocol

import httpx

from chat_gateway.config.settings import settings
from chat_gateway.domain.exceptions import AttachmentFetchError, TransportError, ValidationError
from chat_gateway.infrastructure.logging.logger import logger


MAX_MESSAGE_LENGTH = 4096
PARSE_ERROR_HINT = "can't parse entities"


class AttachmentFetcher(Protocol):
    async def fetch(self, file_id: str) -> bytes:
        ...


class MessageTransport(Protocol):
    async def send_message(self, chat_id: int, text: str, parse_mode: Optional[str] = None) -> List[Dict[str, Any]]:
        ...


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """按 Telegram 单条消息长度上限切分文本，尽量在换行处断开。"""

    chunks: List[str] = []
    rest = text
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(rest[:cut])
        rest = rest[cut:].lstrip("\n")
    if rest:
        chunks.append(rest)
    return chunks


class TelegramClient:
    name = "telegram"

    def __init__(self, cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._settings = cfg
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            # 长轮询本身会占用 polling_timeout 秒，读超时需要留出余量
            timeout = max(self._settings.http_timeout, self._settings.polling_timeout + 10)
            self._client = httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return self._client

    def _token(self) -> str:
        token = getattr(self._settings, "telegram_bot_token", None)
        if not token:
            raise ValidationError(code="MISSING_BOT_TOKEN", message="TELEGRAM_BOT not set")
        return token

    def _method_url(self, method: str) -> str:
        return f"{self._settings.telegram_base_url}/bot{self._token()}/{method}"

    def _file_url(self, file_path: str) -> str:
        return f"{self._settings.telegram_base_url}/file/bot{self._token()}/{file_path}"

    async def _call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp = await self.client.post(self._method_url(method), json=payload or {})
        except httpx.RequestError as e:
            raise TransportError(code="NETWORK_ERROR", message=str(e), method=method)
        try:
            data = resp.json()
        except ValueError:
            raise TransportError(
                code="TELEGRAM_BAD_RESPONSE",
                message=resp.text,
                http_status=resp.status_code,
                method=method,
            )
        if resp.status_code >= 400 or not data.get("ok"):
            raise TransportError(
                code="TELEGRAM_API_ERROR",
                message=data.get("description") or resp.text,
                http_status=resp.status_code,
                method=method,
            )
        return data.get("result")

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def get_updates(self, offset: Optional[int] = None, timeout: Optional[int] = None) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {
            "timeout": self._settings.polling_timeout if timeout is None else timeout,
            "allowed_updates": ["message"],
        }
        if offset is not None:
            payload["offset"] = offset
        return await self._call("getUpdates", payload) or []

    async def send_message(self, chat_id: int, text: str, parse_mode: Optional[str] = None) -> List[Dict[str, Any]]:
        if not text or not text.strip():
            logger.warning("Skipped empty outbound message", extra={"extra": {"chat_id": chat_id}})
            return []
        sent: List[Dict[str, Any]] = []
        for chunk in split_message(text):
            payload: Dict[str, Any] = {"chat_id": chat_id, "text": chunk}
            if parse_mode:
                payload["parse_mode"] = parse_mode
            try:
                sent.append(await self._call("sendMessage", payload))
            except TransportError as e:
                if not parse_mode or e.http_status != 400 or PARSE_ERROR_HINT not in e.message:
                    raise
                logger.warning(
                    "Rich text rejected, resending as plain text",
                    extra={"extra": {"chat_id": chat_id, "parse_mode": parse_mode, "error": e.message}},
                )
                payload.pop("parse_mode")
                sent.append(await self._call("sendMessage", payload))
        return sent

    async def fetch(self, file_id: str) -> bytes:
        """把 file_id 解析为原始字节（getFile + 下载）。"""

        try:
            info = await self._call("getFile", {"file_id": file_id})
        except TransportError as e:
            raise AttachmentFetchError(code="FILE_INFO_ERROR", message=e.message, file_id=file_id) from e
        file_path = (info or {}).get("file_path")
        if not file_path:
            raise AttachmentFetchError(code="FILE_PATH_MISSING", message="getFile returned no file_path", file_id=file_id)
        try:
            resp = await self.client.get(self._file_url(file_path))
        except httpx.RequestError as e:
            raise AttachmentFetchError(code="NETWORK_ERROR", message=str(e), file_id=file_id) from e
        if resp.status_code >= 400:
            raise AttachmentFetchError(
                code="FILE_DOWNLOAD_ERROR",
                message=resp.text,
                http_status=resp.status_code,
                file_id=file_id,
            )
        return resp.content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
