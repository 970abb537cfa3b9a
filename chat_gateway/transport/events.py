"""入站事件模型。

把 Bot API 的 update JSON 归一化为 InboundEvent，只保留会话处理需要的字段。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from chat_gateway.gateway.extractor import select_photo_variant


EventKind = Literal["text", "document", "photo", "other"]


@dataclass
class PhotoVariant:
    """同一张图片的一个尺寸版本。"""

    file_id: str
    width: int
    height: int
    file_size: Optional[int] = None


@dataclass
class InboundEvent:
    chat_id: int
    kind: EventKind
    text: Optional[str] = None
    caption: Optional[str] = None
    file_id: Optional[str] = None
    photos: List[PhotoVariant] = field(default_factory=list)
    document_name: Optional[str] = None
    mime_type: Optional[str] = None
    message_id: Optional[int] = None
    update_id: Optional[int] = None

    @property
    def is_attachment(self) -> bool:
        return self.kind in ("document", "photo")

    @classmethod
    def from_update(cls, update: Dict[str, Any]) -> Optional["InboundEvent"]:
        """解析一条 update；不含 message 的 update（如回调、成员变动）返回 None。"""

        message = update.get("message")
        if not isinstance(message, dict) or "chat" not in message:
            return None
        base: Dict[str, Any] = {
            "chat_id": int(message["chat"]["id"]),
            "caption": message.get("caption"),
            "message_id": message.get("message_id"),
            "update_id": update.get("update_id"),
        }
        if "text" in message:
            return cls(kind="text", text=message["text"], **base)
        if "document" in message:
            doc = message["document"]
            return cls(
                kind="document",
                file_id=doc["file_id"],
                document_name=doc.get("file_name"),
                mime_type=doc.get("mime_type"),
                **base,
            )
        if message.get("photo"):
            photos = [
                PhotoVariant(
                    file_id=p["file_id"],
                    width=int(p.get("width", 0)),
                    height=int(p.get("height", 0)),
                    file_size=p.get("file_size"),
                )
                for p in message["photo"]
            ]
            return cls(
                kind="photo",
                file_id=select_photo_variant(photos).file_id,
                photos=photos,
                **base,
            )
        return cls(kind="other", **base)
