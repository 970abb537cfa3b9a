"""附件内容抽取。

把一个已下载的附件转换为若干内容项：
- document: 按页顺序抽取 PDF 文本，和说明文字合并成一个 TextContent。
- photo: 说明文字（可能为空）+ 图片字节。
其他类型的附件不产生内容项。
"""

import asyncio
from io import BytesIO
from typing import List, Optional, Sequence, TYPE_CHECKING

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from chat_gateway.domain.exceptions import ExtractionError
from chat_gateway.domain.models import ContentItem, ImageContent, TextContent

if TYPE_CHECKING:
    from chat_gateway.transport.events import PhotoVariant


# 说明文字在前，抽取的正文在后
DOCUMENT_TEMPLATE = "{caption}\n\n{text}"
DEFAULT_IMAGE_MIME_TYPE = "image/png"


def select_photo_variant(variants: Sequence["PhotoVariant"]) -> "PhotoVariant":
    """选出分辨率最高的图片版本。

    Telegram 按从小到大的顺序给出各个尺寸，最后一个就是最大的；
    顺序被打乱时按像素面积兜底。
    """

    if not variants:
        raise ValueError("photo has no size variants")
    last = variants[-1]
    largest = max(variants, key=lambda v: v.width * v.height)
    if largest.width * largest.height > last.width * last.height:
        return largest
    return last


def read_pdf_text(data: bytes) -> str:
    """按页顺序拼接 PDF 每一页的文本。"""

    try:
        reader = PdfReader(BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError) as exc:
        raise ExtractionError(code="PDF_READ_ERROR", message=str(exc)) from exc
    return "".join(pages)


class ContentExtractor:
    def __init__(self, image_mime_type: str = DEFAULT_IMAGE_MIME_TYPE):
        self._image_mime_type = image_mime_type

    async def extract(self, kind: str, data: bytes, caption: Optional[str] = None) -> List[ContentItem]:
        if kind == "document":
            text = await asyncio.to_thread(read_pdf_text, data)
            return [TextContent(text=self.render_document(caption, text))]
        if kind == "photo":
            return [
                TextContent(text=caption or ""),
                ImageContent(data=data, mime_type=self._image_mime_type),
            ]
        return []

    @staticmethod
    def render_document(caption: Optional[str], text: str) -> str:
        if not caption:
            return text
        return DOCUMENT_TEMPLATE.format(caption=caption, text=text)
