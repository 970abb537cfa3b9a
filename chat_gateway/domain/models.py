"""统一的对话与结果数据模型。

本模块定义了网关内部在编排层与补全服务之间共享的标准数据结构：

- TextContent / ImageContent: 一条消息中的单个内容项（文本或图片）。
- ChatMessage: 一条对话消息（system/user/assistant/tool），可携带多个内容项，
  例如「图片说明 + 图片」。
- ChatRequest: 发给补全服务 Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

PDF 等文档不是独立的内容类型：抽取出的文本统一落在 TextContent 里，
因为补全服务只接受文本与图片两种模态。
"""

import base64
from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, Union, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from chat_gateway.tools.definitions import ToolCall, ToolDef


# 消息角色类型（与 OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class TextContent:
    """文本内容项。"""

    text: str


@dataclass
class ImageContent:
    """图片内容项：原始字节 + 声明的媒体类型。"""

    data: bytes
    mime_type: str

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


ContentItem = Union[TextContent, ImageContent]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant。
    - items: 有序的内容项列表（文本、图片）。
    - meta: 附加元数据（chat_id、附件类型、token 统计等），不直接发给 Provider，
      主要用于日志。
    - tool_calls: 当 role 为 "assistant" 且模型触发工具调用时，
      这里保存模型发起的工具调用列表。
    - tool_call_id: 当 role 为 "tool" 时，用于关联某一次工具调用。
    """

    role: Role
    items: List[ContentItem] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def from_text(cls, role: Role, text: str, **kwargs: Any) -> "ChatMessage":
        return cls(role=role, items=[TextContent(text=text)], **kwargs)

    @property
    def text(self) -> str:
        """所有文本内容项按顺序拼接后的结果（忽略图片）。"""

        return "".join(item.text for item in self.items if isinstance(item, TextContent))

    @property
    def images(self) -> List[ImageContent]:
        return [item for item in self.items if isinstance(item, ImageContent)]


@dataclass
class ChatRequest:
    """一次完整的补全请求。

    CompletionService 会把会话历史整理成 ChatRequest，再交给具体 ProviderClient。
    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "azure"
    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    # 工具定义列表：模型可在生成过程中自主调用
    tools: Optional[List["ToolDef"]] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前只用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次补全调用的最终结果。

    - provider: 逻辑 Provider 名（如 "azure"）。
    - model: 逻辑模型名（如 "chat"）。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
