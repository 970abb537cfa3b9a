"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在编排层（ConversationOrchestrator）统一捕获、记录日志并给用户回复。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "ATTACHMENT_FETCH_ERROR"）。
        message: 可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 chat_id、file_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败（例如缺少 API 密钥）。"""


class NotFoundError(BusinessError):
    """对不存在的会话执行 append 等操作时抛出，属于调用方契约错误。"""


class AttachmentFetchError(BusinessError):
    """附件原始字节获取失败（getFile 或下载出错）。"""


class ExtractionError(BusinessError):
    """文档字节无法被解析为合法的 PDF。"""


class TransportError(BusinessError):
    """消息通道（Telegram Bot API）调用失败。"""


class ModelInvocationError(BusinessError):
    """补全服务调用失败（网络、鉴权、配额、响应格式异常）。"""


class NetworkError(ModelInvocationError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(ModelInvocationError):
    """补全服务返回非 2xx/429 错误时抛出。"""


class RateLimitError(ModelInvocationError):
    """补全服务限流错误，核心不做重试。"""
