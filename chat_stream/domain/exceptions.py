"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与用户提示。

层级：

- TransportError: 连接失败或非 2xx 状态，对当前轮次是致命的，会话层回滚后原样抛出。
  - NetworkError / ApiError / RateLimitError
- DecodeError: 单帧 payload 无法解析，只记录日志，不会中断流。
- ProtocolViolationError: 状态机被误用（例如没有打开的轮次却写入增量），属于代码缺陷。
- ValidationError: 输入校验失败，发生在任何状态修改之前，可修正后重试。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "EMPTY_INPUT"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 endpoint、frame 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """传输层错误的基类：请求未能完整送达或响应未能完整读取。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、超时、读流中断等。"""


class ApiError(TransportError):
    """服务端返回非 2xx 状态时抛出。"""


class RateLimitError(ApiError):
    """服务端限流（429），重试/退避策略由上层决定。"""


class DecodeError(BusinessError):
    """单帧 payload 解码失败。"""


class ProtocolViolationError(BusinessError):
    """会话状态机被误用。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
