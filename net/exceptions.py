"""网络层异常模块

定义会话层的各类异常，提供明确的错误类型和信息。

错误分类:
- TransportFailure: 套接字错误或异常断开，由通道自动重连恢复
- DecodeFailure: 入站帧格式错误或缺少 type，记录日志后丢弃
- InvalidStateTransition: 非法的通道状态转换（编程错误）
- InvalidRequestError: 出站请求缺少 type 或字段不合法

未就绪时发送 (SendWhileUnready) 不是异常: 记录警告并返回 False。
未知消息类型也不是错误: 没有处理器被调用而已。
"""

from __future__ import annotations

from typing import Any


class NetError(Exception):
    """网络层异常基类

    所有会话层异常都继承此类，提供统一的 message / details 接口。
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """初始化异常

        Args:
            message: 错误消息
            details: 额外的错误详情（可选）
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class TransportFailure(NetError):
    """传输层故障

    底层连接出错或被异常关闭。通道通过 Waiting → Connecting 循环自动恢复，
    消费者只会看到就绪标志的变化。
    """

    def __init__(self, message: str | None = None, cause: BaseException | None = None,
                 url: str | None = None):
        if message is None:
            message = "Transport failure"
        details: dict[str, Any] = {}
        if url:
            details["url"] = url
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, details)
        self.cause = cause
        self.url = url


class DecodeFailure(NetError):
    """入站帧解码失败

    非法 JSON、非对象、缺少 type 字段时由 MessageRouter.decode 抛出，
    路由器记录日志并丢弃该帧，不会传递给消费者。
    """

    # 日志中保留的原始帧最大长度
    PREVIEW_LIMIT = 120

    def __init__(self, reason: str, raw: str | bytes | None = None):
        details: dict[str, Any] = {}
        if raw is not None:
            preview = raw if isinstance(raw, str) else repr(raw)
            if len(preview) > self.PREVIEW_LIMIT:
                preview = preview[: self.PREVIEW_LIMIT] + "..."
            details["frame"] = preview
        super().__init__(f"Cannot decode frame: {reason}", details)
        self.reason = reason
        self.raw = raw


class InvalidStateTransition(NetError):
    """非法通道状态转换

    例如从 WAITING 直接进入 OPEN (必须先经过 CONNECTING)。
    """

    def __init__(self, current_state: Any, target_state: Any):
        current = getattr(current_state, "name", str(current_state))
        target = getattr(target_state, "name", str(target_state))
        super().__init__(
            f"Invalid channel state transition: {current} → {target}",
            {"current_state": current, "target_state": target},
        )
        self.from_state = current_state
        self.to_state = target_state


class InvalidRequestError(NetError, ValueError):
    """出站请求不合法

    publish 只校验 type 是否存在；类型化的便捷方法会额外校验各自的字段。
    """

    def __init__(self, message: str, request_type: str | None = None,
                 errors: list[Any] | None = None):
        details: dict[str, Any] = {}
        if request_type:
            details["request_type"] = request_type
        if errors:
            details["errors"] = errors
        super().__init__(message, details)
        self.request_type = request_type
        self.errors = errors or []
