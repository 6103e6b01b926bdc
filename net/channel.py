"""断线自动重连通道 (Reconnecting Channel)

持有连接生命周期:
- 每个连接纪元 (epoch) 创建一个全新的传输实例
- 传输关闭或出错 (不论原因) 后进入等待，延迟到期后重新连接
- 对上层提供稳定的 send() 和入站帧回调，上层感知不到换过几次底层连接

状态机::

    IDLE ─start()→ CONNECTING ─open→ OPEN ─close/error→ WAITING ─timer→ CONNECTING ...
                       └────────close/error──────────────→ WAITING
    任意非终止状态 ─shutdown()→ SHUT_DOWN (唯一终止状态)

同一时刻最多只有一个活跃传输；SHUT_DOWN 之后不再创建任何传输。
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .exceptions import InvalidStateTransition, TransportFailure
from .protocol import DEFAULT_URL
from .retry import FixedDelay, RetryPolicy
from .transport import Transport, TransportFactory, WebSocketTransport

logger = logging.getLogger(__name__)

FrameHandler = Callable[[str], None]
ReadinessListener = Callable[[bool], None]


class ChannelState(Enum):
    """通道状态"""
    IDLE = "idle"               # 已构造，尚未 start
    CONNECTING = "connecting"   # 已请求新传输
    OPEN = "open"               # 双向可用
    WAITING = "waiting"         # 两次尝试之间
    SHUT_DOWN = "shut_down"     # 终止，不再尝试


# 合法的状态转换表
# key: 当前状态, value: 允许转换到的目标状态集合
VALID_TRANSITIONS: dict[ChannelState, set[ChannelState]] = {
    ChannelState.IDLE: {ChannelState.CONNECTING, ChannelState.SHUT_DOWN},
    ChannelState.CONNECTING: {ChannelState.OPEN, ChannelState.WAITING, ChannelState.SHUT_DOWN},
    ChannelState.OPEN: {ChannelState.WAITING, ChannelState.SHUT_DOWN},
    ChannelState.WAITING: {ChannelState.CONNECTING, ChannelState.SHUT_DOWN},
    ChannelState.SHUT_DOWN: set(),
}


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """定时器来源；默认使用当前运行的事件循环"""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


@dataclass
class ConnectionEpoch:
    """一次持有活跃传输的尝试"""
    seq: int
    state: ChannelState = ChannelState.CONNECTING
    transport: Transport | None = None
    retry_handle: TimerHandle | None = None
    opened_at: float | None = None
    closed_at: float | None = None
    error: TransportFailure | None = field(default=None, repr=False)


class ReconnectingChannel:
    """断线自动重连的 WebSocket 通道

    Args:
        url: 服务端地址
        retry_policy: 重连延迟策略 (默认固定 3 秒)
        transport_factory: 每个纪元调用一次，创建传输实例
        scheduler: 提供 call_later 的定时器来源 (默认运行中的事件循环)
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        retry_policy: RetryPolicy | None = None,
        transport_factory: TransportFactory | None = None,
        scheduler: Scheduler | None = None,
    ):
        self._url = url
        self.retry_policy: RetryPolicy = retry_policy or FixedDelay()
        self._transport_factory: TransportFactory = transport_factory or WebSocketTransport
        self._scheduler = scheduler

        self._state = ChannelState.IDLE
        self._epoch: ConnectionEpoch | None = None
        self._epoch_count = 0
        self._attempt = 0  # 距上次成功打开以来的失败次数
        self._ready = False

        self._frame_handler: FrameHandler | None = None
        self._readiness_listeners: list[ReadinessListener] = []

    # ==================== 只读属性 ====================

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def epoch(self) -> ConnectionEpoch | None:
        """当前 (或最近一个) 连接纪元"""
        return self._epoch

    @property
    def epoch_count(self) -> int:
        """已创建的纪元数量"""
        return self._epoch_count

    # ==================== 订阅 ====================

    def on_frame(self, handler: FrameHandler | None) -> None:
        """注册唯一的入站帧接收者 (通常是 MessageRouter)"""
        self._frame_handler = handler

    def add_readiness_listener(self, listener: ReadinessListener) -> None:
        self._readiness_listeners.append(listener)

    def remove_readiness_listener(self, listener: ReadinessListener) -> None:
        if listener in self._readiness_listeners:
            self._readiness_listeners.remove(listener)

    # ==================== 生命周期 ====================

    def start(self) -> None:
        """开始第一次连接"""
        self._connect()

    def shutdown(self) -> None:
        """终止通道: 同步取消重连定时器并关闭活跃传输；可重复调用"""
        if self._state == ChannelState.SHUT_DOWN:
            return
        self._transition(ChannelState.SHUT_DOWN)
        epoch = self._epoch
        if epoch is not None:
            if epoch.retry_handle is not None:
                epoch.retry_handle.cancel()
                epoch.retry_handle = None
            if epoch.transport is not None:
                transport = epoch.transport
                epoch.transport = None
                transport.close()
            epoch.state = ChannelState.SHUT_DOWN
            if epoch.closed_at is None:
                epoch.closed_at = time.time()
        self._set_ready(False)
        logger.info("Channel to %s shut down after %d epoch(s)", self._url, self._epoch_count)

    async def aclose(self) -> None:
        """shutdown() 并等待最后一个传输彻底关闭"""
        transport = self._epoch.transport if self._epoch else None
        self.shutdown()
        wait_closed = getattr(transport, "wait_closed", None)
        if wait_closed is not None:
            await wait_closed()

    # ==================== 发送 ====================

    def send(self, payload: str) -> bool:
        """发送一帧；未 OPEN 时丢弃并记录警告，不排队、不重试、不抛异常

        Returns:
            是否已交给传输层 (不代表服务端已收到)
        """
        if self._state != ChannelState.OPEN or self._epoch is None or self._epoch.transport is None:
            logger.warning("Channel not open (state=%s), discarding outbound frame", self._state.value)
            return False
        return self._epoch.transport.send(payload)

    # ==================== 内部状态机 ====================

    def _transition(self, target: ChannelState) -> None:
        valid = VALID_TRANSITIONS.get(self._state, set())
        if target not in valid:
            raise InvalidStateTransition(self._state, target)
        logger.debug("Channel state: %s → %s", self._state.name, target.name)
        self._state = target
        if self._epoch is not None and target != ChannelState.SHUT_DOWN:
            self._epoch.state = target

    def _set_ready(self, ready: bool) -> None:
        if ready == self._ready:
            return
        self._ready = ready
        for listener in list(self._readiness_listeners):
            try:
                listener(ready)
            except Exception:
                logger.exception("Readiness listener failed")

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            return asyncio.get_running_loop()
        return self._scheduler

    def _connect(self) -> None:
        self._transition(ChannelState.CONNECTING)
        epoch = ConnectionEpoch(seq=self._epoch_count)
        self._epoch_count += 1
        self._epoch = epoch
        logger.info("Connecting to %s (epoch %d)", self._url, epoch.seq)
        try:
            epoch.transport = self._transport_factory(
                self._url,
                on_open=lambda: self._handle_open(epoch),
                on_message=lambda raw: self._handle_message(epoch, raw),
                on_close=lambda error: self._handle_close(epoch, error),
            )
            epoch.transport.open()
        except Exception as e:
            logger.error("Failed to start transport for %s: %s", self._url, e)
            transport, epoch.transport = epoch.transport, None
            self._handle_close(epoch, e)
            if transport is not None:
                # 通道已进入 WAITING，该传输随后发出的终止信号按过期纪元忽略
                try:
                    transport.close()
                except Exception as close_error:
                    logger.warning("Failed to close broken transport: %s", close_error)

    def _is_current(self, epoch: ConnectionEpoch) -> bool:
        return epoch is self._epoch and self._state in (ChannelState.CONNECTING, ChannelState.OPEN)

    def _handle_open(self, epoch: ConnectionEpoch) -> None:
        if not self._is_current(epoch) or self._state != ChannelState.CONNECTING:
            logger.debug("Ignoring open signal from stale epoch %d", epoch.seq)
            return
        self._transition(ChannelState.OPEN)
        epoch.opened_at = time.time()
        self._attempt = 0
        logger.info("Channel open (epoch %d)", epoch.seq)
        self._set_ready(True)

    def _handle_message(self, epoch: ConnectionEpoch, raw: str) -> None:
        if not self._is_current(epoch) or self._state != ChannelState.OPEN:
            logger.debug("Ignoring frame from stale epoch %d", epoch.seq)
            return
        if self._frame_handler is not None:
            self._frame_handler(raw)

    def _handle_close(self, epoch: ConnectionEpoch, error: BaseException | None) -> None:
        if not self._is_current(epoch):
            logger.debug("Ignoring close signal from stale epoch %d", epoch.seq)
            return
        epoch.transport = None
        epoch.closed_at = time.time()
        if error is not None:
            epoch.error = TransportFailure(cause=error, url=self._url)
        self._transition(ChannelState.WAITING)
        self._set_ready(False)
        if self._state != ChannelState.WAITING:
            # 就绪监听器可能已关闭通道
            return

        self._attempt += 1
        delay = self.retry_policy.next_delay(self._attempt)
        if error is not None:
            logger.warning("Disconnected from %s (%s), retrying in %.1fs", self._url, error, delay)
        else:
            logger.warning("Disconnected from %s, retrying in %.1fs", self._url, delay)
        epoch.retry_handle = self._get_scheduler().call_later(delay, self._retry, epoch)

    def _retry(self, epoch: ConnectionEpoch) -> None:
        if epoch is not self._epoch or self._state != ChannelState.WAITING:
            return
        epoch.retry_handle = None
        self._connect()
