"""WebSocket 传输层 (Transport Socket)

对单条全双工连接的薄封装:
- open(): 发起一次连接尝试 (每个实例只能 open 一次，对应一个连接纪元)
- send(): 未建立连接时静默丢弃，不报错、不缓冲、不重试
- close(): 同步请求关闭
- 通过 on_open / on_message / on_close 三个回调向上层报告事件

每个实例恰好发出一次终止信号 on_close(error)，之后不再发出任何信号。
error 为 None 表示正常关闭 (包括服务端发起的正常关闭)。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedOK

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)

OpenCallback = Callable[[], None]
MessageCallback = Callable[[str], None]
CloseCallback = Callable[["BaseException | None"], None]


class Transport(Protocol):
    """通道依赖的传输接口 (便于测试替身)"""

    @property
    def is_established(self) -> bool: ...

    def open(self) -> None: ...

    def send(self, payload: str) -> bool: ...

    def close(self) -> None: ...


class TransportFactory(Protocol):
    """为每个纪元创建一个全新传输实例"""

    def __call__(
        self,
        url: str,
        *,
        on_open: OpenCallback,
        on_message: MessageCallback,
        on_close: CloseCallback,
    ) -> Transport: ...


class SocketState(Enum):
    """传输实例状态"""
    NEW = "new"                 # 尚未 open
    CONNECTING = "connecting"   # 握手中
    ESTABLISHED = "established" # 可收发
    CLOSING = "closing"         # 已请求关闭
    CLOSED = "closed"           # 终止信号已发出


class WebSocketTransport:
    """基于 websockets 的传输实现

    Args:
        url: 服务端地址
        on_open: 连接建立回调
        on_message: 收到文本帧回调
        on_close: 终止回调 (恰好一次)
        open_timeout: 握手超时秒数
        ping_interval: websockets 协议层 keepalive 间隔，None 表示关闭
        max_size: 单帧最大字节数
    """

    def __init__(
        self,
        url: str,
        *,
        on_open: OpenCallback,
        on_message: MessageCallback,
        on_close: CloseCallback,
        open_timeout: float | None = 10.0,
        ping_interval: float | None = 20.0,
        max_size: int | None = 1_048_576,
    ):
        self.url = url
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval
        self._max_size = max_size

        self._state = SocketState.NEW
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task | None = None
        self._pending_sends: set[asyncio.Task] = set()

    @property
    def state(self) -> SocketState:
        return self._state

    @property
    def is_established(self) -> bool:
        return self._state == SocketState.ESTABLISHED and self._ws is not None

    # ==================== 生命周期 ====================

    def open(self) -> None:
        """发起连接 (必须在事件循环内调用)"""
        if self._state != SocketState.NEW:
            raise RuntimeError(f"transport already used (state={self._state.value})")
        self._state = SocketState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def close(self) -> None:
        """请求关闭连接

        握手完成前关闭时立即发出终止信号；已建立的连接在任务退出后异步发出。
        """
        if self._state in (SocketState.CLOSING, SocketState.CLOSED):
            return
        if self._state == SocketState.NEW:
            self._terminate(None)
            return
        handshaking = self._state == SocketState.CONNECTING and self._ws is None
        self._state = SocketState.CLOSING
        if self._task is not None:
            self._task.cancel()
        if handshaking:
            # 任务可能尚未开始执行，其 finally 不一定会运行
            self._terminate(None)

    async def wait_closed(self) -> None:
        """等待连接任务彻底结束"""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        error: BaseException | None = None
        try:
            async with connect(
                self.url,
                open_timeout=self._open_timeout,
                ping_interval=self._ping_interval,
                max_size=self._max_size,
            ) as ws:
                self._ws = ws
                if self._state != SocketState.CONNECTING:
                    return
                self._state = SocketState.ESTABLISHED
                logger.info("Connected to %s", self.url)
                self._on_open()
                async for raw in ws:
                    if isinstance(raw, bytes):
                        raw = raw.decode("utf-8")
                    self._on_message(raw)
        except asyncio.CancelledError:
            # close() 主动取消: 正常关闭
            pass
        except ConnectionClosedOK:
            pass
        except Exception as e:
            error = e
            logger.warning("Transport error on %s: %s", self.url, e)
        finally:
            self._ws = None
            self._terminate(error)

    def _terminate(self, error: BaseException | None) -> None:
        if self._state == SocketState.CLOSED:
            return
        self._state = SocketState.CLOSED
        for task in self._pending_sends:
            task.cancel()
        self._pending_sends.clear()
        self._on_close(error)

    # ==================== 发送 ====================

    def send(self, payload: str) -> bool:
        """发送一帧文本；未建立连接时静默丢弃

        Returns:
            是否已交给底层连接
        """
        if not self.is_established:
            return False
        # 任务按创建顺序启动，帧按 send 调用顺序写出
        task = asyncio.get_running_loop().create_task(self._ws.send(payload))
        self._pending_sends.add(task)
        task.add_done_callback(self._send_done)
        return True

    def _send_done(self, task: asyncio.Task) -> None:
        self._pending_sends.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # 连接失效会由接收循环发出终止信号
            logger.warning("Send failed on %s: %s", self.url, exc)
