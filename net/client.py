"""WebSocket 游戏客户端

功能:
- 显式构造唯一的通道和路由器，并注入给各视图 (不使用隐藏单例)
- 挂载世界/市场/竞技场/资料四个视图
- 断线自动重连由通道负责，视图对重连无感知
- shutdown 同步取消重连定时器并关闭连接
"""

from __future__ import annotations

import asyncio
import functools
import logging

from views import ArenaView, ConsumerAdapter, MarketView, ProfileView, WorldView

from .channel import ChannelState, ReconnectingChannel, Scheduler
from .config import ClientConfig
from .router import MessageRouter
from .transport import TransportFactory, WebSocketTransport

logger = logging.getLogger(__name__)


class GameClient:
    """Africa Universe 客户端会话

    职责:
    1. 按配置创建 ReconnectingChannel 与 MessageRouter
    2. 管理视图的挂载/卸载
    3. 提供启动、关闭和等待关闭的入口
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config or ClientConfig()
        if transport_factory is None:
            transport_factory = functools.partial(
                WebSocketTransport,
                open_timeout=self.config.open_timeout,
                ping_interval=self.config.ping_interval,
                max_size=self.config.max_message_size,
            )

        self.channel = ReconnectingChannel(
            self.config.url,
            retry_policy=self.config.retry_policy(),
            transport_factory=transport_factory,
            scheduler=scheduler,
        )
        self.router = MessageRouter(self.channel)

        self.profile = ProfileView(self.router)
        self.world = WorldView(self.router)
        self.market = MarketView(self.router)
        self.arena = ArenaView(self.router)

        self._stopped: asyncio.Event | None = None
        self.channel.add_readiness_listener(self._on_readiness)

    @property
    def views(self) -> list[ConsumerAdapter]:
        return [self.world, self.market, self.arena, self.profile]

    @property
    def is_ready(self) -> bool:
        return self.channel.is_ready

    @property
    def state(self) -> ChannelState:
        return self.channel.state

    # ==================== 生命周期 ====================

    def start(self) -> None:
        """挂载视图并开始连接

        视图先于连接挂载，挂载时的请求在未就绪时被丢弃 (与服务端无离线队列一致)，
        连接建立后由 _on_readiness 重新请求。
        """
        for view in self.views:
            view.mount()
        self.channel.start()

    def shutdown(self) -> None:
        """卸载视图并终止通道；可重复调用"""
        for view in self.views:
            view.unmount()
        self.channel.shutdown()
        if self._stopped is not None:
            self._stopped.set()

    async def aclose(self) -> None:
        """shutdown() 并等待底层连接彻底关闭"""
        for view in self.views:
            view.unmount()
        await self.channel.aclose()
        if self._stopped is not None:
            self._stopped.set()

    async def run_until_shutdown(self) -> None:
        """启动并一直运行到 shutdown() 被调用"""
        self._stopped = asyncio.Event()
        if self.channel.state == ChannelState.IDLE:
            self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.aclose()

    # ==================== 内部 ====================

    def _on_readiness(self, ready: bool) -> None:
        if not ready:
            logger.info("Channel not ready, views keep their last projection")
            return
        # 每次连接建立后重新拉取需要主动请求的数据
        for view in self.views:
            if view.mounted:
                view.on_mount()
