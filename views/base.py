"""消费者适配器基类

每个界面子系统 (世界/市场/竞技场/资料) 作为一个消费者:
- mount 时订阅所需的消息类型，并发出挂载请求
- unmount 时取消全部订阅 (幂等)
- 维护服务端权威状态的本地投影

投影更新通过按消息类型可替换的合并函数完成，默认整体替换 (replace)。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from net.protocol import Message, MsgType, type_name
from net.router import MessageRouter, SubscriptionHandle

logger = logging.getLogger(__name__)

# 合并函数: (当前投影, 新数据) -> 新投影
MergeFn = Callable[[Any, Any], Any]
ChangeListener = Callable[["ConsumerAdapter", str], None]


def replace(current: Any, incoming: Any) -> Any:
    """整体替换"""
    return incoming


class ConsumerAdapter:
    """消费者适配器基类

    子类通过 handlers() 声明 {消息类型: 处理方法}，通过 on_mount() 发出挂载请求。

    Args:
        router: 共享的消息路由器
        merges: 按消息类型覆盖合并函数，例如 {"worldUpdate": merge_by_id}
    """

    name: str = "adapter"

    def __init__(self, router: MessageRouter, *,
                 merges: dict[MsgType | str, MergeFn] | None = None):
        self.router = router
        self._merges: dict[str, MergeFn] = {
            type_name(k): v for k, v in (merges or {}).items()
        }
        self._handles: list[SubscriptionHandle] = []
        self._listeners: list[ChangeListener] = []
        self._mounted = False

    # ==================== 生命周期 ====================

    @property
    def mounted(self) -> bool:
        return self._mounted

    def handlers(self) -> dict[MsgType, Callable[[Message], None]]:
        """子类声明订阅的消息类型"""
        return {}

    def on_mount(self) -> None:
        """挂载后发出的请求 (默认无)"""

    def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        for msg_type, handler in self.handlers().items():
            self._handles.append(self.router.subscribe(msg_type, handler))
        logger.debug("%s mounted with %d subscription(s)", self.name, len(self._handles))
        self.on_mount()

    def unmount(self) -> None:
        self._mounted = False
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.unsubscribe()

    # ==================== 投影 ====================

    def add_listener(self, listener: ChangeListener) -> None:
        """投影变化后通知 (listener(adapter, 投影名))"""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _merge(self, msg_type: MsgType | str, current: Any, incoming: Any) -> Any:
        return self._merges.get(type_name(msg_type), replace)(current, incoming)

    def _update(self, attr: str, msg_type: MsgType | str, incoming: Any) -> None:
        setattr(self, attr, self._merge(msg_type, getattr(self, attr), incoming))
        self._notify(attr)

    def _notify(self, projection: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, projection)
            except Exception:
                logger.exception("%s listener failed", self.name)

    def _validate(self, validator: Callable[[Any], Any], data: Any,
                  msg_type: MsgType | str) -> Any | None:
        """校验入站 payload，返回校验结果；不合法时记录日志并返回 None

        validator 通常是 Model.model_validate 或 TypeAdapter.validate_python
        """
        try:
            return validator(data)
        except ValidationError as e:
            logger.warning("%s ignoring invalid %s payload: %d error(s)",
                           self.name, type_name(msg_type), e.error_count())
            return None

    def _send(self, send: Callable[[], bool], what: str) -> bool:
        sent = send()
        if not sent:
            logger.info("%s: %s not sent (channel not ready)", self.name, what)
        return sent
