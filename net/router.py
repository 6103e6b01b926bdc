"""消息路由器 (Message Router)

通道入站帧的唯一读取者:
- decode: 原始帧 → Message (失败抛出 DecodeFailure)
- dispatch: 按 type 同步调用所有订阅者 (注册顺序)
- publish: 出站请求只校验 type 存在，然后交给通道发送

订阅以句柄表示，取消订阅幂等；分发过程中取消订阅不影响已调用的处理器，
尚未轮到的处理器不再被调用。
"""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .exceptions import DecodeFailure, InvalidRequestError
from .models import validate_envelope, validate_outbound
from .protocol import OUTBOUND_TYPES, Message, MsgType, OutboundRequest, encode_frame, type_name

if TYPE_CHECKING:
    from .channel import ReconnectingChannel

logger = logging.getLogger(__name__)

# 消息处理器类型
MessageHandler = Callable[[Message], None]


class SubscriptionHandle:
    """一条 (消息类型, 处理器) 订阅的句柄"""

    __slots__ = ("_router", "sub_id", "msg_type", "handler", "_active")

    def __init__(self, router: MessageRouter, sub_id: int, msg_type: str,
                 handler: MessageHandler):
        self._router = router
        self.sub_id = sub_id
        self.msg_type = msg_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """取消订阅 (幂等)"""
        self._router.unsubscribe(self)

    def __repr__(self) -> str:
        state = "active" if self._active else "removed"
        return f"<SubscriptionHandle #{self.sub_id} {self.msg_type} {state}>"


class MessageRouter:
    """按 type 分发入站消息，并把出站请求复用到同一通道上"""

    def __init__(self, channel: ReconnectingChannel):
        self._channel = channel
        self._subscriptions: dict[str, list[SubscriptionHandle]] = defaultdict(list)
        self._ids = itertools.count(1)
        self.decode_failures = 0
        channel.on_frame(self.feed)

    @property
    def channel(self) -> ReconnectingChannel:
        return self._channel

    # ==================== 入站 ====================

    def decode(self, raw: str | bytes) -> Message:
        """解码一帧

        Raises:
            DecodeFailure: 非法 JSON、非对象、type 缺失或不是非空字符串
        """
        try:
            fields = validate_envelope(raw)
        except ValidationError as e:
            reason = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'frame'}: {err['msg']}"
                for err in e.errors()
            )
            raise DecodeFailure(reason, raw) from e
        return Message(type=fields["type"], fields=fields)

    def feed(self, raw: str | bytes) -> None:
        """通道帧回调: 解码并分发；解码失败只记录日志"""
        try:
            message = self.decode(raw)
        except DecodeFailure as e:
            self.decode_failures += 1
            logger.warning("Dropping inbound frame: %s", e)
            return
        self.dispatch(message)

    def dispatch(self, message: Message) -> int:
        """同步调用 message.type 的所有订阅者

        Returns:
            实际调用的处理器数量
        """
        subscribers = list(self._subscriptions.get(message.type, ()))
        if not subscribers:
            if message.known:
                logger.debug("No subscriber for message type: %s", message.type)
            else:
                logger.debug("Unknown message type: %s", message.type)
            return 0

        invoked = 0
        for sub in subscribers:
            if not sub.active:
                continue
            invoked += 1
            try:
                sub.handler(message)
            except Exception:
                logger.exception("Handler %r failed for message type %s",
                                 sub.handler, message.type)
        return invoked

    # ==================== 订阅 ====================

    def subscribe(self, msg_type: MsgType | str, handler: MessageHandler) -> SubscriptionHandle:
        """订阅一种消息类型；同一类型可以有多个订阅者"""
        name = type_name(msg_type)
        if not name:
            raise ValueError("message type must be a non-empty string")
        handle = SubscriptionHandle(self, next(self._ids), name, handler)
        self._subscriptions[name].append(handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """取消订阅 (幂等)"""
        if not handle._active:
            return
        handle._active = False
        subs = self._subscriptions.get(handle.msg_type)
        if subs is None:
            return
        # 替换为新列表，进行中的分发使用的是自己的快照
        remaining = [s for s in subs if s is not handle]
        if remaining:
            self._subscriptions[handle.msg_type] = remaining
        else:
            del self._subscriptions[handle.msg_type]

    def subscription_count(self, msg_type: MsgType | str | None = None) -> int:
        if msg_type is None:
            return sum(len(subs) for subs in self._subscriptions.values())
        return len(self._subscriptions.get(type_name(msg_type), ()))

    # ==================== 出站 ====================

    def publish(self, request: OutboundRequest | Mapping[str, Any]) -> bool:
        """发送出站请求；只校验 type 存在，字段校验由各消费者负责

        Returns:
            通道是否接受了该帧 (未就绪时为 False)

        Raises:
            InvalidRequestError: 缺少 type 或 type 不是非空字符串
        """
        if isinstance(request, OutboundRequest):
            payload = request.to_dict()
        else:
            payload = dict(request)
        msg_type = payload.get("type")
        if isinstance(msg_type, MsgType):
            payload["type"] = msg_type = msg_type.value
        if not isinstance(msg_type, str) or not msg_type:
            raise InvalidRequestError("Outbound request requires a non-empty 'type'")
        if msg_type not in OUTBOUND_TYPES:
            logger.debug("Publishing unlisted request type: %s", msg_type)
        return self._channel.send(encode_frame(payload))

    def _send_typed(self, request: OutboundRequest) -> bool:
        try:
            validate_outbound(request.type, request.fields)
        except ValidationError as e:
            raise InvalidRequestError(
                f"Invalid fields for '{request.type}' request",
                request_type=request.type,
                errors=[err["msg"] for err in e.errors()],
            ) from e
        return self.publish(request)

    # ---------- 类型化便捷方法 ----------

    def get_profile(self) -> bool:
        """请求玩家资料"""
        return self._send_typed(OutboundRequest.get_profile())

    def list_players(self) -> bool:
        """请求在线玩家列表"""
        return self._send_typed(OutboundRequest.list_players())

    def purchase(self, item_id: str, category: str) -> bool:
        """购买市场物品"""
        return self._send_typed(OutboundRequest.purchase(item_id, category))

    def challenge(self, target: str | int, stake: bool) -> bool:
        """向玩家发起挑战；stake=True 表示押上土地和建筑"""
        return self._send_typed(OutboundRequest.challenge(target, stake))
