"""网络会话层
基于 WebSocket 的单通道客户端: 断线自动重连 + 按 type 路由消息

GameClient 位于 net.client (依赖 views 包)，此处不导出以免循环导入。
"""

from .channel import ChannelState, ConnectionEpoch, ReconnectingChannel
from .config import ClientConfig
from .exceptions import DecodeFailure, InvalidRequestError, InvalidStateTransition, NetError, TransportFailure
from .protocol import DEFAULT_URL, Message, MsgType, OutboundRequest
from .retry import ExponentialBackoff, FixedDelay
from .router import MessageRouter, SubscriptionHandle
from .transport import WebSocketTransport

__all__ = [
    "DEFAULT_URL", "MsgType", "Message", "OutboundRequest",
    "ReconnectingChannel", "ChannelState", "ConnectionEpoch",
    "MessageRouter", "SubscriptionHandle",
    "WebSocketTransport", "FixedDelay", "ExponentialBackoff",
    "ClientConfig",
    "NetError", "TransportFailure", "DecodeFailure", "InvalidStateTransition", "InvalidRequestError",
]
