"""网络协议定义
基于 WebSocket 的 JSON 消息格式

协议设计:
- 每一帧是一个不含换行的 UTF-8 JSON 扁平对象
- 必须包含字符串 type 字段用于路由
- 其余字段随 type 而定，直接平铺在对象顶层 (没有 data 包裹)
- 请求不携带关联 ID，响应只按 type 匹配
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# 默认服务端地址
DEFAULT_URL = "ws://localhost:8080/ws"


# ==================== 消息类型枚举 ====================

class MsgType(str, Enum):
    """网络消息类型"""

    # ---- Server → Client ----
    PROFILE = "profile"                         # 玩家资料
    WORLD_UPDATE = "worldUpdate"                # 世界建筑全量状态
    PLAYER_LIST = "playerList"                  # 在线玩家列表
    CHALLENGE_RESPONSE = "challengeResponse"    # 挑战已发出/被接受/被拒绝
    BATTLE_UPDATE = "battleUpdate"              # 对战进展
    PURCHASE_ACK = "purchaseAck"                # 购买确认
    CHALLENGE_REQUEST = "challengeRequest"      # 收到其他玩家的挑战

    # ---- Client → Server ----
    GET_PROFILE = "getProfile"                  # 请求玩家资料
    LIST_PLAYERS = "listPlayers"                # 请求在线玩家列表
    PURCHASE = "purchase"                       # 购买市场物品
    CHALLENGE = "challenge"                     # 向玩家发起挑战


INBOUND_TYPES: frozenset[str] = frozenset(t.value for t in (
    MsgType.PROFILE,
    MsgType.WORLD_UPDATE,
    MsgType.PLAYER_LIST,
    MsgType.CHALLENGE_RESPONSE,
    MsgType.BATTLE_UPDATE,
    MsgType.PURCHASE_ACK,
    MsgType.CHALLENGE_REQUEST,
))

OUTBOUND_TYPES: frozenset[str] = frozenset(t.value for t in (
    MsgType.GET_PROFILE,
    MsgType.LIST_PLAYERS,
    MsgType.PURCHASE,
    MsgType.CHALLENGE,
))


def type_name(msg_type: MsgType | str) -> str:
    """MsgType 或字符串统一转为线上的 type 字符串"""
    if isinstance(msg_type, MsgType):
        return msg_type.value
    return str(msg_type)


# ==================== 消息数据类 ====================

@dataclass
class Message:
    """服务端 → 客户端消息 (已解码)

    fields 保存整帧对象 (含 type)，未知类型同样可以构造，
    由路由器决定是否有订阅者。
    """
    type: str
    fields: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def __contains__(self, key: str) -> bool:
        return key in self.fields

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def known(self) -> bool:
        """是否为已知的入站消息类型"""
        return self.type in INBOUND_TYPES


@dataclass
class OutboundRequest:
    """客户端 → 服务端请求

    格式 (扁平):
    {
        "type": "purchase",
        "itemId": "build-1",
        "category": "Buildings"
    }
    """
    type: str
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.fields}

    # ---------- 工厂方法 ----------

    @classmethod
    def get_profile(cls) -> OutboundRequest:
        return cls(type=MsgType.GET_PROFILE.value)

    @classmethod
    def list_players(cls) -> OutboundRequest:
        return cls(type=MsgType.LIST_PLAYERS.value)

    @classmethod
    def purchase(cls, item_id: str, category: str) -> OutboundRequest:
        return cls(type=MsgType.PURCHASE.value, fields={
            "itemId": item_id,
            "category": category,
        })

    @classmethod
    def challenge(cls, target: str, stake: bool) -> OutboundRequest:
        return cls(type=MsgType.CHALLENGE.value, fields={
            "target": target,
            "stake": stake,
        })


# ==================== 工具函数 ====================

def encode_frame(payload: Mapping[str, Any]) -> str:
    """序列化出站帧: 紧凑、无换行的 JSON"""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
