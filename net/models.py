"""网络消息 Pydantic 校验模型

为 net/protocol.py 中的消息提供校验:
  - MessageEnvelope: 入站帧外层结构，只要求非空字符串 type
  - 入站 payload 模型: 由各消费者 (views) 在更新投影前校验
  - 出站 payload 模型: 由路由器的类型化便捷方法在发送前校验

设计原则:
  - 校验模型与内部 dataclass 分离 (校验层 vs 业务层)
  - 校验失败抛出 pydantic.ValidationError，由调用方统一处理
  - 入站模型使用 extra="ignore"，服务端新增字段不会导致拒收
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
)

# ====================================================================== #
#  入站外层结构                                                            #
# ====================================================================== #


class MessageEnvelope(BaseModel):
    """入站帧外层校验模型 (其余字段原样保留)"""

    model_config = ConfigDict(extra="allow")

    type: StrictStr

    @field_validator("type")
    @classmethod
    def type_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("消息类型不能为空")
        return v


# ====================================================================== #
#  服务端 → 客户端 payload                                                 #
# ====================================================================== #


class Property(BaseModel):
    """玩家拥有的地产"""

    model_config = ConfigDict(extra="ignore")

    name: str
    reward: int = Field(default=0, ge=0)


class ProfileData(BaseModel):
    """profile 消息中的 profile 字段"""

    model_config = ConfigDict(extra="ignore")

    username: str
    pvpLevel: int = Field(ge=0)
    properties: list[Property] = Field(default_factory=list)
    dailyReward: int = Field(default=0, ge=0)


class Building(BaseModel):
    """worldUpdate 消息中的单个建筑"""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    position: list[float] = Field(min_length=3, max_length=3)
    color: str


class PlayerInfo(BaseModel):
    """playerList 消息中的单个玩家"""

    model_config = ConfigDict(extra="ignore")

    id: str | int
    username: str
    pvpLevel: int = Field(ge=0)


class PurchaseAck(BaseModel):
    """purchaseAck 消息 (兼容服务端的 item_id 写法)"""

    model_config = ConfigDict(extra="ignore")

    item_id: str = Field(validation_alias=AliasChoices("itemId", "item_id"))


class ChallengeRequest(BaseModel):
    """challengeRequest 消息: 其他玩家向我发起的挑战"""

    model_config = ConfigDict(extra="ignore")

    challenger: str
    challenger_name: str = Field(
        default="Anonymous",
        validation_alias=AliasChoices("challengerName", "challenger_name"),
    )
    stake: bool = False


# ====================================================================== #
#  客户端 → 服务端 payload                                                 #
# ====================================================================== #


class PurchaseData(BaseModel):
    """purchase 请求的字段校验"""

    model_config = ConfigDict(extra="forbid")

    itemId: StrictStr = Field(min_length=1)
    category: StrictStr = Field(min_length=1)


class ChallengeData(BaseModel):
    """challenge 请求的字段校验"""

    model_config = ConfigDict(extra="forbid")

    target: StrictStr | StrictInt
    stake: StrictBool


class EmptyData(BaseModel):
    """无 payload 的请求 (getProfile / listPlayers)"""

    model_config = ConfigDict(extra="forbid")


# ====================================================================== #
#  消息类型 → 校验模型映射                                                  #
# ====================================================================== #

# 有专门校验的出站类型；不在此映射中的类型只要求 type 存在
OUTBOUND_VALIDATORS: dict[str, type[BaseModel]] = {
    "getProfile": EmptyData,
    "listPlayers": EmptyData,
    "purchase": PurchaseData,
    "challenge": ChallengeData,
}


def validate_envelope(raw_json: str | bytes) -> dict[str, Any]:
    """校验入站帧外层结构，返回完整的字段字典 (含 type)

    Raises:
        pydantic.ValidationError: 非法 JSON、非对象或 type 缺失/为空
    """
    envelope = MessageEnvelope.model_validate_json(raw_json)
    return envelope.model_dump()


def validate_outbound(msg_type: str, fields: dict[str, Any]) -> None:
    """按 type 校验出站请求字段

    Raises:
        pydantic.ValidationError: 校验失败
    """
    validator_cls = OUTBOUND_VALIDATORS.get(msg_type)
    if validator_cls is not None:
        validator_cls.model_validate(fields)
