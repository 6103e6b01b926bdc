# -*- coding: utf-8 -*-
"""
网络协议测试
"""

import json

import pytest

from net.protocol import (
    INBOUND_TYPES,
    OUTBOUND_TYPES,
    Message,
    MsgType,
    OutboundRequest,
    encode_frame,
    type_name,
)


class TestMsgType:
    """消息类型枚举测试"""

    def test_all_types_have_string_values(self):
        for t in MsgType:
            assert isinstance(t.value, str)

    def test_inbound_types(self):
        assert MsgType.PROFILE.value == "profile"
        assert MsgType.WORLD_UPDATE.value == "worldUpdate"
        assert MsgType.PLAYER_LIST.value == "playerList"
        assert MsgType.CHALLENGE_RESPONSE.value == "challengeResponse"
        assert MsgType.BATTLE_UPDATE.value == "battleUpdate"

    def test_outbound_types(self):
        assert MsgType.GET_PROFILE.value == "getProfile"
        assert MsgType.LIST_PLAYERS.value == "listPlayers"
        assert MsgType.PURCHASE.value == "purchase"
        assert MsgType.CHALLENGE.value == "challenge"

    def test_directions_partition_all_types(self):
        assert INBOUND_TYPES.isdisjoint(OUTBOUND_TYPES)
        assert INBOUND_TYPES | OUTBOUND_TYPES == {t.value for t in MsgType}

    def test_type_name(self):
        assert type_name(MsgType.WORLD_UPDATE) == "worldUpdate"
        assert type_name("custom") == "custom"


class TestMessage:
    def test_field_access(self):
        msg = Message(type="battleUpdate", fields={"type": "battleUpdate", "update": "hit"})
        assert msg["update"] == "hit"
        assert "update" in msg
        assert "missing" not in msg
        assert msg.get("missing", 0) == 0
        assert msg.known

    def test_unknown_type(self):
        assert Message(type="emote").known is False

    @pytest.mark.parametrize("name, expected", [
        ("profile", True),
        ("challengeRequest", True),
        ("purchaseAck", True),
        ("getProfile", False),
        ("PROFILE", False),
        ("", False),
    ])
    def test_known_means_inbound(self, name, expected):
        assert Message(type=name).known is expected


class TestOutboundRequest:
    """客户端请求测试"""

    def test_flat_json(self):
        req = OutboundRequest.purchase("build-1", "Buildings")
        assert json.loads(encode_frame(req.to_dict())) == {
            "type": "purchase", "itemId": "build-1", "category": "Buildings",
        }

    def test_json_is_single_line(self):
        raw = encode_frame(OutboundRequest.challenge("p-1", True).to_dict())
        assert "\n" not in raw
        assert raw == '{"type":"challenge","target":"p-1","stake":true}'

    def test_no_payload_requests(self):
        assert OutboundRequest.get_profile().to_dict() == {"type": "getProfile"}
        assert OutboundRequest.list_players().to_dict() == {"type": "listPlayers"}

    def test_unicode_kept(self):
        raw = encode_frame({"type": "purchase", "itemId": "Île-Gorée", "category": "Islands"})
        assert "Île-Gorée" in raw
