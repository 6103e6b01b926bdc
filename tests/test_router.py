"""
消息路由器测试
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from net.channel import ChannelState, ReconnectingChannel
from net.exceptions import DecodeFailure, InvalidRequestError
from net.protocol import Message, MsgType, OutboundRequest
from net.router import MessageRouter
from tests.fakes import FakeScheduler, FakeTransportFactory


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def clock():
    return FakeScheduler()


@pytest.fixture
def channel(factory, clock):
    return ReconnectingChannel("ws://game.test/ws", transport_factory=factory, scheduler=clock)


@pytest.fixture
def router(channel):
    return MessageRouter(channel)


@pytest.fixture
def live(channel, factory):
    """已打开的通道，返回当前传输"""
    channel.start()
    factory.latest.accept()
    return factory.latest


class TestDecode:
    def test_decode_flat_object(self, router):
        msg = router.decode('{"type":"profile","profile":{"username":"Zuri"}}')
        assert msg.type == "profile"
        assert msg["profile"] == {"username": "Zuri"}
        assert msg.fields["type"] == "profile"

    def test_decode_unknown_type_is_not_an_error(self, router):
        msg = router.decode('{"type":"weatherReport","rain":true}')
        assert msg.type == "weatherReport"
        assert msg.known is False
        assert msg["rain"] is True

    def test_decode_bytes(self, router):
        assert router.decode(b'{"type":"battleUpdate","update":"hit"}').type == "battleUpdate"

    @pytest.mark.parametrize("raw", [
        "not json",
        "",
        "[1, 2, 3]",
        '"profile"',
        "{}",
        '{"foo":"bar"}',
        '{"type":42}',
        '{"type":null}',
        '{"type":""}',
        '{"type":["profile"]}',
    ])
    def test_decode_failures(self, router, raw):
        with pytest.raises(DecodeFailure) as exc_info:
            router.decode(raw)
        assert exc_info.value.reason

    def test_decode_failure_keeps_short_preview(self, router):
        raw = '{"foo":"' + "x" * 500 + '"}'
        with pytest.raises(DecodeFailure) as exc_info:
            router.decode(raw)
        preview = exc_info.value.details["frame"]
        assert len(preview) <= DecodeFailure.PREVIEW_LIMIT + 3
        assert exc_info.value.raw == raw


class TestFeed:
    def test_missing_type_is_logged_and_dropped(self, router, channel, live, caplog):
        handler = MagicMock()
        router.subscribe(MsgType.PROFILE, handler)

        with caplog.at_level(logging.WARNING, logger="net.router"):
            live.deliver('{"foo":"bar"}')

        handler.assert_not_called()
        assert router.decode_failures == 1
        assert any("Dropping inbound frame" in r.message for r in caplog.records)
        assert channel.state == ChannelState.OPEN

    def test_bad_frame_does_not_block_next_frame(self, router, live):
        handler = MagicMock()
        router.subscribe(MsgType.PROFILE, handler)

        live.deliver("{{{ garbage")
        live.deliver('{"type":"profile","profile":{}}')

        handler.assert_called_once()
        assert handler.call_args[0][0].type == "profile"

    def test_unknown_type_reaches_no_one(self, router, live):
        handler = MagicMock()
        router.subscribe(MsgType.PROFILE, handler)
        live.deliver('{"type":"somethingNew"}')
        handler.assert_not_called()
        assert router.decode_failures == 0


class TestDispatch:
    def test_handlers_called_once_in_registration_order(self, router):
        calls = []
        router.subscribe(MsgType.PLAYER_LIST, lambda m: calls.append("a"))
        router.subscribe(MsgType.PLAYER_LIST, lambda m: calls.append("b"))
        router.subscribe("playerList", lambda m: calls.append("c"))
        router.subscribe(MsgType.PROFILE, lambda m: calls.append("other"))

        invoked = router.dispatch(Message(type="playerList", fields={"players": []}))

        assert invoked == 3
        assert calls == ["a", "b", "c"]

    def test_no_subscriber_returns_zero(self, router):
        assert router.dispatch(Message(type="battleUpdate")) == 0

    @pytest.mark.parametrize("msg_type, expected", [
        ("battleUpdate", "No subscriber for message type: battleUpdate"),
        ("emote", "Unknown message type: emote"),
    ])
    def test_unrouted_message_is_logged(self, router, caplog, msg_type, expected):
        with caplog.at_level(logging.DEBUG, logger="net.router"):
            router.dispatch(Message(type=msg_type))
        assert [r.getMessage() for r in caplog.records] == [expected]

    def test_same_message_object_for_all_handlers(self, router):
        seen = []
        router.subscribe(MsgType.PROFILE, seen.append)
        router.subscribe(MsgType.PROFILE, seen.append)
        msg = Message(type="profile")
        router.dispatch(msg)
        assert seen[0] is msg and seen[1] is msg

    def test_handler_exception_does_not_stop_others(self, router, caplog):
        after = MagicMock()
        router.subscribe(MsgType.PROFILE, MagicMock(side_effect=KeyError("profile")))
        router.subscribe(MsgType.PROFILE, after)

        with caplog.at_level(logging.ERROR, logger="net.router"):
            invoked = router.dispatch(Message(type="profile"))

        assert invoked == 2
        after.assert_called_once()
        assert any(r.exc_info for r in caplog.records)

    def test_unsubscribe_later_handler_during_dispatch(self, router):
        calls = []
        handles = {}

        def first(msg):
            calls.append("first")
            handles["second"].unsubscribe()

        router.subscribe(MsgType.BATTLE_UPDATE, first)
        handles["second"] = router.subscribe(MsgType.BATTLE_UPDATE, lambda m: calls.append("second"))

        assert router.dispatch(Message(type="battleUpdate")) == 1
        assert calls == ["first"]

        router.dispatch(Message(type="battleUpdate"))
        assert calls == ["first", "first"]

    def test_unsubscribe_self_during_dispatch(self, router):
        calls = []
        handles = {}

        def once(msg):
            calls.append("once")
            handles["once"].unsubscribe()

        handles["once"] = router.subscribe(MsgType.BATTLE_UPDATE, once)
        router.subscribe(MsgType.BATTLE_UPDATE, lambda m: calls.append("always"))

        router.dispatch(Message(type="battleUpdate"))
        router.dispatch(Message(type="battleUpdate"))
        assert calls == ["once", "always", "always"]

    def test_subscribe_during_dispatch_applies_next_time(self, router):
        calls = []

        def adder(msg):
            calls.append("adder")
            router.subscribe(MsgType.BATTLE_UPDATE, lambda m: calls.append("late"))

        router.subscribe(MsgType.BATTLE_UPDATE, adder)
        router.dispatch(Message(type="battleUpdate"))
        assert calls == ["adder"]


class TestSubscriptions:
    def test_unsubscribe_is_idempotent(self, router):
        handle = router.subscribe(MsgType.PROFILE, MagicMock())
        assert router.subscription_count(MsgType.PROFILE) == 1

        handle.unsubscribe()
        handle.unsubscribe()
        router.unsubscribe(handle)

        assert handle.active is False
        assert router.subscription_count(MsgType.PROFILE) == 0
        assert router.subscription_count() == 0

    def test_unsubscribe_removes_only_that_handle(self, router):
        handler = MagicMock()
        h1 = router.subscribe(MsgType.PROFILE, handler)
        router.subscribe(MsgType.PROFILE, handler)
        h1.unsubscribe()
        router.dispatch(Message(type="profile"))
        assert handler.call_count == 1

    def test_handles_are_distinct(self, router):
        a = router.subscribe(MsgType.PROFILE, MagicMock())
        b = router.subscribe(MsgType.PROFILE, MagicMock())
        assert a.sub_id != b.sub_id
        assert "profile" in repr(a)

    def test_subscribe_rejects_empty_type(self, router):
        with pytest.raises(ValueError):
            router.subscribe("", MagicMock())


class TestPublish:
    def test_publish_outbound_request(self, router, live):
        assert router.publish(OutboundRequest.purchase("build-1", "Buildings")) is True
        assert json.loads(live.sent[0]) == {
            "type": "purchase", "itemId": "build-1", "category": "Buildings",
        }

    def test_publish_is_compact_single_line(self, router, live):
        router.publish({"type": "getProfile"})
        assert live.sent == ['{"type":"getProfile"}']

    def test_publish_mapping_with_enum_type(self, router, live):
        router.publish({"type": MsgType.LIST_PLAYERS})
        assert live.sent == ['{"type":"listPlayers"}']

    def test_publish_unknown_type_is_passed_through(self, router, live, caplog):
        with caplog.at_level(logging.DEBUG, logger="net.router"):
            assert router.publish({"type": "emote", "name": "wave"}) is True
        assert json.loads(live.sent[0])["type"] == "emote"
        assert any("unlisted request type: emote" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("request_", [{}, {"type": ""}, {"type": 7}, {"itemId": "x"}])
    def test_publish_requires_type(self, router, live, request_):
        with pytest.raises(InvalidRequestError):
            router.publish(request_)
        assert live.sent == []

    def test_publish_while_waiting_sends_nothing(self, router, live, factory):
        live.fail()
        assert router.publish(OutboundRequest.purchase("build-1", "Buildings")) is False
        assert factory.all_sent() == []

    def test_publish_before_start(self, router):
        assert router.publish({"type": "getProfile"}) is False


class TestTypedHelpers:
    def test_get_profile_and_list_players(self, router, live):
        router.get_profile()
        router.list_players()
        assert live.sent == ['{"type":"getProfile"}', '{"type":"listPlayers"}']

    def test_purchase(self, router, live):
        assert router.purchase("isle-7", "Islands") is True
        assert json.loads(live.sent[0]) == {"type": "purchase", "itemId": "isle-7", "category": "Islands"}

    def test_challenge(self, router, live):
        router.challenge("p-42", True)
        router.challenge(17, False)
        assert json.loads(live.sent[0]) == {"type": "challenge", "target": "p-42", "stake": True}
        assert json.loads(live.sent[1]) == {"type": "challenge", "target": 17, "stake": False}

    @pytest.mark.parametrize("item_id, category", [("", "Islands"), ("x", ""), (5, "Islands")])
    def test_purchase_rejects_bad_fields(self, router, live, item_id, category):
        with pytest.raises(InvalidRequestError) as exc_info:
            router.purchase(item_id, category)
        assert exc_info.value.request_type == "purchase"
        assert exc_info.value.errors
        assert live.sent == []

    def test_challenge_rejects_non_bool_stake(self, router, live):
        with pytest.raises(InvalidRequestError):
            router.challenge("p-1", "yes")
        assert live.sent == []

    def test_invalid_request_is_value_error(self, router):
        with pytest.raises(ValueError):
            router.challenge(None, True)
