"""PvP 竞技场视图

- 挂载时请求在线玩家列表
- playerList 整体替换玩家列表
- challengeResponse / battleUpdate 更新状态文字
- challengeRequest 记录其他玩家发来的挑战

胜负与伤害结算全部在服务端，这里只展示。
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

from net.models import ChallengeRequest, PlayerInfo
from net.protocol import Message, MsgType

from .base import ConsumerAdapter

_PLAYERS = TypeAdapter(list[PlayerInfo])
_STATUS = TypeAdapter(str)


class ArenaView(ConsumerAdapter):
    name = "arena"

    def __init__(self, router, **kwargs):
        super().__init__(router, **kwargs)
        self.players: list[dict[str, Any]] = []
        self.status: str = ""
        self.incoming_challenge: dict[str, Any] | None = None

    def handlers(self) -> dict[MsgType, Callable[[Message], None]]:
        return {
            MsgType.PLAYER_LIST: self._on_player_list,
            MsgType.CHALLENGE_RESPONSE: self._on_challenge_response,
            MsgType.BATTLE_UPDATE: self._on_battle_update,
            MsgType.CHALLENGE_REQUEST: self._on_challenge_request,
        }

    def on_mount(self) -> None:
        self.refresh()

    def refresh(self) -> bool:
        """重新请求在线玩家列表"""
        return self._send(self.router.list_players, "listPlayers")

    def challenge(self, player: dict[str, Any], stake: bool) -> bool:
        """挑战玩家；stake=True 为押上土地的决斗，False 为友谊赛"""
        sent = self._send(lambda: self.router.challenge(player["id"], stake),
                          f"challenge {player['id']}")
        self._update("status", MsgType.CHALLENGE,
                     f"Sent challenge to {player.get('username', player['id'])}")
        return sent

    def _on_player_list(self, msg: Message) -> None:
        players = msg.get("players")
        if self._validate(_PLAYERS.validate_python, players, MsgType.PLAYER_LIST) is None:
            return
        self._update("players", MsgType.PLAYER_LIST, players)

    def _on_challenge_response(self, msg: Message) -> None:
        text = msg.get("message")
        if self._validate(_STATUS.validate_python, text, MsgType.CHALLENGE_RESPONSE) is None:
            return
        self._update("status", MsgType.CHALLENGE_RESPONSE, text)
        # 挑战被接受或拒绝后刷新玩家列表
        self.refresh()

    def _on_battle_update(self, msg: Message) -> None:
        text = msg.get("update")
        if self._validate(_STATUS.validate_python, text, MsgType.BATTLE_UPDATE) is None:
            return
        self._update("status", MsgType.BATTLE_UPDATE, text)

    def _on_challenge_request(self, msg: Message) -> None:
        request = self._validate(ChallengeRequest.model_validate, msg.fields,
                                 MsgType.CHALLENGE_REQUEST)
        if request is None:
            return
        self._update("incoming_challenge", MsgType.CHALLENGE_REQUEST, request.model_dump())
