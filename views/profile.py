"""玩家资料视图

挂载时请求 getProfile；收到 profile 后整体替换本地资料。
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

from net.models import ProfileData
from net.protocol import Message, MsgType

from .base import ConsumerAdapter

# 服务端响应之前显示的占位资料
DEFAULT_PROFILE: dict[str, Any] = {
    "username": "PlayerOne",
    "pvpLevel": 3,
    "properties": [],
    "dailyReward": 0,
}


class ProfileView(ConsumerAdapter):
    name = "profile"

    def __init__(self, router, **kwargs):
        super().__init__(router, **kwargs)
        self.profile: dict[str, Any] = copy.deepcopy(DEFAULT_PROFILE)

    def handlers(self) -> dict[MsgType, Callable[[Message], None]]:
        return {MsgType.PROFILE: self._on_profile}

    def on_mount(self) -> None:
        self.refresh()

    def refresh(self) -> bool:
        """重新请求资料"""
        return self._send(self.router.get_profile, "getProfile")

    def _on_profile(self, msg: Message) -> None:
        data = msg.get("profile")
        if self._validate(ProfileData.model_validate, data, MsgType.PROFILE) is None:
            return
        self._update("profile", MsgType.PROFILE, data)

    @property
    def owned_properties(self) -> list[dict[str, Any]]:
        return list(self.profile.get("properties", []))
