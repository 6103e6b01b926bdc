"""世界视图

worldUpdate 消息携带全量建筑列表，每次整体替换本地建筑投影。
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

from net.models import Building
from net.protocol import Message, MsgType

from .base import ConsumerAdapter

_BUILDINGS = TypeAdapter(list[Building])


class WorldView(ConsumerAdapter):
    name = "world"

    def __init__(self, router, **kwargs):
        super().__init__(router, **kwargs)
        self.buildings: list[dict[str, Any]] = []

    def handlers(self) -> dict[MsgType, Callable[[Message], None]]:
        return {MsgType.WORLD_UPDATE: self._on_world_update}

    def _on_world_update(self, msg: Message) -> None:
        buildings = msg.get("buildings")
        if self._validate(_BUILDINGS.validate_python, buildings, MsgType.WORLD_UPDATE) is None:
            return
        self._update("buildings", MsgType.WORLD_UPDATE, buildings)

    def building(self, building_id: Any) -> dict[str, Any] | None:
        for b in self.buildings:
            if b.get("id") == building_id:
                return b
        return None


def merge_by_id(current: list[dict[str, Any]], incoming: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """按 id 增量合并建筑 (替代整体替换的可选合并函数)

    incoming 中的建筑覆盖同 id 的旧建筑，其余旧建筑保留，顺序按首次出现。
    """
    merged: dict[Any, dict[str, Any]] = {b["id"]: b for b in current}
    for b in incoming:
        merged[b["id"]] = b
    return list(merged.values())
