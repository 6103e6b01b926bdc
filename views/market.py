"""市场视图

按分类浏览并购买物品。购买只发出请求，库存与价格由服务端裁决；
服务端的 purchaseAck 记录为最近一次确认的物品。
"""

from __future__ import annotations

from collections.abc import Callable

from net.models import PurchaseAck
from net.protocol import Message, MsgType

from .base import ConsumerAdapter

CATEGORIES: tuple[str, ...] = ("Islands", "NFT Characters", "Buildings", "Land", "Weapons")


class MarketView(ConsumerAdapter):
    name = "market"

    def __init__(self, router, **kwargs):
        super().__init__(router, **kwargs)
        self.active_category: str = CATEGORIES[0]
        self.last_ack: str | None = None

    def handlers(self) -> dict[MsgType, Callable[[Message], None]]:
        return {MsgType.PURCHASE_ACK: self._on_purchase_ack}

    def select_category(self, category: str) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category!r}")
        self.active_category = category
        self._notify("active_category")

    def purchase(self, item_id: str, category: str | None = None) -> bool:
        """购买物品 (默认使用当前分类)

        Returns:
            请求是否已交给通道；不代表购买成功
        """
        return self._send(
            lambda: self.router.purchase(item_id, category or self.active_category),
            f"purchase {item_id}",
        )

    def _on_purchase_ack(self, msg: Message) -> None:
        ack = self._validate(PurchaseAck.model_validate, msg.fields, MsgType.PURCHASE_ACK)
        if ack is None:
            return
        self._update("last_ack", MsgType.PURCHASE_ACK, ack.item_id)
