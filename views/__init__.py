"""界面消费者 (Consumer Adapters)

每个视图订阅自己需要的消息类型并维护本地投影，不接触底层连接。
"""

from .arena import ArenaView
from .base import ConsumerAdapter, MergeFn, replace
from .market import CATEGORIES, MarketView
from .profile import DEFAULT_PROFILE, ProfileView
from .world import WorldView, merge_by_id

__all__ = [
    "ConsumerAdapter", "MergeFn", "replace",
    "ProfileView", "DEFAULT_PROFILE",
    "WorldView", "merge_by_id",
    "MarketView", "CATEGORIES",
    "ArenaView",
]
