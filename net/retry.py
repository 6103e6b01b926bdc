"""重连延迟策略

作为构造参数传入 ReconnectingChannel，而不是模块级常量:
- FixedDelay: 固定间隔 (默认 3 秒)
- ExponentialBackoff: 指数退避 + 抖动
"""

from __future__ import annotations

import random
from typing import Protocol

DEFAULT_RETRY_DELAY: float = 3.0


class RetryPolicy(Protocol):
    """重连延迟策略接口"""

    def next_delay(self, attempt: int) -> float:
        """第 attempt 次重连前的等待秒数 (attempt 从 1 开始，连接成功后归 1)"""
        ...


class FixedDelay:
    """固定延迟"""

    def __init__(self, delay: float = DEFAULT_RETRY_DELAY) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delay = delay

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def __repr__(self) -> str:
        return f"FixedDelay(delay={self.delay})"


class ExponentialBackoff:
    """指数退避

    delay = min(base * factor ** (attempt - 1), max_delay)，
    再叠加 ±jitter 比例的随机抖动，结果不小于 0。

    Args:
        base: 首次重连延迟秒数
        factor: 增长倍数
        max_delay: 延迟上限
        jitter: 抖动比例 (0.0 ~ 1.0)
        rng: 随机源 (测试时可注入固定种子)
    """

    def __init__(
        self,
        base: float = DEFAULT_RETRY_DELAY,
        factor: float = 2.0,
        max_delay: float = 60.0,
        jitter: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        if base < 0 or max_delay < 0:
            raise ValueError("base and max_delay must be >= 0")
        if factor < 1.0:
            raise ValueError(f"factor must be >= 1.0, got {factor}")
        if not 0.0 <= jitter <= 1.0:
            raise ValueError(f"jitter must be within [0, 1], got {jitter}")
        self.base = base
        self.factor = factor
        self.max_delay = max_delay
        self.jitter = jitter
        self._rng = rng or random.Random()

    def next_delay(self, attempt: int) -> float:
        exponent = max(attempt, 1) - 1
        try:
            delay = min(self.base * (self.factor ** exponent), self.max_delay)
        except OverflowError:
            delay = self.max_delay
        if self.jitter:
            delay += delay * self.jitter * (self._rng.random() * 2 - 1)
        return max(0.0, delay)

    def __repr__(self) -> str:
        return (f"ExponentialBackoff(base={self.base}, factor={self.factor}, "
                f"max_delay={self.max_delay}, jitter={self.jitter})")
