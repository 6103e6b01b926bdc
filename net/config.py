"""客户端配置中心 (SSOT - 单一事实来源)

所有可配置的会话参数在此定义，支持从环境变量覆盖。
配置只在构造时传入通道/客户端，不作为模块级常量被内部读取。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .protocol import DEFAULT_URL
from .retry import DEFAULT_RETRY_DELAY, ExponentialBackoff, FixedDelay, RetryPolicy

ENV_PREFIX = "AFRICA_UNIVERSE_"

BACKOFF_MODES = ("fixed", "exponential")


def _env(key: str) -> str | None:
    return os.environ.get(ENV_PREFIX + key)


def _get_env_float(key: str, default: float) -> float:
    """从环境变量获取浮点数配置"""
    value = _env(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_env_int(key: str, default: int) -> int:
    """从环境变量获取整数配置"""
    value = _env(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_env_optional_float(key: str, default: float | None) -> float | None:
    """从环境变量获取可关闭的浮点配置 ("off"/"none" 表示关闭)"""
    value = _env(key)
    if value is None:
        return default
    if value.strip().lower() in ("", "off", "none"):
        return None
    try:
        return float(value)
    except ValueError:
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """从环境变量获取布尔配置"""
    value = (_env(key) or "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    elif value in ("false", "0", "no", "off"):
        return False
    return default


@dataclass(frozen=True)
class ClientConfig:
    """客户端配置类 (不可变)

    所有配置项支持通过环境变量覆盖 (前缀 AFRICA_UNIVERSE_):
    - WS_URL: 服务端地址
    - RETRY_DELAY: 重连延迟秒数 (指数退避时为初始延迟)
    - BACKOFF: fixed | exponential
    - LOG_LEVEL / LOG_FILE: 日志配置
    """
    # ==================== 连接 ====================
    url: str = field(
        default_factory=lambda: _env("WS_URL") or DEFAULT_URL
    )
    open_timeout: float | None = field(
        default_factory=lambda: _get_env_optional_float("OPEN_TIMEOUT", 10.0)
    )
    ping_interval: float | None = field(
        default_factory=lambda: _get_env_optional_float("PING_INTERVAL", 20.0)
    )
    max_message_size: int = field(
        default_factory=lambda: _get_env_int("MAX_MSG_SIZE", 1_048_576)
    )

    # ==================== 重连 ====================
    retry_delay: float = field(
        default_factory=lambda: _get_env_float("RETRY_DELAY", DEFAULT_RETRY_DELAY)
    )
    backoff: str = field(
        default_factory=lambda: (_env("BACKOFF") or "fixed").strip().lower()
    )
    backoff_factor: float = field(
        default_factory=lambda: _get_env_float("BACKOFF_FACTOR", 2.0)
    )
    backoff_max: float = field(
        default_factory=lambda: _get_env_float("BACKOFF_MAX", 60.0)
    )
    backoff_jitter: float = field(
        default_factory=lambda: _get_env_float("BACKOFF_JITTER", 0.1)
    )

    # ==================== 日志与调试 ====================
    log_level: str = field(
        default_factory=lambda: _env("LOG_LEVEL") or "INFO"
    )
    log_file: str | None = field(
        default_factory=lambda: _env("LOG_FILE")
    )
    debug_mode: bool = field(
        default_factory=lambda: _get_env_bool("DEBUG", False)
    )

    @property
    def effective_log_level(self) -> str:
        """调试模式强制 DEBUG 级别"""
        return "DEBUG" if self.debug_mode else self.log_level

    @classmethod
    def from_env(cls) -> ClientConfig:
        """从环境变量创建配置实例"""
        return cls()

    def validate(self) -> list[str]:
        """校验配置，返回错误描述列表 (空列表表示合法)"""
        errors: list[str] = []
        if not self.url.startswith(("ws://", "wss://")):
            errors.append(f"url must start with ws:// or wss://, got {self.url!r}")
        if self.retry_delay < 0:
            errors.append(f"retry_delay must be >= 0, got {self.retry_delay}")
        if self.backoff not in BACKOFF_MODES:
            errors.append(f"backoff must be one of {BACKOFF_MODES}, got {self.backoff!r}")
        if self.backoff_factor < 1.0:
            errors.append(f"backoff_factor must be >= 1.0, got {self.backoff_factor}")
        if self.backoff == "exponential" and self.backoff_max < self.retry_delay:
            errors.append(
                f"backoff_max ({self.backoff_max}) must be >= retry_delay ({self.retry_delay})"
            )
        if not 0.0 <= self.backoff_jitter <= 1.0:
            errors.append(f"backoff_jitter must be within [0, 1], got {self.backoff_jitter}")
        if self.open_timeout is not None and self.open_timeout <= 0:
            errors.append(f"open_timeout must be > 0, got {self.open_timeout}")
        if self.ping_interval is not None and self.ping_interval <= 0:
            errors.append(f"ping_interval must be > 0, got {self.ping_interval}")
        if self.max_message_size <= 0:
            errors.append(f"max_message_size must be > 0, got {self.max_message_size}")
        return errors

    def retry_policy(self) -> RetryPolicy:
        """按配置构造重连延迟策略"""
        if self.backoff == "exponential":
            return ExponentialBackoff(
                base=self.retry_delay,
                factor=self.backoff_factor,
                max_delay=self.backoff_max,
                jitter=self.backoff_jitter,
            )
        return FixedDelay(self.retry_delay)


# 命令行入口使用的懒加载实例
_config: ClientConfig | None = None


def get_config() -> ClientConfig:
    """获取环境变量配置实例（懒加载）"""
    global _config
    if _config is None:
        _config = ClientConfig.from_env()
    return _config


def reset_config() -> None:
    """重置配置（用于测试）"""
    global _config
    _config = None
