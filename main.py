# -*- coding: utf-8 -*-
"""
Africa Universe - 终端客户端
主程序入口

连接游戏服务端，保持断线自动重连，并在终端实时显示
资料 / 世界 / 竞技场 / 市场四个视图。

使用方法:
    python main.py
    python main.py --url ws://game.example:8080/ws --backoff exponential
"""

import argparse
import asyncio
import dataclasses
import logging
import sys

from rich.live import Live

from logging_config import setup_logging
from net.client import GameClient
from net.config import BACKOFF_MODES, get_config
from ui.console import ConsoleDashboard

logger = logging.getLogger(__name__)

# 界面刷新间隔 (秒)
REFRESH_INTERVAL = 0.5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Africa Universe 终端客户端")
    parser.add_argument("--url", default=None, help="服务端地址 (默认 ws://localhost:8080/ws)")
    parser.add_argument("--retry-delay", type=float, default=None,
                        help="重连延迟秒数 (默认 3.0)")
    parser.add_argument("--backoff", choices=BACKOFF_MODES, default=None,
                        help="重连策略: fixed 固定间隔 / exponential 指数退避")
    parser.add_argument("--log-level", default=None, help="日志级别 (DEBUG/INFO/WARNING/ERROR)")
    parser.add_argument("--debug", action="store_true", help="调试模式 (日志级别强制为 DEBUG)")
    parser.add_argument("--console-log", action="store_true",
                        help="同时把日志输出到终端 (会干扰界面)")
    return parser


def config_from_args(args: argparse.Namespace):
    """环境变量配置 + 命令行覆盖"""
    overrides = {}
    if args.url:
        overrides["url"] = args.url
    if args.retry_delay is not None:
        overrides["retry_delay"] = args.retry_delay
    if args.backoff:
        overrides["backoff"] = args.backoff
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.debug:
        overrides["debug_mode"] = True
    return dataclasses.replace(get_config(), **overrides)


async def run_client(client: GameClient, dashboard: ConsoleDashboard) -> None:
    dashboard.attach()
    client.start()
    try:
        with Live(dashboard.render(), console=dashboard.console, screen=False,
                  auto_refresh=False) as live:
            while True:
                await asyncio.sleep(REFRESH_INTERVAL)
                if dashboard.dirty:
                    live.update(dashboard.render(), refresh=True)
    finally:
        dashboard.detach()
        await client.aclose()


def main(argv=None):
    """程序入口"""
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    errors = config.validate()
    if errors:
        for err in errors:
            print(f"配置错误: {err}", file=sys.stderr)
        sys.exit(2)

    setup_logging(level=config.effective_log_level, log_file=config.log_file,
                  enable_console=args.console_log)

    client = GameClient(config)
    dashboard = ConsoleDashboard(client)
    try:
        asyncio.run(run_client(client, dashboard))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt - exiting")
        print("\n已断开连接，再见！")
        sys.exit(0)
    except Exception as e:
        logger.exception("Unhandled exception")
        print(f"\n发生错误: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
