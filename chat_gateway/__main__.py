"""命令行入口：python -m chat_gateway"""

import argparse
import asyncio
import os
import sys


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="chat_gateway", description="Telegram ⇄ LLM conversational gateway")
    parser.add_argument("--config", help="Path to config.yaml (overrides GATEWAY_CONFIG_FILE)")
    parser.add_argument("--log-level", help="Log level, e.g. DEBUG / INFO")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    # 配置在首次导入时加载，必须先设置环境变量
    if args.config:
        os.environ["GATEWAY_CONFIG_FILE"] = args.config
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level

    from chat_gateway.api.service import run_bot

    try:
        asyncio.run(run_bot())
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
