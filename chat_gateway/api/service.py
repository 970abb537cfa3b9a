"""对外服务入口模块。

负责把配置、会话存储、补全服务、工具与 Telegram 客户端组装成
ConversationOrchestrator，并驱动长轮询主循环。
"""

import asyncio
from typing import Optional

from chat_gateway.agents.completion import CompletionConfig, CompletionService
from chat_gateway.config.settings import Settings, settings as default_settings
from chat_gateway.gateway.commands import CommandRouter
from chat_gateway.gateway.extractor import ContentExtractor
from chat_gateway.gateway.orchestrator import ConversationOrchestrator, OrchestratorConfig
from chat_gateway.infrastructure.locks import KeyedLocks
from chat_gateway.infrastructure.logging.logger import logger
from chat_gateway.infrastructure.storage.memory_store import InMemorySessionStore
from chat_gateway.prompts import resolve_system_prompt
from chat_gateway.providers import create_provider
from chat_gateway.providers.base import ProviderClient
from chat_gateway.tools.executor import ToolExecutor
from chat_gateway.tools.medical import AppointmentBook, medical_tool_defs, medical_tools
from chat_gateway.transport.polling import UpdatePoller
from chat_gateway.transport.telegram_client import TelegramClient


def build_completion(cfg: Settings, provider: Optional[ProviderClient] = None) -> CompletionService:
    provider = provider or create_provider(cfg.completion_provider)
    tool_executor = None
    tool_defs = None
    if cfg.enable_tools:
        tool_executor = ToolExecutor(medical_tools(AppointmentBook()))
        tool_defs = medical_tool_defs()
    return CompletionService(
        provider_client=provider,
        tool_executor=tool_executor,
        tool_defs=tool_defs,
        config=CompletionConfig(
            provider=provider.name,
            model=cfg.default_model,
            enable_tools=cfg.enable_tools,
            max_tool_rounds=cfg.max_tool_rounds,
            temperature=cfg.temperature,
        ),
    )


def build_orchestrator(
    cfg: Optional[Settings] = None,
    transport: Optional[TelegramClient] = None,
    provider: Optional[ProviderClient] = None,
) -> ConversationOrchestrator:
    """按配置组装编排器；transport/provider 可注入（测试或自定义部署）。"""
    cfg = cfg or default_settings
    transport = transport or TelegramClient(cfg)
    store = InMemorySessionStore(resolve_system_prompt(cfg.system_prompt, cfg.prompt_locale))
    return ConversationOrchestrator(
        store=store,
        completion=build_completion(cfg, provider),
        transport=transport,
        fetcher=transport,
        extractor=ContentExtractor(image_mime_type=cfg.image_mime_type),
        commands=CommandRouter(store),
        locks=KeyedLocks(),
        config=OrchestratorConfig(
            reply_parse_mode=cfg.reply_parse_mode or None,
            send_failure_notice=cfg.send_failure_notice,
        ),
    )


async def run_bot(cfg: Optional[Settings] = None) -> None:
    """启动机器人：自检 getMe 后进入长轮询，直到被取消。"""
    cfg = cfg or default_settings
    client = TelegramClient(cfg)
    orchestrator = build_orchestrator(cfg, transport=client)
    poller = UpdatePoller(client, orchestrator.handle)
    try:
        me = await client.get_me()
        logger.info(
            "Bot started",
            extra={"extra": {"username": me.get("username"), "provider": cfg.completion_provider}},
        )
        await poller.run()
    except asyncio.CancelledError:
        logger.info("Bot stopping")
        raise
    finally:
        poller.stop()
        await poller.drain()
        await client.close()
