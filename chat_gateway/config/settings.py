"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，进程启动时加载一次。
环境变量名兼容旧部署：OPENAI_ENDPOINT / OPENAI_APIKEY / TELEGRAM_BOT。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("GATEWAY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


ParseMode = Literal["Markdown", "MarkdownV2", "HTML", ""]


class GatewaySettings(BaseSettings):
    """网关配置（使用 Pydantic）。"""

    # ---- 补全服务 ----
    completion_provider: Literal["azure", "openai"] = Field(
        default="azure",
        description="补全服务 Provider：azure（Azure OpenAI）或 openai（兼容 OpenAI 的端点）",
    )
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    openai_endpoint: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_endpoint", "OPENAI_ENDPOINT"),
        description="Azure OpenAI 资源地址，如 https://xxx.openai.azure.com",
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openai_api_key", "OPENAI_APIKEY", "OPENAI_API_KEY"),
        description="补全服务 API 密钥",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="completion_provider=openai 时使用的基础 URL",
    )
    azure_api_version: str = Field(default="2024-10-21", description="Azure OpenAI api-version")
    deployment_name: str = Field(default="gpt-4o-mini", description="部署名/厂商模型名")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="生成温度")

    # ---- Telegram ----
    telegram_bot_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("telegram_bot_token", "TELEGRAM_BOT", "TELEGRAM_BOT_TOKEN"),
        description="Telegram Bot 令牌",
    )
    telegram_base_url: str = Field(default="https://api.telegram.org", description="Bot API 基础URL")
    polling_timeout: int = Field(default=30, ge=0, le=50, description="getUpdates 长轮询秒数")

    # ---- 通用 ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 对话行为 ----
    enable_tools: bool = Field(default=True, description="是否向模型暴露可自动调用的工具")
    max_tool_rounds: int = Field(
        default=8,
        ge=1,
        le=20,
        description="单轮对话内工具调用最大轮数（硬上限 20）",
    )
    system_prompt: Optional[str] = Field(
        default=None,
        description="覆盖内置的 system prompt 文本",
    )
    prompt_locale: str = Field(default="es", description="内置 system prompt 的语言目录")
    reply_parse_mode: ParseMode = Field(
        default="Markdown",
        description="助手回复发送时使用的 Telegram parse_mode，空字符串表示纯文本",
    )
    send_failure_notice: bool = Field(
        default=True,
        description="内容处理失败时是否给用户发送致歉消息",
    )
    image_mime_type: str = Field(default="image/png", description="图片内容项声明的媒体类型")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("openai_endpoint", "openai_base_url", "telegram_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = GatewaySettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = GatewaySettings
