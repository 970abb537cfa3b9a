"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取医疗助手人设的 system prompt，
用于为每个新会话生成第一条 ChatMessage(role="system")。
配置项 system_prompt 非空时直接使用配置中的文本。
"""

from pathlib import Path
from typing import Optional


PROMPTS_DIR = Path(__file__).resolve().parent
PROMPT_FILE = "medical_assistant_system.md"


def load_system_prompt(locale: str = "es") -> str:
    fname = PROMPTS_DIR / locale / PROMPT_FILE
    return fname.read_text(encoding="utf-8").strip()


def resolve_system_prompt(override: Optional[str] = None, locale: str = "es") -> str:
    if override and override.strip():
        return override.strip()
    return load_system_prompt(locale)
