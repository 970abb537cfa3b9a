"""Chat Gateway 顶层包。

把 Telegram 机器人与 LLM 补全服务桥接起来：每个聊天维护一段会话，
文本、PDF 文档与图片统一整理为多模态内容后交给模型，斜杠命令在本地处理。
包括配置加载、领域模型、Provider 适配、工具、会话编排与长轮询等能力。
"""

__version__ = "0.1.0"
