"""领域层模型与协议。

包含：
- models: 多模态 ChatMessage（文本/图片内容项）与 ChatRequest / ChatResult 模型。
- session: 会话（ConversationSession）及 SessionStore 抽象。
- exceptions: 业务异常类型定义。
"""
