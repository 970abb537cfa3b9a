"""消息通道（Telegram Bot API）集成：事件解析、HTTP 客户端与长轮询。"""
