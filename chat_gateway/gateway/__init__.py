"""会话处理核心：命令路由、附件内容抽取与对话编排。"""
