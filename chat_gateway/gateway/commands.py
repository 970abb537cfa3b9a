"""斜杠命令路由。

以 "/" 开头的文本一律视为命令，在本地处理后直接回复：
不调用补全服务，也不写入会话历史。
"""

from dataclasses import dataclass
from typing import Optional

from chat_gateway.domain.session import SessionStore
from chat_gateway.infrastructure.logging.logger import logger


COMMAND_MARKER = "/"

WELCOME_TEXT = (
    "Estamos aquí para ayudarte con tus consultas de salud y bienestar. "
    "Puedes hacer preguntas relacionadas con medicina, síntomas, tratamientos, y más. "
    "Los comandos disponibles son: /help y /clear"
)
HELP_TEXT = (
    "Escríbeme tu consulta de salud o envíame una imagen (radiografía, foto) "
    "o un informe en PDF con una descripción opcional.\n"
    "También puedo reservar, cancelar y listar citas médicas.\n\n"
    "Comandos:\n"
    "/start - mensaje de bienvenida\n"
    "/help - muestra esta ayuda\n"
    "/clear - borra el historial de la conversación"
)
CLEAR_TEXT = "Historial de la conversación borrado. Podemos empezar de nuevo."
UNKNOWN_TEXT = "Comando no reconocido. Usa /help para ver los comandos disponibles."


@dataclass
class CommandMessages:
    welcome: str = WELCOME_TEXT
    help: str = HELP_TEXT
    cleared: str = CLEAR_TEXT
    unknown: str = UNKNOWN_TEXT


@dataclass
class CommandReply:
    command: str
    text: str
    recognized: bool = True


def is_command(text: Optional[str]) -> bool:
    return bool(text) and text[0] == COMMAND_MARKER


def parse_command(text: str) -> str:
    """提取命令名：去掉 "/"、参数以及 "@botname" 后缀，转小写。"""

    body = text[len(COMMAND_MARKER):]
    token = body.split(maxsplit=1)[0] if body.strip() else ""
    return token.split("@", 1)[0].lower()


class CommandRouter:
    def __init__(self, store: SessionStore, messages: Optional[CommandMessages] = None):
        self._store = store
        self._messages = messages or CommandMessages()

    def handle(self, chat_id: int, text: str) -> CommandReply:
        command = parse_command(text)
        if command == "start":
            reply = CommandReply(command, self._messages.welcome)
        elif command == "help":
            reply = CommandReply(command, self._messages.help)
        elif command == "clear":
            self._store.clear(chat_id)
            reply = CommandReply(command, self._messages.cleared)
        else:
            reply = CommandReply(command, self._messages.unknown, recognized=False)
        logger.info(
            "Handled command",
            extra={"extra": {"chat_id": chat_id, "command": command, "recognized": reply.recognized}},
        )
        return reply
