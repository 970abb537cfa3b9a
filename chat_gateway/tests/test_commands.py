from chat_gateway.domain.models import ChatMessage
from chat_gateway.gateway.commands import (
    CLEAR_TEXT,
    HELP_TEXT,
    UNKNOWN_TEXT,
    WELCOME_TEXT,
    CommandMessages,
    CommandRouter,
    is_command,
    parse_command,
)


def test_is_command_only_checks_first_character():
    assert is_command("/start")
    assert is_command("/")
    assert is_command("/algo raro")
    assert not is_command("hola /start")
    assert not is_command(" /start")
    assert not is_command("")
    assert not is_command(None)


def test_parse_command_strips_marker_arguments_and_bot_suffix():
    assert parse_command("/start") == "start"
    assert parse_command("/HELP") == "help"
    assert parse_command("/clear ahora") == "clear"
    assert parse_command("/help@MedicoBot") == "help"
    assert parse_command("/") == ""


def test_start_and_help_do_not_touch_history(store):
    store.get_or_create(1)
    store.append(1, ChatMessage.from_text("user", "hola"))
    router = CommandRouter(store)
    assert router.handle(1, "/start").text == WELCOME_TEXT
    assert router.handle(1, "/help").text == HELP_TEXT
    assert len(store.get(1).history) == 2


def test_clear_removes_session(store):
    store.get_or_create(3)
    reply = CommandRouter(store).handle(3, "/clear")
    assert reply.text == CLEAR_TEXT
    assert reply.recognized
    assert 3 not in store


def test_clear_without_session_still_confirms(store):
    reply = CommandRouter(store).handle(8, "/clear")
    assert reply.text == CLEAR_TEXT
    assert len(store) == 0


def test_unknown_command(store):
    reply = CommandRouter(store).handle(1, "/receta")
    assert reply.text == UNKNOWN_TEXT
    assert reply.command == "receta"
    assert not reply.recognized


def test_custom_messages(store):
    router = CommandRouter(store, CommandMessages(welcome="hi", unknown="??"))
    assert router.handle(1, "/start").text == "hi"
    assert router.handle(1, "/x").text == "??"
