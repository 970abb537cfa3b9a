import pytest

from chat_gateway.agents.completion import FINAL_HINT, CompletionConfig, CompletionService
from chat_gateway.domain.exceptions import ModelInvocationError
from chat_gateway.domain.models import ChatChoice, ChatMessage, ChatResult
from chat_gateway.tools.definitions import ToolCall
from chat_gateway.tools.executor import ToolExecutor
from chat_gateway.tools.medical import AppointmentBook, medical_tool_defs, medical_tools


class ScriptedProvider:
    """按顺序返回预先写好的回复。"""

    name = "fake"

    def __init__(self, replies):
        self._replies = list(replies)
        self.requests = []

    async def chat(self, req):
        self.requests.append(req)
        msg = self._replies.pop(0)
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)])


def tool_reply(name, arguments, call_id="call_1"):
    return ChatMessage.from_text(
        "assistant", "", tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)]
    )


def make_service(provider, book=None, max_rounds=4):
    return CompletionService(
        provider_client=provider,
        tool_executor=ToolExecutor(medical_tools(book or AppointmentBook())),
        tool_defs=medical_tool_defs(),
        config=CompletionConfig(provider="fake", model="chat", enable_tools=True, max_tool_rounds=max_rounds),
    )


@pytest.mark.asyncio
async def test_tool_calls_are_auto_invoked_and_hidden_from_history():
    book = AppointmentBook()
    provider = ScriptedProvider([
        tool_reply("book_appointment", {"appointment_details": "Dra. Pérez, lunes 10:00"}),
        ChatMessage.from_text("assistant", "Cita reservada."),
    ])
    history = [ChatMessage.from_text("system", "sys"), ChatMessage.from_text("user", "Reserva una cita")]
    service = make_service(provider, book)

    reply = await service.complete(history)

    assert reply.role == "assistant"
    assert reply.text == "Cita reservada."
    assert reply.meta["tool_rounds"] == 1
    assert book.items() == ["Dra. Pérez, lunes 10:00"]
    assert len(history) == 2
    second = provider.requests[1]
    assert second.messages[-1].role == "tool"
    assert second.messages[-1].tool_call_id == "call_1"
    assert "booked successfully" in second.messages[-1].text
    assert provider.requests[0].tool_choice == "auto"
    assert provider.requests[0].tools


@pytest.mark.asyncio
async def test_max_tool_rounds_forces_final_answer():
    provider = ScriptedProvider([
        tool_reply("list_appointments", {}, call_id="a"),
        tool_reply("list_appointments", {}, call_id="b"),
        ChatMessage.from_text("assistant", "No tienes citas."),
    ])
    service = make_service(provider, max_rounds=2)
    reply = await service.complete([ChatMessage.from_text("user", "¿Mis citas?")])

    assert reply.text == "No tienes citas."
    assert reply.meta["forced_final"] is True
    final_req = provider.requests[-1]
    assert final_req.tool_choice == "none"
    assert final_req.messages[-1].text == FINAL_HINT


@pytest.mark.asyncio
async def test_without_tools_sends_plain_request():
    provider = ScriptedProvider([ChatMessage.from_text("assistant", "hola")])
    service = CompletionService(provider, config=CompletionConfig(provider="fake", model="chat", enable_tools=False))
    reply = await service.complete([ChatMessage.from_text("user", "hola")])
    assert reply.text == "hola"
    assert provider.requests[0].tools is None


@pytest.mark.asyncio
async def test_empty_choices_is_model_error():
    class EmptyProvider:
        name = "fake"

        async def chat(self, req):
            return ChatResult(provider="fake", model=req.model, choices=[])

    service = CompletionService(EmptyProvider(), config=CompletionConfig(provider="fake", model="chat", enable_tools=False))
    with pytest.raises(ModelInvocationError):
        await service.complete([ChatMessage.from_text("user", "hola")])
