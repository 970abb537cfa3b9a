from typing import Dict, List, Optional

import pytest

from chat_gateway.agents.completion import CompletionConfig, CompletionService
from chat_gateway.domain.exceptions import AttachmentFetchError
from chat_gateway.domain.models import ChatChoice, ChatMessage, ChatResult, ChatUsage
from chat_gateway.gateway.orchestrator import ConversationOrchestrator, OrchestratorConfig
from chat_gateway.infrastructure.storage.memory_store import InMemorySessionStore
from chat_gateway.transport.events import InboundEvent


SYSTEM_PROMPT = "Eres un asistente médico de pruebas."


def build_pdf(page_texts: List[str]) -> bytes:
    """生成一个每页一行文本（Helvetica）的最小 PDF。"""

    n = len(page_texts)
    kids = " ".join(f"{4 + 2 * i} 0 R" for i in range(n))
    objs = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, text in enumerate(page_texts):
        stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
        objs.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {5 + 2 * i} 0 R >>"
            ).encode()
        )
        objs.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for num, body in enumerate(objs, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % num + body + b"\nendobj\n"
    xref = len(out)
    out += b"xref\n0 %d\n" % (len(objs) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objs) + 1, xref)
    return bytes(out)


class FakeProvider:
    """按固定文本回复，并记录每次请求。"""

    name = "fake"

    def __init__(self, reply: str = "done", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.requests = []

    async def chat(self, req):
        self.requests.append(req)
        if self.error is not None:
            raise self.error
        msg = ChatMessage.from_text("assistant", self.reply)
        return ChatResult(
            provider="fake",
            model=req.model,
            choices=[ChatChoice(index=0, message=msg, finish_reason="stop")],
            usage=ChatUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5),
            raw={},
        )


class FakeTransport:
    """记录发出的消息，并按 file_id 返回预置的附件字节。"""

    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files = dict(files or {})
        self.sent = []
        self.fetched = []

    async def send_message(self, chat_id, text, parse_mode=None):
        self.sent.append((chat_id, text, parse_mode))
        return [{"message_id": len(self.sent)}]

    async def fetch(self, file_id):
        self.fetched.append(file_id)
        if file_id not in self.files:
            raise AttachmentFetchError(code="FILE_INFO_ERROR", message="file not found", file_id=file_id)
        return self.files[file_id]


def text_event(chat_id: int, text: str) -> InboundEvent:
    return InboundEvent(chat_id=chat_id, kind="text", text=text)


@pytest.fixture
def store():
    return InMemorySessionStore(SYSTEM_PROMPT)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_orchestrator(store, provider, transport):
    def _make(send_failure_notice: bool = True, provider_client=None, fake_transport=None):
        completion = CompletionService(
            provider_client=provider_client or provider,
            config=CompletionConfig(provider="fake", model="chat", enable_tools=False),
        )
        channel = fake_transport or transport
        return ConversationOrchestrator(
            store=store,
            completion=completion,
            transport=channel,
            fetcher=channel,
            config=OrchestratorConfig(send_failure_notice=send_failure_notice),
        )

    return _make
