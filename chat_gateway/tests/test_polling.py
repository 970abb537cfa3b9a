import asyncio
import logging

import pytest

from chat_gateway.domain.exceptions import TransportError
from chat_gateway.transport.events import InboundEvent
from chat_gateway.transport.polling import UpdatePoller


def message_update(update_id, chat_id=10, **fields):
    return {"update_id": update_id, "message": {"message_id": update_id, "chat": {"id": chat_id}, **fields}}


def test_from_update_variants():
    text = InboundEvent.from_update(message_update(1, text="/start"))
    assert (text.kind, text.text, text.chat_id, text.update_id) == ("text", "/start", 10, 1)

    doc = InboundEvent.from_update(
        message_update(
            2,
            caption="Informe",
            document={"file_id": "D", "file_name": "analitica.pdf", "mime_type": "application/pdf"},
        )
    )
    assert doc.kind == "document"
    assert doc.is_attachment
    assert (doc.file_id, doc.caption, doc.document_name) == ("D", "Informe", "analitica.pdf")

    photo = InboundEvent.from_update(
        message_update(
            3,
            photo=[
                {"file_id": "small", "width": 90, "height": 60},
                {"file_id": "big", "width": 1280, "height": 853},
            ],
        )
    )
    assert photo.kind == "photo"
    assert photo.file_id == "big"
    assert len(photo.photos) == 2

    sticker = InboundEvent.from_update(message_update(4, sticker={"file_id": "S"}))
    assert sticker.kind == "other"
    assert not sticker.is_attachment

    assert InboundEvent.from_update({"update_id": 5, "edited_message": {}}) is None


class StubClient:
    def __init__(self, batches):
        self.batches = list(batches)
        self.offsets = []

    async def get_updates(self, offset=None, timeout=None):
        self.offsets.append(offset)
        if not self.batches:
            await asyncio.sleep(3600)
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


@pytest.mark.asyncio
async def test_dispatch_updates_advances_offset():
    handled = []

    async def handler(event):
        handled.append(event.text)

    poller = UpdatePoller(StubClient([]), handler)
    count = poller.dispatch_updates(
        [
            message_update(7, text="hola"),
            {"update_id": 8, "callback_query": {}},
            message_update(9, text="adios"),
        ]
    )
    assert count == 2
    assert poller.offset == 10
    await poller.drain()
    assert sorted(handled) == ["adios", "hola"]
    assert poller.pending == 0


@pytest.mark.asyncio
async def test_failed_handler_is_logged_not_raised(caplog):
    async def handler(event):
        raise RuntimeError("boom")

    poller = UpdatePoller(StubClient([]), handler)
    with caplog.at_level(logging.ERROR, logger="chat_gateway"):
        poller.dispatch(InboundEvent(chat_id=1, kind="text", text="hola", update_id=1))
        await poller.drain()
        await asyncio.sleep(0)
    assert any(r.getMessage() == "Event handling failed" for r in caplog.records)
    assert poller.pending == 0


@pytest.mark.asyncio
async def test_run_retries_after_transport_error_and_stops():
    handled = asyncio.Event()

    async def handler(event):
        handled.set()

    client = StubClient(
        [
            TransportError(code="NETWORK_ERROR", message="down"),
            [message_update(3, text="hola")],
        ]
    )
    poller = UpdatePoller(client, handler, retry_delay=0.01)
    runner = asyncio.create_task(poller.run())
    await asyncio.wait_for(handled.wait(), timeout=1)
    assert client.offsets[:2] == [None, None]

    poller.stop()
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner
    assert poller.offset == 4


@pytest.mark.asyncio
async def test_malformed_update_is_skipped(caplog):
    handled = []

    async def handler(event):
        handled.append(event.text)

    poller = UpdatePoller(StubClient([]), handler)
    with caplog.at_level(logging.WARNING, logger="chat_gateway"):
        count = poller.dispatch_updates(
            [
                message_update(1, document={"file_name": "sin_id.pdf"}),
                message_update(2, text="hola"),
            ]
        )
    await poller.drain()
    assert count == 1
    assert poller.offset == 3
    assert handled == ["hola"]
    assert any(r.getMessage() == "Skipped malformed update" for r in caplog.records)
