import logging
from uuid import uuid4

import pytest

from services.contract.app.dispatcher import (
    AttributeMatch,
    EventDispatcher,
    check_event_type,
)
from services.shared.messages import StatusChangeMessage
from services.shared.queue import MessageAttribute, QueueMessage


class RecordingHandler:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def handle(self, *args):
        self.calls.append(args)
        if self.error:
            raise self.error


def _body(status="Aprovada"):
    return StatusChangeMessage(
        proposal_id=uuid4(),
        status=status,
        name="Ana",
        cpf="12345678900",
        insured_value=500,
    ).to_body()


def _message(body, event_type=None):
    attributes = {}
    if event_type is not None:
        attributes["EventType"] = MessageAttribute(event_type)
    return QueueMessage("1-0", body, "1-0", attributes)


def test_check_event_type_variants():
    assert check_event_type(_message("{}")).match is AttributeMatch.MISSING

    mismatched = check_event_type(_message("{}", "Other"))
    assert mismatched.match is AttributeMatch.MISMATCHED
    assert mismatched.value == "Other"

    assert check_event_type(_message("{}", "PropostaStatusAtualizado")).match is AttributeMatch.MATCHED


@pytest.mark.asyncio
async def test_missing_attribute_is_ignored(caplog):
    caplog.set_level(logging.INFO)
    handler = RecordingHandler()

    result = await EventDispatcher(handler).dispatch(_message(_body()))

    assert result is None
    assert handler.calls == []
    assert "attribute not found" in caplog.text


@pytest.mark.asyncio
async def test_different_event_type_is_ignored(caplog):
    caplog.set_level(logging.INFO)
    handler = RecordingHandler()

    result = await EventDispatcher(handler).dispatch(_message(_body(), "ContratoCriado"))

    assert result is None
    assert handler.calls == []
    assert "different event type" in caplog.text


@pytest.mark.asyncio
async def test_matching_message_invokes_handler_once():
    handler = RecordingHandler()

    result = await EventDispatcher(handler).dispatch(
        _message(_body("Rejeitada"), "PropostaStatusAtualizado")
    )

    assert result is None
    assert len(handler.calls) == 1
    assert handler.calls[0][1] == "Rejeitada"


@pytest.mark.asyncio
async def test_malformed_body_is_reported_not_raised(caplog):
    handler = RecordingHandler()

    result = await EventDispatcher(handler).dispatch(
        _message("{not json", "PropostaStatusAtualizado")
    )

    assert result.stage == "decode"
    assert result.message_id == "1-0"
    assert handler.calls == []
    assert any(r.levelno == logging.ERROR and "1-0" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_handler_failure_is_absorbed(caplog):
    handler = RecordingHandler(error=RuntimeError("database down"))

    result = await EventDispatcher(handler).dispatch(
        _message(_body(), "PropostaStatusAtualizado")
    )

    assert result.stage == "handle"
    assert isinstance(result.error, RuntimeError)
    assert any(r.levelno == logging.ERROR for r in caplog.records)
