"""
Contract Service — イベントディスパッチャ

受信メッセージの EventType 属性を見て、処理するかどうかを決める。

  属性なし              → INFO ログを出して無視
  属性あり・別の種類     → INFO ログを出して無視
  PropostaStatusAtualizado → 本文をデコードしてハンドラへ

dispatch は例外を外に投げない。失敗は ProcessingError として返し、
呼び出し側 (コンシューマループ) は結果に関わらずメッセージを削除する。
"""

import logging
from dataclasses import dataclass
from enum import Enum

from services.shared.errors import DecodeFailure
from services.shared.messages import (
    EVENT_TYPE_ATTRIBUTE,
    PROPOSAL_STATUS_UPDATED,
    StatusChangeMessage,
)
from services.shared.queue import QueueMessage

from .handler import ProposalApprovalHandler

logger = logging.getLogger(__name__)


class AttributeMatch(Enum):
    MISSING = "missing"
    MISMATCHED = "mismatched"
    MATCHED = "matched"


@dataclass(frozen=True)
class EventTypeCheck:
    match: AttributeMatch
    value: str | None = None


@dataclass(frozen=True)
class ProcessingError:
    """1件のメッセージ処理の失敗。stage は "decode" または "handle"。"""
    message_id: str
    stage: str
    error: Exception


def check_event_type(message: QueueMessage) -> EventTypeCheck:
    attribute = message.attributes.get(EVENT_TYPE_ATTRIBUTE)
    if attribute is None:
        return EventTypeCheck(AttributeMatch.MISSING)
    if attribute.string_value != PROPOSAL_STATUS_UPDATED:
        return EventTypeCheck(AttributeMatch.MISMATCHED, attribute.string_value)
    return EventTypeCheck(AttributeMatch.MATCHED, attribute.string_value)


class EventDispatcher:
    def __init__(self, handler: ProposalApprovalHandler):
        self.handler = handler

    async def dispatch(self, message: QueueMessage) -> ProcessingError | None:
        check = check_event_type(message)
        if check.match is AttributeMatch.MISSING:
            logger.info("Message %s: %s attribute not found", message.message_id, EVENT_TYPE_ATTRIBUTE)
            return None
        if check.match is AttributeMatch.MISMATCHED:
            logger.info("Message %s: different event type %s", message.message_id, check.value)
            return None

        try:
            event = StatusChangeMessage.decode(message.body)
        except DecodeFailure as e:
            logger.error("Failed to decode message %s: %s", message.message_id, e)
            return ProcessingError(message.message_id, "decode", e)

        try:
            await self.handler.handle(
                event.proposal_id,
                event.status,
                event.name,
                event.cpf,
                event.insured_value,
            )
        except Exception as e:
            logger.exception("Failed to handle message %s", message.message_id)
            return ProcessingError(message.message_id, "handle", e)

        logger.info("Processed proposal message %s for %s", message.message_id, event.proposal_id)
        return None
