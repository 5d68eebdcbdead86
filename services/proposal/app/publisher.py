"""
Proposal Service — ステータス更新パブリッシャー

提案の現在の状態をメッセージにして永続キューへ送る。
1回の呼び出しで1件のメッセージ。リトライはしない:
トランスポートのエラーはそのまま呼び出し元に伝わる。
"""

import logging

from services.shared.errors import InvalidArgument
from services.shared.messages import (
    EVENT_TYPE_ATTRIBUTE,
    PROPOSAL_STATUS_UPDATED,
    StatusChangeMessage,
)
from services.shared.queue import MessageAttribute

from .aggregate import Proposal

logger = logging.getLogger(__name__)


class StatusChangePublisher:
    def __init__(self, queue, queue_name: str):
        self.queue = queue
        self.queue_name = queue_name

    async def publish(self, proposal: Proposal | None) -> str:
        """提案のスナップショットを PropostaStatusAtualizado として送信し、メッセージ ID を返す。"""
        if proposal is None:
            raise InvalidArgument("proposal", "proposal must not be None")
        if not self.queue_name:
            raise InvalidArgument("queue_name", "destination queue must be configured")

        message = StatusChangeMessage(
            proposal_id=proposal.id,
            status=proposal.status.value,
            updated_at=proposal.updated_at,
            name=proposal.name,
            cpf=proposal.cpf,
            insured_value=proposal.insured_value,
        )
        message_id = await self.queue.send(
            self.queue_name,
            message.to_body(),
            {EVENT_TYPE_ATTRIBUTE: MessageAttribute(PROPOSAL_STATUS_UPDATED)},
        )
        logger.info(
            "Published %s for proposal %s (status=%s) as %s",
            PROPOSAL_STATUS_UPDATED, proposal.id, proposal.status.value, message_id,
        )
        return message_id
