"""
Contract Service — 提案承認ハンドラ

「承認された提案は契約になる」というビジネスルールを持つ唯一の場所。
どのメッセージを受け取るかの判断 (EventType による振り分け) は
ディスパッチャ側の責務で、ここでは扱わない。
"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable
from uuid import UUID

from services.shared.errors import InvalidArgument

from .aggregate import Contract

logger = logging.getLogger(__name__)

APPROVED_STATUS = "Aprovada"
DEFAULT_DURATION_MONTHS = 12

ContractCreator = Callable[..., Awaitable[Contract]]


class ProposalApprovalHandler:
    def __init__(self, create_contract: ContractCreator):
        self.create_contract = create_contract

    async def handle(
        self,
        proposal_id: UUID,
        status: str,
        name: str,
        cpf: str,
        insured_value: Decimal,
    ) -> Contract | None:
        """
        提案が承認済みなら12ヶ月の契約を発行する。

        承認以外のステータス (未知の値を含む) は何もしない。エラーではない。
        """
        if proposal_id is None or proposal_id.int == 0:
            raise InvalidArgument("propostaId", "proposal id must not be empty")
        if not name or not name.strip():
            raise InvalidArgument("nome", "name must not be empty")
        if not cpf or len(cpf) < 11:
            raise InvalidArgument("cpf", "CPF must have at least 11 characters")
        if insured_value is None or insured_value <= 0:
            raise InvalidArgument("valorSeguro", "insured value must be greater than zero")

        if (status or "").lower() != APPROVED_STATUS.lower():
            logger.info("Proposal %s has status %s; no contract issued", proposal_id, status)
            return None

        return await self.create_contract(
            proposal_id=proposal_id,
            name=name,
            cpf=cpf,
            insured_value=insured_value,
            duration_months=DEFAULT_DURATION_MONTHS,
        )
