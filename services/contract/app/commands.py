"""
Contract Service — コマンドハンドラ (Write 側)

契約の発行と解約。HTTP から直接呼ばれるほか、
提案承認メッセージのハンドラからも契約発行が呼ばれる。
"""

import logging
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.shared.errors import InvalidArgument, InvalidState, NotFound
from services.shared.money import parse_insured_value

from .aggregate import Contract
from .tables import contracts

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_CPF_LENGTH = 14


def validate_cpf(cpf: str) -> None:
    if not cpf or not cpf.strip():
        raise InvalidArgument("cpf", "CPF must not be empty")
    if len(cpf) < 11:
        raise InvalidArgument("cpf", "CPF must have 11 digits")
    if len(cpf) > MAX_CPF_LENGTH:
        raise InvalidArgument("cpf", f"CPF must have at most {MAX_CPF_LENGTH} characters")


def require_id(value: UUID, field: str) -> None:
    if value is None or value.int == 0:
        raise InvalidArgument(field, "id must not be empty")


async def create_contract(
    session: AsyncSession,
    proposal_id: UUID,
    name: str,
    cpf: str,
    insured_value,
    duration_months: int,
) -> Contract:
    """
    契約発行コマンド

    同じ proposal_id の契約が既にあっても拒否しない。
    """
    require_id(proposal_id, "propostaId")
    if not name or not name.strip():
        raise InvalidArgument("nome", "name must not be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidArgument("nome", f"name must have at most {MAX_NAME_LENGTH} characters")
    validate_cpf(cpf)
    value = parse_insured_value(insured_value)
    if duration_months <= 0:
        raise InvalidArgument("duracaoMeses", "duration must be greater than zero")

    contract = Contract.issue(proposal_id, name, cpf, value, duration_months)
    await session.execute(insert(contracts).values(**contract.to_row()))
    await session.commit()

    logger.info("Issued contract %s for proposal %s", contract.id, proposal_id)
    return contract


async def cancel_contract(session: AsyncSession, contract_id: UUID) -> Contract:
    """
    解約コマンド — 既に解約済みなら InvalidState

    行ロックを取ったうえで、UPDATE も active = true の行だけを対象にする。
    同時に解約された場合は片方だけが成功する。
    """
    require_id(contract_id, "id")
    result = await session.execute(
        select(contracts).where(contracts.c.id == contract_id).with_for_update()
    )
    row = result.fetchone()
    if not row:
        raise NotFound(f"contract {contract_id} not found")

    contract = Contract.from_row(row)
    contract.cancel()

    result = await session.execute(
        update(contracts)
        .where(contracts.c.id == contract_id, contracts.c.active.is_(True))
        .values(active=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidState(f"contract {contract_id} is already cancelled")
    await session.commit()

    logger.info("Cancelled contract %s", contract_id)
    return contract
