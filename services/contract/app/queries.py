"""
Contract Service — クエリハンドラ (Read 側)
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .aggregate import Contract
from .commands import require_id, validate_cpf
from .tables import contracts


async def get_contract(session: AsyncSession, contract_id: UUID) -> Contract | None:
    require_id(contract_id, "id")
    result = await session.execute(select(contracts).where(contracts.c.id == contract_id))
    row = result.fetchone()
    if not row:
        return None
    return Contract.from_row(row)


async def get_by_proposal(session: AsyncSession, proposal_id: UUID) -> Contract | None:
    """提案に紐づく契約を1件返す (重複がある場合は最初に作られたもの)。"""
    require_id(proposal_id, "propostaId")
    result = await session.execute(
        select(contracts)
        .where(contracts.c.proposal_id == proposal_id)
        .order_by(contracts.c.created_at.asc())
        .limit(1)
    )
    row = result.fetchone()
    if not row:
        return None
    return Contract.from_row(row)


async def list_contracts(session: AsyncSession) -> list[Contract]:
    result = await session.execute(select(contracts).order_by(contracts.c.created_at.desc()))
    return [Contract.from_row(row) for row in result.fetchall()]


async def list_active_by_cpf(session: AsyncSession, cpf: str) -> list[Contract]:
    validate_cpf(cpf)
    result = await session.execute(
        select(contracts)
        .where(contracts.c.cpf == cpf, contracts.c.active.is_(True))
        .order_by(contracts.c.created_at.desc())
    )
    return [Contract.from_row(row) for row in result.fetchall()]
