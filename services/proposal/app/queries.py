"""
Proposal Service — クエリハンドラ (Read 側)
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .aggregate import Proposal, ProposalStatus
from .tables import proposals


async def get_proposal(session: AsyncSession, proposal_id: UUID) -> Proposal | None:
    result = await session.execute(select(proposals).where(proposals.c.id == proposal_id))
    row = result.fetchone()
    if not row:
        return None
    return Proposal.from_row(row)


async def list_proposals(session: AsyncSession) -> list[Proposal]:
    """全提案を新しい順に返す。"""
    result = await session.execute(
        select(proposals).order_by(proposals.c.created_at.desc())
    )
    return [Proposal.from_row(row) for row in result.fetchall()]


async def list_by_status(session: AsyncSession, status: ProposalStatus) -> list[Proposal]:
    result = await session.execute(
        select(proposals)
        .where(proposals.c.status == status.value)
        .order_by(proposals.c.created_at.desc())
    )
    return [Proposal.from_row(row) for row in result.fetchall()]
