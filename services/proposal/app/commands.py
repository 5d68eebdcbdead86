"""
Proposal Service — コマンドハンドラ (Write 側)

状態を変更する操作。DB をコミットしてからキューへ発行する。
発行に失敗した場合、DB の変更は既にコミット済みのまま残る。
"""

from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.shared.errors import InvalidState, NotFound

from .aggregate import Proposal, ProposalStatus
from .publisher import StatusChangePublisher
from .tables import proposals


async def create_proposal(
    session: AsyncSession,
    publisher: StatusChangePublisher,
    name: str,
    cpf: str,
    insured_value,
) -> Proposal:
    """
    提案作成コマンド

    1. 入力を検証して Proposal を生成 (不正なら何も保存しない)
    2. DB に保存
    3. 作成時点のステータス (EmAnalise) をキューに発行
    """
    proposal = Proposal.create(name, cpf, insured_value)

    await session.execute(insert(proposals).values(**proposal.to_row()))
    await session.commit()

    await publisher.publish(proposal)
    return proposal


async def update_status(
    session: AsyncSession,
    publisher: StatusChangePublisher,
    proposal_id: UUID,
    new_status: ProposalStatus,
) -> Proposal:
    """
    ステータス更新コマンド

    同じステータスへの更新は何も保存せず、メッセージも発行しない。
    行ロックを取り、UPDATE も読み出した時点のステータスを条件にする。
    同時に更新された場合は片方だけが成功し、発行も1回になる。
    """
    result = await session.execute(
        select(proposals).where(proposals.c.id == proposal_id).with_for_update()
    )
    row = result.fetchone()
    if not row:
        raise NotFound(f"proposal {proposal_id} not found")

    proposal = Proposal.from_row(row)
    previous_status = proposal.status
    if not proposal.update_status(new_status):
        return proposal

    result = await session.execute(
        update(proposals)
        .where(proposals.c.id == proposal_id, proposals.c.status == previous_status.value)
        .values(status=proposal.status.value, updated_at=proposal.updated_at)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidState(f"proposal {proposal_id} was modified by another request")
    await session.commit()

    await publisher.publish(proposal)
    return proposal
