"""
Contract Service — テーブル定義

proposal_id には一意制約を付けない。同じ承認イベントが二度処理されると
同じ提案に対して契約が二件できる (重複排除は行っていない)。
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Uuid,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

contracts = Table(
    "contracts",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("proposal_id", Uuid, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("cpf", String(14), nullable=False, index=True),
    Column("insured_value", Numeric(18, 2), nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


async def create_schema(engine: AsyncEngine) -> None:
    """起動時にテーブルが無ければ作成する。"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
