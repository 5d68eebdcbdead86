"""
Proposal Service — テーブル定義

提案は1行1エンティティで保存する。ステータス更新は同じ行を UPDATE する。
"""

from sqlalchemy import Column, DateTime, MetaData, Numeric, String, Table, Uuid
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

proposals = Table(
    "proposals",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("cpf", String(11), nullable=False),
    Column("insured_value", Numeric(18, 2), nullable=False),
    Column("status", String(20), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)


async def create_schema(engine: AsyncEngine) -> None:
    """起動時にテーブルが無ければ作成する。"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
