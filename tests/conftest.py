import os

# main.py はインポート時に DATABASE_URL を読むので、先に設定しておく
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from services.contract.app.tables import metadata as contract_metadata
from services.proposal.app.tables import metadata as proposal_metadata
from services.shared.queue import QueueMessage


class InMemoryQueue:
    """キュートランスポートの代用品。受信済み・未削除のメッセージは再配信しない。"""

    def __init__(self):
        self.streams: dict[str, list[QueueMessage]] = {}
        self.in_flight: set[str] = set()
        self.deleted: list[str] = []
        self.receive_calls = 0
        self._seq = 0

    async def send(self, destination, body, attributes=None):
        self._seq += 1
        message_id = f"{self._seq}-0"
        self.streams.setdefault(destination, []).append(
            QueueMessage(message_id, body, message_id, dict(attributes or {}))
        )
        return message_id

    async def receive(self, destination, max_messages, wait_seconds, attribute_names=("All",)):
        self.receive_calls += 1
        batch = [
            m for m in self.streams.get(destination, [])
            if m.receipt_handle not in self.in_flight
        ][:max_messages]
        self.in_flight.update(m.receipt_handle for m in batch)
        return batch

    async def delete(self, destination, receipt_handle):
        self.streams[destination] = [
            m for m in self.streams.get(destination, [])
            if m.receipt_handle != receipt_handle
        ]
        self.in_flight.discard(receipt_handle)
        self.deleted.append(receipt_handle)

    def pending(self, destination):
        return list(self.streams.get(destination, []))


@pytest.fixture
def queue():
    return InMemoryQueue()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(proposal_metadata.create_all)
        await conn.run_sync(contract_metadata.create_all)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
