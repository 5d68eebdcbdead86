"""
Proposal Service — FastAPI エントリーポイント

保険提案の受付とステータス管理を行う。
ステータスが変わるたびに Redis Streams のキューへメッセージを発行し、
Contract Service が非同期に契約を発行する。

┌──────────────────┐  proposta-status  ┌──────────────────┐
│ Proposal Service │ ── Redis Stream ─▶ │ Contract Service │
│ (提案の受付)      │  (永続キュー)       │ (契約の発行)      │
└──────────────────┘                    └──────────────────┘
"""

import logging
import os
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from services.shared.errors import InvalidArgument, InvalidState, NotFound
from services.shared.queue import RedisStreamQueue

from . import commands, queries
from .aggregate import ProposalStatus
from .publisher import StatusChangePublisher
from .tables import create_schema

DATABASE_URL = os.environ["DATABASE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
PROPOSAL_QUEUE = os.environ.get("PROPOSAL_QUEUE", "proposta-status")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None
publisher: StatusChangePublisher | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool, publisher
    await create_schema(engine)
    redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
    publisher = StatusChangePublisher(RedisStreamQueue(redis_pool), PROPOSAL_QUEUE)
    logger.info("Publishing proposal status changes to %s", PROPOSAL_QUEUE)
    yield
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Proposal Service", lifespan=lifespan)


# ── エラー変換 ───────────────────────────────────

@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidState)
async def invalid_state_handler(request: Request, exc: InvalidState):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Request Models ───────────────────────────────

class CreateProposalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="nome")
    cpf: str
    insured_value: Decimal = Field(alias="valorSeguro")


class UpdateStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    new_status: str | int = Field(alias="novoStatus")


def _require_id(proposal_id: UUID) -> None:
    if proposal_id.int == 0:
        raise HTTPException(400, "Invalid proposal id")


# ── Command Endpoints ────────────────────────────

@app.post("/api/propostas", status_code=201)
async def create_proposal(req: CreateProposalRequest):
    """提案作成 — 審査中(EmAnalise)で登録し、キューに発行する"""
    async with async_session() as session:
        proposal = await commands.create_proposal(
            session, publisher, req.name, req.cpf, req.insured_value
        )
        return proposal.to_dict()


@app.put("/api/propostas/status")
async def update_proposal_status(req: UpdateStatusRequest):
    """ステータス更新 — 変化があった場合のみキューに発行する"""
    _require_id(req.id)
    new_status = ProposalStatus.parse(req.new_status)
    async with async_session() as session:
        proposal = await commands.update_status(session, publisher, req.id, new_status)
        return proposal.to_dict()


# ── Query Endpoints ──────────────────────────────

@app.get("/api/propostas")
async def list_proposals():
    async with async_session() as session:
        return [p.to_dict() for p in await queries.list_proposals(session)]


@app.get("/api/propostas/status/{status}")
async def list_proposals_by_status(status: str):
    proposal_status = ProposalStatus.parse(status)
    async with async_session() as session:
        return [p.to_dict() for p in await queries.list_by_status(session, proposal_status)]


@app.get("/api/propostas/{proposal_id}")
async def get_proposal(proposal_id: UUID):
    _require_id(proposal_id)
    async with async_session() as session:
        proposal = await queries.get_proposal(session, proposal_id)
        if not proposal:
            raise HTTPException(404, "Proposal not found")
        return proposal.to_dict()


@app.get("/health")
async def health():
    return {"status": "ok", "service": "proposal-service"}
