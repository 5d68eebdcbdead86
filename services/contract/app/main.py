"""
Contract Service — FastAPI エントリーポイント

保険契約の発行・照会・解約 API を提供する。
起動時に提案ステータスのキューを購読するバックグラウンドタスクを開始し、
承認された提案から自動的に契約を発行する。

┌──────────────────┐  proposta-status  ┌──────────────────────────────┐
│ Proposal Service │ ── Redis Stream ─▶ │ Contract Service             │
└──────────────────┘                    │  consumer → dispatcher       │
                                        │           → approval handler │
                                        │           → create_contract  │
                                        └──────────────┬───────────────┘
                                                       │
                                              ┌────────▼────────┐
                                              │  Contract DB    │
                                              └─────────────────┘
"""

import asyncio
import logging
import os
import socket
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
from .aggregate import Contract
from .consumer import MessageConsumerLoop
from .dispatcher import EventDispatcher
from .handler import ProposalApprovalHandler
from .tables import create_schema

DATABASE_URL = os.environ["DATABASE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
PROPOSAL_QUEUE = os.environ.get("PROPOSAL_QUEUE", "proposta-status")
CONSUMER_GROUP = os.environ.get("CONSUMER_GROUP", "contratacao-service")
CONSUMER_NAME = os.environ.get("CONSUMER_NAME", socket.gethostname())
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_contract_from_event(**kwargs) -> Contract:
    """ハンドラ用: メッセージ1件ごとに新しいセッションで契約を発行する。"""
    async with async_session() as session:
        return await commands.create_contract(session, **kwargs)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """起動時にキューコンシューマをバックグラウンドタスクとして開始する。"""
    await create_schema(engine)
    redis_conn = aioredis.from_url(REDIS_URL, decode_responses=True)
    queue = RedisStreamQueue(redis_conn, group=CONSUMER_GROUP, consumer=CONSUMER_NAME)
    dispatcher = EventDispatcher(ProposalApprovalHandler(create_contract_from_event))
    consumer = MessageConsumerLoop(queue, PROPOSAL_QUEUE, dispatcher)

    shutdown_event = asyncio.Event()
    consumer_task = asyncio.create_task(consumer.run(shutdown_event))
    yield
    shutdown_event.set()
    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    await redis_conn.aclose()
    await engine.dispose()


app = FastAPI(title="Contract Service", lifespan=lifespan)


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

class CreateContractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    proposal_id: UUID = Field(alias="propostaId")
    name: str = Field(alias="nome")
    cpf: str
    insured_value: Decimal = Field(alias="valorSeguro")
    duration_months: int = Field(alias="duracaoMeses")


# ── Command Endpoints ────────────────────────────

@app.post("/api/contratos", status_code=201)
async def create_contract(req: CreateContractRequest):
    """契約の直接発行"""
    async with async_session() as session:
        contract = await commands.create_contract(
            session,
            proposal_id=req.proposal_id,
            name=req.name,
            cpf=req.cpf,
            insured_value=req.insured_value,
            duration_months=req.duration_months,
        )
        return contract.to_dict()


@app.put("/api/contratos/{contract_id}/cancelar")
async def cancel_contract(contract_id: UUID):
    async with async_session() as session:
        contract = await commands.cancel_contract(session, contract_id)
        return contract.to_dict()


# ── Query Endpoints ──────────────────────────────

@app.get("/api/contratos")
async def list_contracts():
    async with async_session() as session:
        return [c.to_dict() for c in await queries.list_contracts(session)]


@app.get("/api/contratos/proposta/{proposal_id}")
async def get_contract_by_proposal(proposal_id: UUID):
    async with async_session() as session:
        contract = await queries.get_by_proposal(session, proposal_id)
        if not contract:
            raise HTTPException(404, "Contract not found")
        return contract.to_dict()


@app.get("/api/contratos/cpf/{cpf}")
async def list_active_contracts_by_cpf(cpf: str):
    async with async_session() as session:
        return [c.to_dict() for c in await queries.list_active_by_cpf(session, cpf)]


@app.get("/api/contratos/{contract_id}")
async def get_contract(contract_id: UUID):
    async with async_session() as session:
        contract = await queries.get_contract(session, contract_id)
        if not contract:
            raise HTTPException(404, "Contract not found")
        return contract.to_dict()


@app.get("/health")
async def health():
    return {"status": "ok", "service": "contract-service"}
