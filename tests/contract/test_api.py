from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from services.contract.app import main


@pytest.fixture
def client(monkeypatch, session_factory):
    monkeypatch.setattr(main, "async_session", session_factory)
    return AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


def _payload(**overrides):
    payload = {
        "propostaId": str(uuid4()),
        "nome": "Cliente Teste",
        "cpf": "12345678900",
        "valorSeguro": 1500.00,
        "duracaoMeses": 12,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_and_lookup_contract(client):
    payload = _payload()
    async with client:
        resp = await client.post("/api/contratos", json=payload)
        assert resp.status_code == 201
        contract = resp.json()
        assert contract["ativo"] is True
        assert contract["propostaId"] == payload["propostaId"]

        resp = await client.get(f"/api/contratos/{contract['id']}")
        assert resp.json()["nome"] == "Cliente Teste"

        resp = await client.get(f"/api/contratos/proposta/{payload['propostaId']}")
        assert resp.json()["id"] == contract["id"]

        resp = await client.get("/api/contratos/cpf/12345678900")
        assert [c["id"] for c in resp.json()] == [contract["id"]]


@pytest.mark.asyncio
async def test_invalid_contract_is_bad_request(client):
    async with client:
        resp = await client.post("/api/contratos", json=_payload(duracaoMeses=0))
    assert resp.status_code == 400
    assert resp.json()["field"] == "duracaoMeses"


@pytest.mark.asyncio
async def test_cancel_twice_is_conflict(client):
    async with client:
        contract = (await client.post("/api/contratos", json=_payload())).json()

        resp = await client.put(f"/api/contratos/{contract['id']}/cancelar")
        assert resp.status_code == 200
        assert resp.json()["ativo"] is False

        resp = await client.put(f"/api/contratos/{contract['id']}/cancelar")
        assert resp.status_code == 409


@pytest.mark.asyncio
async def test_lookup_errors(client):
    async with client:
        assert (await client.get(f"/api/contratos/{uuid4()}")).status_code == 404
        assert (await client.get(f"/api/contratos/{UUID(int=0)}")).status_code == 400
        assert (await client.get(f"/api/contratos/proposta/{uuid4()}")).status_code == 404
        assert (await client.get("/api/contratos/cpf/123")).status_code == 400
        assert (await client.put(f"/api/contratos/{uuid4()}/cancelar")).status_code == 404
