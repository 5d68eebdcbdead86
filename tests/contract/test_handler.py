from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from services.contract.app.handler import ProposalApprovalHandler
from services.shared.errors import InvalidArgument


class RecordingCreator:
    def __init__(self):
        self.calls = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        return kwargs


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["Aprovada", "aprovada", "APROVADA"])
async def test_approved_proposal_issues_twelve_month_contract(status):
    creator = RecordingCreator()
    proposal_id = uuid4()

    await ProposalApprovalHandler(creator).handle(
        proposal_id, status, "Ana", "12345678900", Decimal("500.00")
    )

    assert creator.calls == [{
        "proposal_id": proposal_id,
        "name": "Ana",
        "cpf": "12345678900",
        "insured_value": Decimal("500.00"),
        "duration_months": 12,
    }]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["Rejeitada", "EmAnalise", "Whatever", ""])
async def test_other_statuses_do_nothing(status):
    creator = RecordingCreator()

    result = await ProposalApprovalHandler(creator).handle(
        uuid4(), status, "Ana", "12345678900", Decimal("500.00")
    )

    assert result is None
    assert creator.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "proposal_id, name, cpf, value, field",
    [
        (UUID(int=0), "Ana", "12345678900", Decimal("1"), "propostaId"),
        (uuid4(), "  ", "12345678900", Decimal("1"), "nome"),
        (uuid4(), "Ana", "", Decimal("1"), "cpf"),
        (uuid4(), "Ana", "1234567890", Decimal("1"), "cpf"),
        (uuid4(), "Ana", "12345678900", Decimal("0"), "valorSeguro"),
    ],
)
async def test_invalid_payload_is_rejected(proposal_id, name, cpf, value, field):
    creator = RecordingCreator()

    with pytest.raises(InvalidArgument) as exc:
        await ProposalApprovalHandler(creator).handle(proposal_id, "Aprovada", name, cpf, value)

    assert exc.value.field == field
    assert creator.calls == []
