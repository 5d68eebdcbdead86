"""
Contract Service — 契約 (Contract)

承認された提案から発行される保険契約。
発行後に変化するのは有効フラグだけで、解約は一度しかできない。
"""

import calendar
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from services.shared.errors import InvalidState


def add_months(start: date, months: int) -> date:
    """暦月で加算する。存在しない日は月末に丸める (1/31 + 1ヶ月 = 2/28 or 29)。"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Contract:
    """
    契約エンティティ

    状態遷移:
        ativo=True → ativo=False  (解約)
        ativo=False → 解約        InvalidState
    """

    def __init__(
        self,
        id: UUID,
        proposal_id: UUID,
        name: str,
        cpf: str,
        insured_value: Decimal,
        start_date: date,
        end_date: date,
        active: bool,
        created_at: datetime,
    ) -> None:
        self.id = id
        self.proposal_id = proposal_id
        self.name = name
        self.cpf = cpf
        self.insured_value = insured_value
        self.start_date = start_date
        self.end_date = end_date
        self.active = active
        self.created_at = created_at

    @classmethod
    def issue(
        cls,
        proposal_id: UUID,
        name: str,
        cpf: str,
        insured_value: Decimal,
        duration_months: int,
    ) -> "Contract":
        """今日 (UTC) を開始日として契約を発行する。入力の検証は呼び出し側で行う。"""
        now = datetime.now(timezone.utc)
        start = now.date()
        return cls(
            id=uuid4(),
            proposal_id=proposal_id,
            name=name,
            cpf=cpf,
            insured_value=insured_value,
            start_date=start,
            end_date=add_months(start, duration_months),
            active=True,
            created_at=now,
        )

    def cancel(self) -> None:
        if not self.active:
            raise InvalidState(f"contract {self.id} is already cancelled")
        self.active = False

    # ── 永続化との変換 ──────────────────────────────

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "proposal_id": self.proposal_id,
            "name": self.name,
            "cpf": self.cpf,
            "insured_value": self.insured_value,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "active": self.active,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row) -> "Contract":
        return cls(
            id=row.id,
            proposal_id=row.proposal_id,
            name=row.name,
            cpf=row.cpf,
            insured_value=Decimal(str(row.insured_value)),
            start_date=row.start_date,
            end_date=row.end_date,
            active=bool(row.active),
            created_at=_as_utc(row.created_at),
        )

    def to_dict(self) -> dict:
        """API レスポンス用の表現"""
        return {
            "id": str(self.id),
            "propostaId": str(self.proposal_id),
            "nome": self.name,
            "cpf": self.cpf,
            "valorSeguro": float(self.insured_value),
            "dataInicio": self.start_date.isoformat(),
            "dataFim": self.end_date.isoformat(),
            "ativo": self.active,
            "dataCriacao": self.created_at.isoformat(),
        }
