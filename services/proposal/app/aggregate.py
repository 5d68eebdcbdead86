"""
Proposal Service — 提案 (Proposal)

保険加入の申し込み。作成時は必ず「審査中(EmAnalise)」で始まり、
ステータス更新コマンドでのみ変化する。削除はされない。

状態遷移:
    EmAnalise → Aprovada   (承認)
    EmAnalise → Rejeitada  (却下)
    Aprovada  → Rejeitada  (承認後の却下)
    Rejeitada → *          不可 (終端状態)
    Aprovada  → EmAnalise  不可
    同一ステータスへの更新 → 何もしない (更新日時も変えない)
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from services.shared.errors import InvalidArgument, InvalidState
from services.shared.money import parse_insured_value

MAX_NAME_LENGTH = 100


class ProposalStatus(str, Enum):
    UNDER_REVIEW = "EmAnalise"
    APPROVED = "Aprovada"
    REJECTED = "Rejeitada"

    @classmethod
    def parse(cls, value: "str | int | ProposalStatus") -> "ProposalStatus":
        """値 ("Aprovada")、英名 ("APPROVED")、序数 (1) のいずれも受け付ける。"""
        if isinstance(value, cls):
            return value
        members = list(cls)
        if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
            index = int(value)
            if 0 <= index < len(members):
                return members[index]
        elif isinstance(value, str):
            for member in members:
                if value.lower() in (member.value.lower(), member.name.lower()):
                    return member
        raise InvalidArgument("status", f"unknown proposal status: {value!r}")


def normalize_cpf(cpf: str) -> str:
    """句読点を取り除き、11桁の数字であることを確認する。"""
    digits = re.sub(r"[.\-\s/]", "", cpf or "")
    if len(digits) != 11 or not digits.isdigit():
        raise InvalidArgument("cpf", "CPF must have exactly 11 digits")
    return digits


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Proposal:
    """提案エンティティ"""

    def __init__(
        self,
        id: UUID,
        name: str,
        cpf: str,
        insured_value: Decimal,
        status: ProposalStatus,
        created_at: datetime,
        updated_at: datetime | None = None,
    ) -> None:
        self.id = id
        self.name = name
        self.cpf = cpf
        self.insured_value = insured_value
        self.status = status
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def create(cls, name: str, cpf: str, insured_value) -> "Proposal":
        """入力を検証し、審査中の新しい提案を生成する。"""
        if not name or not name.strip():
            raise InvalidArgument("nome", "name must not be empty")
        if len(name.strip()) > MAX_NAME_LENGTH:
            raise InvalidArgument("nome", f"name must have at most {MAX_NAME_LENGTH} characters")
        cpf = normalize_cpf(cpf)
        value = parse_insured_value(insured_value)

        return cls(
            id=uuid4(),
            name=name.strip(),
            cpf=cpf,
            insured_value=value,
            status=ProposalStatus.UNDER_REVIEW,
            created_at=datetime.now(timezone.utc),
        )

    def update_status(self, new_status: ProposalStatus) -> bool:
        """
        ステータスを遷移させる。実際に変化した場合のみ True を返す。

        却下済みの提案は終端状態なので、同じステータスでも InvalidState になる。
        """
        if self.status is ProposalStatus.REJECTED:
            raise InvalidState(f"proposal {self.id} is rejected and cannot change status")
        if new_status is self.status:
            return False
        if self.status is ProposalStatus.APPROVED and new_status is ProposalStatus.UNDER_REVIEW:
            raise InvalidState(f"proposal {self.id} is approved and cannot return to review")

        self.status = new_status
        self.updated_at = datetime.now(timezone.utc)
        return True

    # ── 永続化との変換 ──────────────────────────────

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cpf": self.cpf,
            "insured_value": self.insured_value,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row) -> "Proposal":
        return cls(
            id=row.id,
            name=row.name,
            cpf=row.cpf,
            insured_value=Decimal(str(row.insured_value)),
            status=ProposalStatus(row.status),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def to_dict(self) -> dict:
        """API レスポンス用の表現"""
        return {
            "id": str(self.id),
            "nome": self.name,
            "cpf": self.cpf,
            "valorSeguro": float(self.insured_value),
            "status": self.status.value,
            "dataCriacao": self.created_at.isoformat(),
            "dataAtualizacao": self.updated_at.isoformat() if self.updated_at else None,
        }
