"""
共通 — メッセージ定義

Proposal Service が発行し、Contract Service が購読する
「提案ステータス更新」メッセージのワイヤーフォーマット。
フィールド名はサービス間の契約なので変更しないこと。

{
  "PropostaId": "<uuid>",
  "Status": "<EmAnalise|Aprovada|Rejeitada>",
  "DataAtualizacao": "<ISO-8601 または null>",
  "Nome": "<string>",
  "CPF": "<string>",
  "ValorSeguro": <decimal>
}
"""

import json
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import DecodeFailure

EVENT_TYPE_ATTRIBUTE = "EventType"
PROPOSAL_STATUS_UPDATED = "PropostaStatusAtualizado"


class StatusChangeMessage(BaseModel):
    """提案のステータスが変化した（または提案が作成された）"""
    model_config = ConfigDict(populate_by_name=True)

    proposal_id: UUID = Field(alias="PropostaId")
    status: str = Field(alias="Status")
    updated_at: datetime | None = Field(default=None, alias="DataAtualizacao")
    name: str = Field(alias="Nome")
    cpf: str = Field(alias="CPF")
    insured_value: Decimal = Field(alias="ValorSeguro")

    def to_body(self) -> str:
        """
        JSON 本文にシリアライズする。

        ValorSeguro は float を経由せず、Decimal の桁をそのまま数値として書き出す。
        """
        fields = json.dumps({
            "PropostaId": str(self.proposal_id),
            "Status": self.status,
            "DataAtualizacao": self.updated_at.isoformat() if self.updated_at else None,
            "Nome": self.name,
            "CPF": self.cpf,
        })
        return f'{fields[:-1]}, "ValorSeguro": {format(self.insured_value, "f")}}}'

    @classmethod
    def decode(cls, body: str) -> "StatusChangeMessage":
        # parse_float=Decimal で数値の桁を失わずに読む
        try:
            data = json.loads(body, parse_float=Decimal)
            return cls.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise DecodeFailure(str(e)) from e
