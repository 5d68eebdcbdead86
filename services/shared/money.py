"""
共通 — 金額 (保険金額) の検証

テーブルの保険金額は Numeric(18, 2)。整数部16桁・小数部2桁に
収まらない値は保存時に丸められたり失敗したりするので、入口で弾く。
"""

from decimal import Decimal, InvalidOperation

from .errors import InvalidArgument

CENT = Decimal("0.01")
MAX_VALUE = Decimal(10) ** 16


def parse_insured_value(value, field: str = "valorSeguro") -> Decimal:
    """0 より大きく、小数2桁までの Decimal に正規化する。"""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidArgument(field, "insured value must be a number")
    if not amount.is_finite():
        raise InvalidArgument(field, "insured value must be a number")
    if amount <= 0:
        raise InvalidArgument(field, "insured value must be greater than zero")
    if amount >= MAX_VALUE:
        raise InvalidArgument(field, "insured value must have at most 16 integer digits")

    cents = amount.quantize(CENT)
    if cents != amount:
        raise InvalidArgument(field, "insured value must have at most 2 decimal places")
    return cents
