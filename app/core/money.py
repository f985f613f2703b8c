"""Currency parsing and formatting helpers shared by records and reports."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")


def to_decimal(value: object) -> Decimal | None:
    """Best-effort conversion of incoming values to Decimal for currency math."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        for token in ("₹", "$", ",", "Rs.", "Rs"):
            cleaned = cleaned.replace(token, "")
        try:
            return Decimal(cleaned.strip())
        except InvalidOperation:
            return None
    return None


def normalize_amount(value: object) -> float | None:
    """Convert user-entered currency values to a float, ``None`` when blank.

    Raises ``ValueError`` for text that is present but not a number so callers
    can report it instead of silently dropping the amount.
    """

    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    amount = to_decimal(value)
    if amount is None:
        raise ValueError(f"invalid amount: {value!r}")
    return float(amount)


def quantize_currency(value: Decimal | None) -> Decimal:
    if not value:
        return Decimal("0.00")
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def format_currency(value: object, symbol: str) -> str:
    """Render an amount as ``₹1,234.50``; blank or missing amounts become ``N/A``."""

    amount = to_decimal(value)
    if amount is None:
        return "N/A"
    return f"{symbol}{quantize_currency(amount):,.2f}"


__all__ = ["TWOPLACES", "format_currency", "normalize_amount", "quantize_currency", "to_decimal"]
