import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_UNICODE_FRACTIONS = {
    "¼": Decimal("0.25"),
    "½": Decimal("0.5"),
    "¾": Decimal("0.75"),
    "⅓": Decimal(1) / Decimal(3),
    "⅔": Decimal(2) / Decimal(3),
    "⅛": Decimal("0.125"),
}


def _parse_fraction(value: str) -> Optional[Decimal]:
    num_str, denom_str = value.split("/", 1)
    denom = Decimal(denom_str)
    if denom == 0:
        return None
    return Decimal(num_str) / denom


def parse_quantity(raw: Any) -> Optional[float]:
    """Turn a model-emitted quantity ("2", "1/2", "1 1/2", "1½", 0.5) into a float."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else None
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None

    for glyph, amount in _UNICODE_FRACTIONS.items():
        if value.endswith(glyph):
            whole = value[: -len(glyph)].strip()
            try:
                total = (Decimal(whole) if whole else Decimal(0)) + amount
            except InvalidOperation:
                return None
            return float(total) if total.is_finite() else None

    try:
        if "/" not in value and " " not in value:
            number = Decimal(value)
            return float(number) if number.is_finite() else None
        if " " in value:
            whole_part, frac_part = value.split(" ", 1)
            frac = _parse_fraction(frac_part.strip())
            if frac is None:
                return None
            total = Decimal(whole_part) + frac
            return float(total) if total.is_finite() else None
        frac = _parse_fraction(value)
        return float(frac) if frac is not None and frac.is_finite() else None
    except (InvalidOperation, ValueError):
        return None
