from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


# Optional sign, optional "$", digit groups with optional thousands separators, exactly two decimals.
AMOUNT_RE = re.compile(
    r"(?<![\d.,])(?P<sign>-)?(?:\$\s?)?(?P<sign2>-)?(?P<int>\d{1,3}(?:,\d{3})+|\d+)\.(?P<frac>\d{2})(?!\.?\d)"
)
_NORMALIZED_RE = re.compile(r"^-?\d+\.\d{2}$")


def normalize_amount(value: str) -> str:
    """
    Normalize values like:
    - "$2,543.67"  -> "2543.67"
    - "-$85.67"    -> "-85.67"
    - "(100.00)"   -> "-100.00"
    - "847.2"      -> "847.20"
    """
    if value is None:
        raise ValueError("normalize_amount: value is None")

    s = value.strip()
    if not s:
        raise ValueError("normalize_amount: empty string")

    s = s.replace("$", "").replace(",", "").replace(" ", "")

    # Handle parentheses as negative
    if s.startswith("(") and s.endswith(")"):
        s = "-" + s[1:-1]

    try:
        dec = Decimal(s).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"normalize_amount: not a decimal amount: {value!r}") from e
    if dec == 0:
        dec = abs(dec)
    return f"{dec:.2f}"


def is_normalized_amount(value: str) -> bool:
    return bool(_NORMALIZED_RE.match(value or ""))


def amount_from_match(m: re.Match[str]) -> str:
    sign = "-" if (m.group("sign") or m.group("sign2")) else ""
    return normalize_amount(f"{sign}{m.group('int')}.{m.group('frac')}")
