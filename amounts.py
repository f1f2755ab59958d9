# amounts.py
# Brazilian Real money tokens: "1.234,56" (dot thousands, comma decimals).

from __future__ import annotations

import re


# One to three digits, optional ".ddd" groups, then ",dd".
AMOUNT_RE = re.compile(r"\d{1,3}(?:\.\d{3})*,\d{2}")

_CURRENCY_PREFIX_RE = re.compile(r"R\$\s?")


def parse_brl_amount(token: str) -> float:
    """Parse a token already shaped like AMOUNT_RE (optionally signed / R$ prefixed).

    >>> parse_brl_amount("1.234,56")
    1234.56
    >>> parse_brl_amount("-45,00")
    -45.0
    """
    s = _CURRENCY_PREFIX_RE.sub("", token or "").strip()
    neg = s.startswith("-")
    if neg:
        s = s[1:].strip()
    s = s.replace(".", "").replace(",", ".", 1)
    value = float(s)
    return -value if neg else value


def format_brl(value: float) -> str:
    s = f"{abs(value):,.2f}"
    s = s.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {s}" if value < 0 else f"R$ {s}"
