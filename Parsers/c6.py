# c6.py
# C6 Bank statement parser (text already extracted from the PDF)
#
# Rows look like "12 jan NETFLIX.COM 55,90". A row may wrap onto following
# lines; everything up to the next dated line belongs to the same transaction.

from __future__ import annotations

import datetime as _dt
import logging
import re
from typing import Optional

from amounts import AMOUNT_RE, parse_brl_amount
from models import ParsedTransaction


logger = logging.getLogger(__name__)

BANK_NAME = "C6 Bank"

MONTHS = {
    "jan": "01",
    "fev": "02",
    "mar": "03",
    "abr": "04",
    "mai": "05",
    "jun": "06",
    "jul": "07",
    "ago": "08",
    "set": "09",
    "out": "10",
    "nov": "11",
    "dez": "12",
}

_DATE_PREFIX_RE = re.compile(
    r"^(\d{1,2})\s+(jan|fev|mar|abr|mai|jun|jul|ago|set|out|nov|dez)\s+",
    re.IGNORECASE,
)
_NOISE_CONTAINS = ("EXTRATO", "C6 BANK", "SALDO", "PÁGINA")
_TABLE_HEADER_RE = re.compile(r"^(?:Data\s+Descrição|Date\s+Description)", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

PAYMENT_INCLUSION_MARKER = "inclusao de pagamento"


def _normalise_lines(text: str) -> list[str]:
    lines = []
    for raw in re.split(r"\r?\n", text or ""):
        line = _WS_RE.sub(" ", raw).strip()
        if line:
            lines.append(line)
    return lines


def _is_noise(line: str) -> bool:
    if any(tok in line for tok in _NOISE_CONTAINS):
        return True
    return _TABLE_HEADER_RE.match(line) is not None


def resolve_date(day: str, month_abbr: str, today: Optional[_dt.date] = None) -> Optional[str]:
    """ISO date for a "12 jan" style prefix; the year is not printed on the statement.

    Months later than the current one belong to the previous year (a December
    purchase on a statement generated in January).
    """
    month = MONTHS.get(month_abbr.lower())
    if month is None:
        return None
    today = today or _dt.date.today()
    year = today.year
    if int(month) > today.month:
        year -= 1
    return f"{year}-{month}-{day.zfill(2)}"


def _build_transaction(
    txn_lines: list[str], day: str, month_abbr: str, today: Optional[_dt.date]
) -> Optional[ParsedTransaction]:
    text = " ".join(txn_lines)

    matches = list(AMOUNT_RE.finditer(text))
    if not matches:
        logger.debug("No amount in transaction text %r", text)
        return None

    # Descriptions can carry codes or wrapped amounts; the real amount is the right-most token.
    last = max(matches, key=lambda m: m.start())
    amount = parse_brl_amount(last.group(0))

    merchant = text[: last.start()].strip()
    if not merchant:
        logger.debug("No merchant before amount in %r", text)
        return None

    if PAYMENT_INCLUSION_MARKER in merchant.lower() or PAYMENT_INCLUSION_MARKER in text.lower():
        logger.debug("Skipping payment inclusion row %r", text)
        return None

    date = resolve_date(day, month_abbr, today)
    if date is None:
        return None

    return ParsedTransaction(
        date=date,
        merchant=merchant,
        amount=amount,
        raw_description=text,
    )


def extract_transactions(text: str, today: Optional[_dt.date] = None) -> list[ParsedTransaction]:
    transactions: list[ParsedTransaction] = []
    lines = _normalise_lines(text)

    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1

        if _is_noise(line):
            continue

        m = _DATE_PREFIX_RE.match(line)
        if not m:
            continue

        txn_lines = [line[m.end():].strip()]
        while i < len(lines) and not _DATE_PREFIX_RE.match(lines[i]):
            txn_lines.append(lines[i])
            i += 1

        txn = _build_transaction(txn_lines, m.group(1), m.group(2), today)
        if txn is not None:
            transactions.append(txn)

    kept = [t for t in transactions if t.merchant and t.amount != 0]
    logger.info("Parsed %d transaction(s) from %d line(s)", len(kept), len(lines))
    return kept


def detect(text: str) -> bool:
    return "C6 BANK" in (text or "").upper()
