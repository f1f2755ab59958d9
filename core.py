from __future__ import annotations

import glob
import hashlib
import importlib.util
import json
import logging
import os
import re
from datetime import date, datetime
from typing import Iterable, Optional

from categorisation import Categorizer, load_rules_file, DEFAULT_RULES
from merchants import MerchantNormalizer
from models import LedgerEntry, ParsedTransaction
from pdf_text import extract_text_from_pdf


logger = logging.getLogger(__name__)


# ----------------------------
# CONFIG (edit these as needed)
# ----------------------------

DEFAULT_OUTPUT_FOLDER = ""
PARSERS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "Parsers")
LOGS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "Logs")
BANK_OPTIONS = [
    "C6 Bank",
]
DEFAULT_CURRENCY = "BRL"
GLOBAL_RULES_BASENAME = "Global Categorisation Rules"


# ----------------------------
# Utilities
# ----------------------------

def ensure_folder(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def make_unique_path(path: str) -> str:
    """If path exists, append ' (2)', ' (3)'... before extension."""
    if not os.path.exists(path):
        return path

    base, ext = os.path.splitext(path)
    n = 2
    while True:
        candidate = f"{base} ({n}){ext}"
        if not os.path.exists(candidate):
            return candidate
        n += 1


def normalize_bank_name_for_module(bank: str) -> str:
    normalized = " ".join(bank.strip().lower().split())
    if normalized.endswith(" bank"):
        normalized = normalized[: -len(" bank")]
    return normalized.replace(" ", "_")


def load_parser_module(bank: str):
    bank_module_name = normalize_bank_name_for_module(bank)

    parser_path = os.path.join(PARSERS_DIR, f"{bank_module_name}.py")

    if not os.path.exists(parser_path):
        pattern = os.path.join(PARSERS_DIR, f"{bank_module_name}-*.py")
        matches = sorted(glob.glob(pattern))
        if matches:
            parser_path = matches[-1]

    if not os.path.exists(parser_path):
        raise FileNotFoundError(
            f"No parser found for bank '{bank}'. Expected either:\n"
            f"  - {os.path.join(PARSERS_DIR, bank_module_name + '.py')}\n"
            f"  - {os.path.join(PARSERS_DIR, bank_module_name + '-<version>.py')}\n\n"
            f"Tried: {parser_path}"
        )

    module_key = os.path.splitext(os.path.basename(parser_path))[0]

    spec = importlib.util.spec_from_file_location(f"parsers.{module_key}", parser_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to load parser module from {parser_path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if not hasattr(module, "extract_transactions"):
        raise AttributeError(
            f"Parser '{parser_path}' does not define extract_transactions(text)."
        )

    return module


def auto_detect_bank_from_text(text: str) -> str | None:
    """Best-effort bank detection over the extracted statement text.

    Each parser may expose ``detect(text) -> bool``; the first that claims the
    text wins, in BANK_OPTIONS order.
    """
    for bank in BANK_OPTIONS:
        try:
            module = load_parser_module(bank)
        except (FileNotFoundError, AttributeError, RuntimeError) as e:
            logger.warning("Parser for '%s' unavailable: %s", bank, e)
            continue
        detect = getattr(module, "detect", None)
        if detect is not None and detect(text):
            return bank
    return None


def sanitize_filename(name: str) -> str:
    bad = r'<>:/\\|?*"'
    out = "".join("_" if ch in bad else ch for ch in (name or ""))
    out = " ".join(out.split())
    return out.strip().strip(".")


def _iso_to_date(value) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def build_output_filename(client_name: str, date_min, date_max) -> str:
    cname = (client_name or "").strip() or "Transacoes"
    cname = sanitize_filename(cname.upper())

    d_min = _iso_to_date(date_min) if date_min else None
    d_max = _iso_to_date(date_max) if date_max else None

    if d_min and d_max:
        period = f"{d_min.strftime('%d.%m.%y')} - {d_max.strftime('%d.%m.%y')}"
        return f"{cname} {period}.xlsx"
    return f"{cname}.xlsx"


def compute_statement_fingerprint(entries: Iterable) -> str | None:
    """Order-independent hash of a statement's rows, used to spot re-uploaded statements."""
    rows: list[str] = []
    for e in entries or []:
        row = "|".join(
            [
                str(e.date).strip(),
                " ".join(str(e.merchant).split()).upper(),
                f"{round(float(e.amount), 2):.2f}",
            ]
        )
        rows.append(row)

    if not rows:
        return None

    rows.sort()
    payload = "\n".join(rows).encode("utf-8", errors="ignore")
    return hashlib.sha1(payload).hexdigest()


# ----------------------------
# Categorisation config
# ----------------------------

def _find_rules_file(folder: str, base_name: str) -> str | None:
    if not folder:
        return None
    xlsx_path = os.path.join(folder, f"{base_name}.xlsx")
    if os.path.exists(xlsx_path):
        return xlsx_path
    csv_path = os.path.join(folder, f"{base_name}.csv")
    if os.path.exists(csv_path):
        return csv_path
    return None


def load_categorizer(rules_path: str | None = None) -> Categorizer:
    """Built-in rules, preceded by user rules from ``rules_path`` or the global rules file."""
    if rules_path is None:
        rules_path = _find_rules_file(os.path.dirname(os.path.abspath(__file__)), GLOBAL_RULES_BASENAME)
    elif not os.path.exists(rules_path):
        logger.warning("Categorisation rules file not found: '%s'", rules_path)
        rules_path = None

    user_rules = load_rules_file(rules_path) if rules_path else []
    return Categorizer(list(user_rules) + list(DEFAULT_RULES))


# ----------------------------
# Pipeline
# ----------------------------

def enrich_transactions(
    parsed: Iterable[ParsedTransaction],
    categorizer: Categorizer | None = None,
    normalizer: MerchantNormalizer | None = None,
    currency: str = DEFAULT_CURRENCY,
) -> list[LedgerEntry]:
    categorizer = categorizer or Categorizer()
    normalizer = normalizer or MerchantNormalizer()

    entries: list[LedgerEntry] = []
    for txn in parsed:
        entries.append(
            LedgerEntry.from_parsed(
                txn,
                normalized_merchant=normalizer.normalize(txn.merchant),
                category=categorizer.categorize(txn.merchant, txn.raw_description),
                currency=currency,
            )
        )
    return entries


def convert_statement(
    data: bytes,
    password: Optional[str] = None,
    bank: Optional[str] = None,
    today: Optional[date] = None,
    categorizer: Categorizer | None = None,
    normalizer: MerchantNormalizer | None = None,
) -> list[LedgerEntry]:
    """PDF bytes -> categorised ledger. Extraction errors (pdf_text.PdfTextError) propagate."""
    text = extract_text_from_pdf(data, password=password)

    if not bank:
        bank = auto_detect_bank_from_text(text) or BANK_OPTIONS[0]
        logger.debug("Using parser for '%s'", bank)

    parser = load_parser_module(bank)
    parsed = parser.extract_transactions(text, today=today)
    return enrich_transactions(parsed, categorizer=categorizer, normalizer=normalizer)


def recategorize(
    entries: Iterable[LedgerEntry],
    categorizer: Categorizer | None = None,
    normalizer: MerchantNormalizer | None = None,
) -> list[LedgerEntry]:
    """Recompute category and normalized merchant from stored merchant + raw description."""
    categorizer = categorizer or Categorizer()
    normalizer = normalizer or MerchantNormalizer()
    return [
        e.with_enrichment(
            normalizer.normalize(e.merchant),
            categorizer.categorize(e.merchant, e.raw_description),
        )
        for e in entries
    ]


def summarize_by_category(entries: Iterable[LedgerEntry]) -> dict[str, dict]:
    summary: dict[str, dict] = {}
    for e in entries:
        bucket = summary.setdefault(e.category, {"count": 0, "total": 0.0})
        bucket["count"] += 1
        bucket["total"] = round(bucket["total"] + e.amount, 2)
    return dict(sorted(summary.items(), key=lambda kv: -abs(kv[1]["total"])))


# ----------------------------
# Log files
# ----------------------------

def _write_log_text(prefix: str, content: str) -> str | None:
    try:
        ensure_folder(LOGS_DIR)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(LOGS_DIR, f"{prefix}_{ts}.txt")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path
    except OSError as e:
        logger.warning("Could not write log file '%s': %s", prefix, e)
        return None


def _write_log_json(prefix: str, obj) -> str | None:
    try:
        ensure_folder(LOGS_DIR)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join(LOGS_DIR, f"{prefix}_{ts}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False)
        return path
    except (OSError, TypeError) as e:
        logger.warning("Could not write log file '%s': %s", prefix, e)
        return None


# ----------------------------
# Excel output
# ----------------------------

EXCEL_COLUMNS = [
    "T/N",
    "Date",
    "Merchant",
    "Normalized Merchant",
    "Category",
    "Amount",
    "Currency",
    "Raw Description",
]


def save_transactions_to_excel(entries: list[LedgerEntry], output_path: str, client_name: str = "") -> str:
    if not entries:
        raise ValueError("No transactions found!")

    import pandas as pd
    from openpyxl.styles import Border
    from openpyxl.utils import get_column_letter
    from openpyxl.worksheet.filters import AutoFilter
    from openpyxl.worksheet.table import Table, TableColumn, TableStyleInfo

    df = pd.DataFrame([e.to_dict() for e in entries])
    df = df.rename(
        columns={
            "date": "Date",
            "merchant": "Merchant",
            "normalized_merchant": "Normalized Merchant",
            "category": "Category",
            "amount": "Amount",
            "currency": "Currency",
            "raw_description": "Raw Description",
        }
    )
    df.insert(0, "T/N", range(1, len(df) + 1))
    df = df[EXCEL_COLUMNS]

    df["Date"] = pd.to_datetime(df["Date"], errors="coerce")
    df["Amount"] = pd.to_numeric(df["Amount"], errors="coerce")

    ensure_folder(os.path.dirname(output_path))
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Transaction Data")
        ws = writer.sheets["Transaction Data"]

        period = ""
        use_start = df["Date"].min()
        use_end = df["Date"].max()
        if pd.notna(use_start) and pd.notna(use_end):
            period = f"{use_start.strftime('%d/%m/%y')} - {use_end.strftime('%d/%m/%y')}"

        for hdr in (ws.oddHeader, ws.evenHeader, ws.firstHeader):
            hdr.left.text = (client_name or "").strip()
            hdr.center.text = "Transaction Data"
            hdr.right.text = period

        last_row = ws.max_row
        last_col = ws.max_column
        if last_row >= 2 and last_col >= 1:
            ref = f"A1:{get_column_letter(last_col)}{last_row}"
            table = Table(displayName="TransactionData", ref=ref)
            table.tableColumns = [
                TableColumn(id=idx, name=header)
                for idx, header in enumerate(df.columns, start=1)
            ]
            table.tableStyleInfo = TableStyleInfo(
                name="TableStyleLight1",
                showFirstColumn=False,
                showLastColumn=False,
                showRowStripes=False,
                showColumnStripes=False,
            )
            table.totalsRowShown = False
            table.autoFilter = AutoFilter(ref=table.ref)
            ws.add_table(table)

            no_border = Border()
            for row in ws.iter_rows(min_row=1, max_row=last_row, min_col=1, max_col=last_col):
                for cell in row:
                    cell.border = no_border

        brl_accounting = "_-[$R$-416]* #,##0.00_-;[Red]-[$R$-416]* #,##0.00_-;_-[$R$-416]* \"-\"??_-;_-@_-"

        header_to_col = {}
        for col_idx in range(1, ws.max_column + 1):
            header_val = ws.cell(row=1, column=col_idx).value
            if isinstance(header_val, str) and header_val.strip():
                header_to_col[header_val.strip()] = col_idx

        tn_col = header_to_col.get("T/N")
        date_col = header_to_col.get("Date")
        amt_col = header_to_col.get("Amount")

        max_r = ws.max_row
        if date_col:
            for r in range(2, max_r + 1):
                ws.cell(row=r, column=date_col).number_format = "dd/mm/yyyy"
        if amt_col:
            for r in range(2, max_r + 1):
                ws.cell(row=r, column=amt_col).number_format = brl_accounting

        if tn_col:
            ws.column_dimensions[get_column_letter(tn_col)].hidden = True

        for col_idx in range(1, ws.max_column + 1):
            col_letter = get_column_letter(col_idx)
            if ws.column_dimensions[col_letter].hidden:
                continue

            max_len = 0
            for row_idx in range(1, ws.max_row + 1):
                val = ws.cell(row=row_idx, column=col_idx).value
                if val is None:
                    continue
                if hasattr(val, "strftime"):
                    s = val.strftime("%d/%m/%Y")
                elif isinstance(val, (int, float)) and col_idx == amt_col:
                    s = f"R$ {float(val):,.2f}"
                else:
                    s = str(val)
                max_len = max(max_len, len(s))

            ws.column_dimensions[col_letter].width = min(max(max_len + 2, 10), 60)

        ws.freeze_panes = "A2"

    logger.info("Wrote %d transaction(s) to '%s'", len(entries), output_path)
    return output_path


# ----------------------------
# Self-tests
# ----------------------------

def _run_self_tests() -> None:
    from amounts import parse_brl_amount
    from categorisation import DEFAULT_CATEGORY

    assert parse_brl_amount("1.234,56") == 1234.56
    assert parse_brl_amount("-45,00") == -45.0

    parser = load_parser_module("C6 Bank")
    text = "\n".join(
        [
            "C6 BANK - EXTRATO",
            "12 jan LOJA 123,45 REF 99,90",
            "13 jan PG *UBER TRIP",
            "SAO PAULO 23,10",
            "14 jan Inclusao de Pagamento 500,00",
        ]
    )
    txns = parser.extract_transactions(text, today=date(2024, 3, 1))
    assert [t.merchant for t in txns] == ["LOJA 123,45 REF", "PG *UBER TRIP SAO PAULO"], txns
    assert txns[0].amount == 99.9, txns
    assert txns[0].date == "2024-01-12", txns

    entries = enrich_transactions(txns)
    assert entries[1].category == "Transportation/Ride Share", entries
    assert entries[1].currency == DEFAULT_CURRENCY, entries

    assert sanitize_filename('A<B>"C"') == "A_B__C_", sanitize_filename('A<B>"C"')
    assert normalize_bank_name_for_module("C6 Bank") == "c6"

    fp1 = compute_statement_fingerprint(entries)
    fp2 = compute_statement_fingerprint(list(reversed(entries)))
    assert fp1 == fp2 and fp1, (fp1, fp2)

    assert re.match(r"^TRANSACOES 12\.01\.24 - 13\.01\.24\.xlsx$", build_output_filename("", "2024-01-12", "2024-01-13"))

    print("Self-tests passed.")
