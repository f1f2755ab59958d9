from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


FIXTURE_PASSWORD = "s3nha"


@dataclass
class Row:
    day: int
    month: str
    lines: tuple[str, ...]
    amount: str


ROWS = [
    Row(12, "jan", ("NETFLIX.COM",), "55,90"),
    Row(13, "jan", ("PG *UBER TRIP", "SAO PAULO BR"), "23,10"),
    Row(14, "jan", ("AMAZON MARKETPLACE PARC 02/03",), "1.234,56"),
    Row(15, "jan", ("Inclusao de Pagamento",), "2.500,00"),
    Row(16, "jan", ("PADARIA REAL",), "18,75"),
]


def statement_lines(rows: Iterable[Row] = ROWS) -> list[str]:
    lines = [
        "C6 BANK S.A.",
        "EXTRATO DE FATURA - CARTAO C6",
        "SALDO ANTERIOR 3.000,00",
        "Data Descricao Valor",
    ]
    for row in rows:
        body = list(row.lines)
        # Amount goes on the last physical line of the row.
        body[-1] = f"{body[-1]} {row.amount}"
        body[0] = f"{row.day:02d} {row.month} {body[0]}"
        lines.extend(body)
    return lines


def _write_pdf(path: Path, lines: Iterable[str], encrypt: Optional[str] = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    c = canvas.Canvas(str(path), pagesize=A4, encrypt=encrypt)
    c.setFont("Courier", 10)
    y = 810
    for line in lines:
        c.drawString(36, y, line)
        y -= 14
        if y < 70:
            c.showPage()
            c.setFont("Courier", 10)
            y = 810
    c.save()


def generate_all(out_dir: str = "tests/fixtures_synthetic") -> dict[str, Path]:
    root = Path(out_dir)
    lines = statement_lines()
    paths = {
        "plain": root / "c6" / "statement_plain.pdf",
        "locked": root / "c6" / "statement_locked.pdf",
    }
    _write_pdf(paths["plain"], lines)
    _write_pdf(paths["locked"], lines, encrypt=FIXTURE_PASSWORD)
    return paths


if __name__ == "__main__":
    for name, p in generate_all().items():
        print(f"{name}: {p}")
