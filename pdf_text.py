# pdf_text.py
# PDF bytes -> plain text for the statement parsers.
# pdfplumber is the primary decoder; pypdf text runs are regrouped into lines as a fallback.

from __future__ import annotations

import io
import logging
from typing import Iterable, Optional

import pdfplumber
from pypdf import PdfReader


logger = logging.getLogger(__name__)

# Runs whose vertical positions differ by more than this start a new line.
LINE_Y_TOLERANCE = 2

_PASSWORD_MESSAGE_WORDS = ("password", "encrypt", "decrypt")
_PASSWORD_CLASS_WORDS = ("password", "decrypt")


class PdfTextError(Exception):
    kind = "pdf_text_error"


class PasswordRequired(PdfTextError):
    """The document is encrypted and no password was given."""

    kind = "password_required"


class IncorrectPassword(PdfTextError):
    """A password was given but neither decoder could open the document with it."""

    kind = "incorrect_password"


class ExtractionFailed(PdfTextError):
    kind = "extraction_failed"


def _iter_error_chain(exc: BaseException):
    seen: set[int] = set()
    stack: list = [exc]
    while stack:
        err = stack.pop()
        if err is None or id(err) in seen:
            continue
        seen.add(id(err))
        yield err
        # pdfplumber wraps pdfminer errors as PdfminerException(inner) with an empty message.
        stack.extend(a for a in getattr(err, "args", ()) if isinstance(a, BaseException))
        # Explicit causes only: the fallback error's __context__ is the primary error.
        stack.append(err.__cause__)


def is_password_error(exc: BaseException) -> bool:
    for err in _iter_error_chain(exc):
        name = type(err).__name__.lower()
        if any(w in name for w in _PASSWORD_CLASS_WORDS):
            return True
        msg = str(err).lower()
        if any(w in msg for w in _PASSWORD_MESSAGE_WORDS):
            return True
    return False


def _describe(exc: BaseException) -> str:
    for err in _iter_error_chain(exc):
        msg = str(err).strip()
        if msg:
            return msg
    return type(exc).__name__


def _open_kwargs(password: Optional[str]) -> dict:
    # Some decoders treat "" differently from no password at all.
    if password:
        return {"password": password}
    return {}


def _extract_with_pdfplumber(data: bytes, password: Optional[str]) -> str:
    chunks: list[str] = []
    with pdfplumber.open(io.BytesIO(data), **_open_kwargs(password)) as pdf:
        for page in pdf.pages:
            chunks.append(page.extract_text() or "")
    return "\n".join(chunks)


def layout_lines(pages: Iterable[Iterable[tuple[float, str]]]) -> str:
    """Rebuild text lines from positioned runs.

    ``pages`` yields, per page, ``(y, text)`` runs in content-stream order. A
    run more than ``LINE_Y_TOLERANCE`` units above or below the previous one
    closes the current line; runs on the same line are joined with a space.
    Blank lines are never emitted and every emitted line ends with ``\\n``.
    """
    out: list[str] = []
    for runs in pages:
        last_y = None
        current = ""
        for y, text in runs:
            text = text or ""
            if last_y is not None and abs(y - last_y) > LINE_Y_TOLERANCE:
                if current.strip():
                    out.append(current.strip() + "\n")
                current = text
            elif current and text:
                current += " " + text
            else:
                current += text
            last_y = y
        if current.strip():
            out.append(current.strip() + "\n")
    return "".join(out)


def _collect_runs(runs: list):
    def _visit(text, cm, tm, font_dict, font_size):
        text = (text or "").replace("\r", "").replace("\n", "")
        if not text:
            return
        # Vertical translation of tm x cm.
        y = tm[4] * cm[1] + tm[5] * cm[3] + cm[5]
        runs.append((round(y), text))

    return _visit


def _extract_with_pypdf(data: bytes, password: Optional[str]) -> str:
    reader = PdfReader(io.BytesIO(data), **_open_kwargs(password))
    pages: list[list[tuple[float, str]]] = []
    for page in reader.pages:
        runs: list[tuple[float, str]] = []
        page.extract_text(visitor_text=_collect_runs(runs))
        pages.append(runs)
    return layout_lines(pages)


def extract_text_from_pdf(data: bytes, password: Optional[str] = None) -> str:
    password = password or None

    try:
        return _extract_with_pdfplumber(data, password)
    except Exception as primary_err:
        if password is None and is_password_error(primary_err):
            raise PasswordRequired("PDF is password protected") from primary_err

        logger.debug("pdfplumber failed (%s); trying layout reconstruction", _describe(primary_err))
        try:
            text = _extract_with_pypdf(data, password)
        except Exception as fallback_err:
            if password is not None:
                if is_password_error(fallback_err):
                    raise IncorrectPassword("Incorrect password or PDF is password protected") from fallback_err
                raise ExtractionFailed(f"Failed to parse PDF: {_describe(fallback_err)}") from fallback_err
            raise ExtractionFailed(f"Failed to parse PDF: {_describe(primary_err)}") from primary_err

        logger.info("Extracted text with layout reconstruction (%d characters)", len(text))
        return text
