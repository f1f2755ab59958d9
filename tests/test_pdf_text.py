import tempfile
import unittest
from pathlib import Path
from unittest import mock

import pdf_text
from pdf_text import (
    ExtractionFailed,
    IncorrectPassword,
    PasswordRequired,
    PdfTextError,
    extract_text_from_pdf,
    is_password_error,
    layout_lines,
)


class _Wrapper(Exception):
    """Mimics decoders that wrap the real error without a message."""

    def __str__(self):
        return ""


class PDFPasswordIncorrect(Exception):
    pass


class TestLayoutLines(unittest.TestCase):
    def test_groups_runs_by_vertical_position(self):
        pages = [
            [(800, "12 jan"), (800, "NETFLIX.COM"), (801, "55,90"), (786, "13 jan"), (786, "UBER 10,00")],
        ]
        self.assertEqual(layout_lines(pages), "12 jan NETFLIX.COM 55,90\n13 jan UBER 10,00\n")

    def test_tolerance_is_two_units(self):
        self.assertEqual(layout_lines([[(100, "a"), (102, "b"), (105, "c")]]), "a b\nc\n")

    def test_empty_runs_and_blank_lines(self):
        pages = [[(500, ""), (500, "x"), (480, "   "), (460, ""), (440, "y")]]
        self.assertEqual(layout_lines(pages), "x\ny\n")

    def test_each_page_is_flushed(self):
        pages = [[(700, "page one")], [(700, "page two")], []]
        self.assertEqual(layout_lines(pages), "page one\npage two\n")

    def test_no_pages(self):
        self.assertEqual(layout_lines([]), "")


class TestIsPasswordError(unittest.TestCase):
    def test_messages(self):
        self.assertTrue(is_password_error(ValueError("Wrong password")))
        self.assertTrue(is_password_error(RuntimeError("File has not been decrypted")))
        self.assertTrue(is_password_error(RuntimeError("document is ENCRYPTED")))
        self.assertFalse(is_password_error(ValueError("No /Root object! - Is this really a PDF?")))

    def test_wrapped_error_without_message(self):
        self.assertTrue(is_password_error(_Wrapper(PDFPasswordIncorrect())))
        self.assertFalse(is_password_error(_Wrapper(ValueError("EOF marker not found"))))

    def test_cause_chain(self):
        try:
            try:
                raise PDFPasswordIncorrect()
            except PDFPasswordIncorrect as inner:
                raise RuntimeError("could not open") from inner
        except RuntimeError as outer:
            self.assertTrue(is_password_error(outer))


class TestExtractionDecisions(unittest.TestCase):
    def setUp(self):
        self.primary = mock.patch.object(pdf_text, "_extract_with_pdfplumber").start()
        self.fallback = mock.patch.object(pdf_text, "_extract_with_pypdf").start()
        self.addCleanup(mock.patch.stopall)

    def test_primary_success(self):
        self.primary.return_value = "texto"
        self.assertEqual(extract_text_from_pdf(b"%PDF"), "texto")
        self.primary.assert_called_once_with(b"%PDF", None)
        self.fallback.assert_not_called()

    def test_empty_password_is_treated_as_none(self):
        self.primary.return_value = "texto"
        extract_text_from_pdf(b"%PDF", password="")
        self.primary.assert_called_once_with(b"%PDF", None)

    def test_password_required(self):
        self.primary.side_effect = _Wrapper(PDFPasswordIncorrect())
        with self.assertRaises(PasswordRequired) as ctx:
            extract_text_from_pdf(b"%PDF")
        self.assertEqual(ctx.exception.kind, "password_required")
        self.fallback.assert_not_called()

    def test_wrong_password(self):
        self.primary.side_effect = _Wrapper(PDFPasswordIncorrect())
        self.fallback.side_effect = ValueError("Wrong password")
        with self.assertRaises(IncorrectPassword) as ctx:
            extract_text_from_pdf(b"%PDF", password="1234")
        self.assertEqual(ctx.exception.kind, "incorrect_password")
        self.fallback.assert_called_once_with(b"%PDF", "1234")

    def test_password_given_and_fallback_succeeds(self):
        self.primary.side_effect = ValueError("unsupported filter")
        self.fallback.return_value = "linha\n"
        self.assertEqual(extract_text_from_pdf(b"%PDF", password="1234"), "linha\n")

    def test_password_given_and_fallback_fails_otherwise(self):
        self.primary.side_effect = ValueError("unsupported filter")
        self.fallback.side_effect = ValueError("broken xref")
        with self.assertRaises(ExtractionFailed) as ctx:
            extract_text_from_pdf(b"%PDF", password="1234")
        self.assertIn("broken xref", str(ctx.exception))

    def test_no_password_uses_fallback_on_other_errors(self):
        self.primary.side_effect = ValueError("bad font")
        self.fallback.return_value = "linha\n"
        self.assertEqual(extract_text_from_pdf(b"%PDF"), "linha\n")
        self.fallback.assert_called_once_with(b"%PDF", None)

    def test_no_password_both_fail(self):
        self.primary.side_effect = ValueError("No /Root object!")
        self.fallback.side_effect = ValueError("EOF marker not found")
        with self.assertRaises(ExtractionFailed) as ctx:
            extract_text_from_pdf(b"%PDF")
        self.assertIn("No /Root object!", str(ctx.exception))
        self.assertEqual(ctx.exception.kind, "extraction_failed")
        self.assertIsInstance(ctx.exception, PdfTextError)


class TestExtractionFromFixtures(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        from tools.generate_statement_fixtures import FIXTURE_PASSWORD, generate_all

        cls._tmp = tempfile.TemporaryDirectory()
        paths = generate_all(out_dir=cls._tmp.name)
        cls.plain = Path(paths["plain"]).read_bytes()
        cls.locked = Path(paths["locked"]).read_bytes()
        cls.password = FIXTURE_PASSWORD

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def test_plain_statement(self):
        text = extract_text_from_pdf(self.plain)
        self.assertIn("12 jan NETFLIX.COM 55,90", text)
        self.assertIn("SAO PAULO BR 23,10", text)

    def test_layout_fallback_reads_the_same_rows(self):
        text = pdf_text._extract_with_pypdf(self.plain, None)
        lines = text.splitlines()
        self.assertIn("12 jan NETFLIX.COM 55,90", lines)
        self.assertIn("13 jan PG *UBER TRIP", lines)
        self.assertTrue(text.endswith("\n"))

    def test_locked_statement_without_password(self):
        with self.assertRaises(PasswordRequired):
            extract_text_from_pdf(self.locked)

    def test_locked_statement_with_wrong_password(self):
        with self.assertRaises(IncorrectPassword):
            extract_text_from_pdf(self.locked, password="errada")

    def test_locked_statement_with_password(self):
        text = extract_text_from_pdf(self.locked, password=self.password)
        self.assertIn("AMAZON MARKETPLACE PARC 02/03 1.234,56", text)

    def test_not_a_pdf(self):
        with self.assertRaises(ExtractionFailed):
            extract_text_from_pdf(b"this is not a pdf at all")


if __name__ == "__main__":
    unittest.main()
