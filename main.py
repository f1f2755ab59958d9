# Version: 1.0
import argparse
import getpass
import json
import logging
import os
import sys
import traceback


LOG_LEVEL_ENV = "C6_CONVERTER_LOG_LEVEL"
LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PASSWORD = 2

_HANDLER = None


def configure_logging(verbose: bool = False) -> None:
    global _HANDLER
    level = logging.DEBUG if verbose else (os.getenv(LOG_LEVEL_ENV) or "INFO").strip().upper()

    # One root handler per process, however many times main() runs.
    if _HANDLER is None:
        _HANDLER = logging.StreamHandler(sys.stderr)
        _HANDLER.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        _HANDLER.setStream(sys.stderr)

    root = logging.getLogger()
    if _HANDLER not in root.handlers:
        root.addHandler(_HANDLER)
    try:
        root.setLevel(level)
    except ValueError:
        root.setLevel(logging.INFO)
        root.warning("Unknown log level %r in %s; using INFO", level, LOG_LEVEL_ENV)


def build_arg_parser(bank_options: list) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert a C6 Bank statement PDF into a categorised transaction spreadsheet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a statement next to the PDF
  python main.py extrato.pdf

  # Password-protected statement, custom output folder and rules
  python main.py extrato.pdf --password 123456 --output ./out --rules "./Global Categorisation Rules.csv"

  # Print the ledger as JSON without writing a spreadsheet
  python main.py extrato.pdf --no-excel --json
        """,
    )
    parser.add_argument("pdf", nargs="?", help="Statement PDF to convert")
    parser.add_argument("--password", help="PDF password (prompted for when needed and not given)")
    parser.add_argument("--bank", choices=bank_options, help="Statement bank (auto-detected when omitted)")
    parser.add_argument("--output", help="Output folder (default: the PDF's folder)")
    parser.add_argument("--client", default="", help="Client name for the output file name and sheet header")
    parser.add_argument("--rules", help="Extra categorisation rules (.csv or .xlsx)")
    parser.add_argument("--no-excel", action="store_true", help="Do not write the .xlsx file")
    parser.add_argument("--json", action="store_true", help="Print the ledger as JSON on stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--selftest", action="store_true", help="Run the built-in self-tests and exit")
    return parser


def _convert_with_prompt(core, data: bytes, args, categorizer):
    from pdf_text import PasswordRequired

    try:
        return core.convert_statement(data, password=args.password, bank=args.bank, categorizer=categorizer)
    except PasswordRequired:
        if args.password or not sys.stdin.isatty():
            raise
        password = getpass.getpass("PDF is password protected. Password: ")
        return core.convert_statement(data, password=password, bank=args.bank, categorizer=categorizer)


def main(argv=None) -> int:
    import core
    from amounts import format_brl
    from pdf_text import ExtractionFailed, IncorrectPassword, PasswordRequired

    parser = build_arg_parser(core.BANK_OPTIONS)
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    log = logging.getLogger("main")

    # Parser plug-ins are loaded from the checkout, not from an installed package.
    if not os.path.isdir(core.PARSERS_DIR):
        log.error("Missing Parsers folder: %s", core.PARSERS_DIR)
        return EXIT_FAILED

    if args.selftest:
        core._run_self_tests()
        return EXIT_OK

    if not args.pdf:
        parser.error("a statement PDF is required")

    if not os.path.isfile(args.pdf):
        log.error("File not found: %s", args.pdf)
        return EXIT_FAILED

    with open(args.pdf, "rb") as f:
        data = f.read()

    categorizer = core.load_categorizer(args.rules)

    try:
        entries = _convert_with_prompt(core, data, args, categorizer)
    except (PasswordRequired, IncorrectPassword) as e:
        log.error("%s (%s)", e, e.kind)
        return EXIT_PASSWORD
    except ExtractionFailed as e:
        log.error("%s", e)
        return EXIT_FAILED

    if not entries:
        log.error("No transactions found in PDF: %s", args.pdf)
        return EXIT_FAILED

    output_path = None
    if not args.no_excel:
        out_dir = args.output or core.DEFAULT_OUTPUT_FOLDER or os.path.dirname(os.path.abspath(args.pdf))
        dates = sorted(e.date for e in entries)
        filename = core.build_output_filename(args.client, dates[0], dates[-1])
        output_path = core.make_unique_path(os.path.join(out_dir, filename))
        core.save_transactions_to_excel(entries, output_path, client_name=args.client)

    summary = core.summarize_by_category(entries)
    for category, bucket in summary.items():
        log.info("%-34s %3d  %s", category, bucket["count"], format_brl(bucket["total"]))

    core._write_log_json(
        "conversion_summary",
        {
            "pdf": os.path.basename(args.pdf),
            "output": output_path,
            "count": len(entries),
            "fingerprint": core.compute_statement_fingerprint(entries),
            "categories": summary,
        },
    )

    if args.json:
        json.dump([e.to_dict() for e in entries], sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")

    return EXIT_OK


def run(argv=None) -> int:
    """main() with a startup_crash traceback in Logs/ for unexpected errors."""
    try:
        return main(argv)
    except Exception as e:
        try:
            import core

            err = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            core._write_log_text("startup_crash", err)
        except ImportError:
            pass
        raise


if __name__ == "__main__":
    sys.exit(run())
