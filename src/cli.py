"""CLI entry point for the sprint deck.

Loads a deck (the built-in seed deck, or a JSON/YAML deck file), applies
imports and recalculation, validates, and writes the result.

Usage::

    # List the seed deck's slides and tables
    python -m src.cli inspect -v

    # Paste spreadsheet text (from a file, or stdin) into slide 2
    python -m src.cli paste --slide 2 --file pasted.tsv \\
        --deck deck.yaml

    # Extract text from a screenshot and import it into slide 13
    SPRINT_DECK_OCR_URL=... SPRINT_DECK_OCR_TOKEN=... \\
    python -m src.cli ocr --slide 13 --image shot.png --deck deck.yaml

    # Bulk-import a multi-slide CSV or XLSX file
    python -m src.cli bulk data/sprint_266.csv --deck deck.yaml

    # Write the bulk-import template for a deck
    python -m src.cli template -o template.csv

    # Export to the dated JSON export file
    python -m src.cli export --deck deck.yaml --output-dir exports/

    # Check deck invariants
    python -m src.cli validate --deck deck.json
"""

import argparse
import sys
from pathlib import Path

from src.processor.engine import (
    ImportRequest,
    import_file,
    import_paste,
    sample_bulk_csv,
)
from src.processor.errors import DeckError
from src.processor.ocr import OCRClient, OCRConfig, import_screenshot
from src.processor.transform import recalculate_stats
from src.qa.validator import DeckValidator
from src.schema.loader import export_filename, load_deck, save_deck, save_json
from src.schema.sprint_deck import build_sprint_deck


# ---------------------------------------------------------------------------
# Deck loading / saving
# ---------------------------------------------------------------------------

def _load_deck(args):
    """Load the Document named by --deck, or build the seed deck."""
    if getattr(args, "deck", None):
        path = Path(args.deck)
        if not path.exists():
            _error(f"Deck file not found: {path}")
        try:
            return load_deck(path)
        except DeckError as exc:
            _error(str(exc))
    return build_sprint_deck()


def _save_deck(args, document):
    """Write *document* to --output, falling back to --deck."""
    target = getattr(args, "output", None) or getattr(args, "deck", None)
    if not target:
        _warn("No --output or --deck given; changes were not written")
        return
    save_deck(document, target)
    _info(f"Written: {target}")


def _report_result(result):
    for w in result.warnings:
        _warn(w)
    _info(result.summary())


def _fail(exc):
    for w in getattr(exc, "warnings", []):
        _warn(w)
    _error(str(exc))


def _read_text(args):
    if args.file:
        path = Path(args.file)
        if not path.exists():
            _error(f"Input file not found: {path}")
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            _error(f"Input file is not valid UTF-8 text: {path}")
    return sys.stdin.read()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_inspect(args):
    """Show deck structure."""
    document = _load_deck(args)

    print(f"Current sprint: {document.current_sprint}")
    print(f"Slides:         {len(document.slides)}")
    print()
    for slide in document.slides:
        print(f"  [{slide.id:2d}] {slide.title} — {slide.shape.value}")
        if not args.verbose:
            continue
        for name, table in slide.data.tables.items():
            headers = ", ".join(c.header for c in table.columns)
            print(f"       table {name}: {len(table.rows)} row(s) [{headers}]")
        for name, block in slide.data.aggregates.items():
            fields = ", ".join(f"{k}={v}" for k, v in block.items())
            print(f"       {name}: {fields}")


def cmd_paste(args):
    """Import pasted spreadsheet text into one slide."""
    document = _load_deck(args)
    text = _read_text(args)
    try:
        result = import_paste(document, ImportRequest(
            slide_id=args.slide, text=text, strict_table_match=args.strict))
    except DeckError as exc:
        _fail(exc)
    _report_result(result)
    _save_deck(args, result.document)


def cmd_ocr(args):
    """Extract text from a screenshot and import it into one slide."""
    image = Path(args.image)
    if not image.exists():
        _error(f"Image file not found: {image}")
    try:
        config = OCRConfig.from_env(url=args.ocr_url, token=args.ocr_token,
                                    timeout=args.ocr_timeout)
    except ValueError as exc:
        _error(str(exc))

    document = _load_deck(args)
    _info(f"Extracting text from {image}...")
    try:
        result = import_screenshot(document, args.slide, image, OCRClient(config),
                                   strict_table_match=args.strict)
    except DeckError as exc:
        _fail(exc)
    _report_result(result)
    _save_deck(args, result.document)


def cmd_bulk(args):
    """Apply a multi-slide CSV/XLSX file."""
    path = Path(args.file)
    if not path.exists():
        _error(f"Data file not found: {path}")
    if path.suffix.lower() == ".json":
        _error("Use the 'load' command for JSON export files.")

    document = _load_deck(args)
    _info(f"Importing {path}")
    try:
        result = import_file(document, path)
    except DeckError as exc:
        _fail(exc)
    _report_result(result)
    _save_deck(args, result.document)


def cmd_load(args):
    """Import a JSON export file and validate it."""
    path = Path(args.file)
    if not path.exists():
        _error(f"Import file not found: {path}")
    if path.suffix.lower() != ".json":
        _error("Use the 'bulk' command for CSV/XLSX files.")
    try:
        result = import_file(build_sprint_deck(), path)
    except DeckError as exc:
        _fail(exc)
    _info(result.summary())

    qa_result = DeckValidator().validate(result.document)
    if qa_result.passed:
        _info(qa_result.summary())
    else:
        _warn(qa_result.summary())
        if args.verbose:
            print(qa_result.report(), file=sys.stderr)

    if args.output:
        save_deck(result.document, args.output)
        _info(f"Written: {args.output}")


def cmd_export(args):
    """Write the deck as a JSON export file."""
    document = _load_deck(args)
    if args.output:
        output = Path(args.output)
    else:
        output = Path(args.output_dir) / export_filename(document)
    save_json(document, output)
    _info(f"Written: {output}")


def cmd_recalc(args):
    """Recalculate derived stats for one slide or the whole deck."""
    document = _load_deck(args)
    if args.slide is not None:
        slide = document.get_slide(args.slide)
        if slide is None:
            _error(f"Slide {args.slide} not found")
        slides = [slide]
    else:
        slides = list(document.slides)

    for slide in slides:
        document = document.replace_slide(recalculate_stats(slide))
    _info(f"Recalculated {len(slides)} slide(s)")
    _save_deck(args, document)


def cmd_validate(args):
    """Check deck invariants."""
    document = _load_deck(args)
    validator = DeckValidator(check_totals=not args.no_totals)
    qa_result = validator.validate(document)

    print(qa_result.report())
    sys.exit(0 if qa_result.passed else 1)


def cmd_template(args):
    """Write the sample bulk-import CSV."""
    document = _load_deck(args)
    text = sample_bulk_csv(document, rows_per_table=args.rows)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        _info(f"Written: {output}")
    else:
        sys.stdout.write(text)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _info(msg):
    print(f"  {msg}", file=sys.stderr)


def _warn(msg):
    print(f"  WARNING: {msg}", file=sys.stderr)


def _error(msg):
    print(f"  ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sprint-deck",
        description="Maintain sprint review deck data from spreadsheets and screenshots.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---- inspect ----
    insp = subparsers.add_parser(
        "inspect",
        help="Show slides, tables and stats blocks.",
    )
    _add_deck_args(insp)
    insp.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show per-table and per-block detail.",
    )
    insp.set_defaults(func=cmd_inspect)

    # ---- paste ----
    paste = subparsers.add_parser(
        "paste",
        help="Import pasted spreadsheet text into a slide.",
    )
    _add_deck_args(paste, output=True)
    _add_slide_arg(paste)
    paste.add_argument(
        "-f", "--file",
        help="Text file holding the pasted data (default: stdin).",
    )
    paste.set_defaults(func=cmd_paste)

    # ---- ocr ----
    ocr = subparsers.add_parser(
        "ocr",
        help="Extract text from a screenshot and import it into a slide.",
    )
    _add_deck_args(ocr, output=True)
    _add_slide_arg(ocr)
    ocr.add_argument(
        "--image",
        required=True,
        help="Screenshot image file.",
    )
    service = ocr.add_argument_group("extraction service")
    service.add_argument(
        "--ocr-url",
        dest="ocr_url",
        help="Endpoint URL (default: $SPRINT_DECK_OCR_URL).",
    )
    service.add_argument(
        "--ocr-token",
        dest="ocr_token",
        help="Bearer token (default: $SPRINT_DECK_OCR_TOKEN).",
    )
    service.add_argument(
        "--ocr-timeout",
        dest="ocr_timeout",
        type=float,
        help="Request timeout in seconds (default: $SPRINT_DECK_OCR_TIMEOUT or 60).",
    )
    ocr.set_defaults(func=cmd_ocr)

    # ---- bulk ----
    bulk = subparsers.add_parser(
        "bulk",
        help="Apply a multi-slide CSV or XLSX file.",
    )
    _add_deck_args(bulk, output=True)
    bulk.add_argument(
        "file",
        help="CSV or XLSX file with SlideID, TableName, Sprint columns.",
    )
    bulk.set_defaults(func=cmd_bulk)

    # ---- load ----
    load = subparsers.add_parser(
        "load",
        help="Import a JSON export file and validate it.",
    )
    load.add_argument(
        "file",
        help="JSON export file.",
    )
    load.add_argument(
        "-o", "--output",
        help="Write the imported deck here (.json or .yaml).",
    )
    load.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show the full QA report on failure.",
    )
    load.set_defaults(func=cmd_load)

    # ---- export ----
    exp = subparsers.add_parser(
        "export",
        help="Write the deck as a JSON export file.",
    )
    _add_deck_args(exp)
    target = exp.add_mutually_exclusive_group()
    target.add_argument(
        "-o", "--output",
        help="Output JSON file path.",
    )
    target.add_argument(
        "--output-dir",
        dest="output_dir",
        default=".",
        help="Directory for the dated export file (default: current directory).",
    )
    exp.set_defaults(func=cmd_export)

    # ---- recalc ----
    recalc = subparsers.add_parser(
        "recalc",
        help="Recalculate derived stats blocks from table data.",
    )
    _add_deck_args(recalc, output=True)
    recalc.add_argument(
        "--slide",
        type=int,
        help="Only this slide (default: every slide).",
    )
    recalc.set_defaults(func=cmd_recalc)

    # ---- validate ----
    val = subparsers.add_parser(
        "validate",
        help="Check deck invariants.",
    )
    _add_deck_args(val)
    val.add_argument(
        "--no-totals",
        dest="no_totals",
        action="store_true",
        default=False,
        help="Skip the stale derived-total warnings.",
    )
    val.set_defaults(func=cmd_validate)

    # ---- template ----
    tmpl = subparsers.add_parser(
        "template",
        help="Write the sample bulk-import CSV.",
    )
    _add_deck_args(tmpl)
    tmpl.add_argument(
        "-o", "--output",
        help="Output CSV path (default: stdout).",
    )
    tmpl.add_argument(
        "--rows",
        type=int,
        default=2,
        help="Example rows per table (default: 2).",
    )
    tmpl.set_defaults(func=cmd_template)

    return parser


def _add_deck_args(parser, output=False):
    """Add --deck (and optionally --output) args to a subparser."""
    parser.add_argument(
        "--deck",
        help="Deck file (.json export or .yaml). Default: the built-in seed deck.",
    )
    if output:
        parser.add_argument(
            "-o", "--output",
            help="Write the updated deck here (default: overwrite --deck).",
        )


def _add_slide_arg(parser):
    """Add --slide / --strict args to a subparser."""
    parser.add_argument(
        "--slide",
        type=int,
        required=True,
        help="Target slide id.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Reject, rather than guess, when pasted headers match no table.",
    )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
