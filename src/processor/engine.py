"""Import engine for the sprint deck.

Pure entry points of the form ``(Document, request) -> ImportResult``.
Each one computes a complete replacement Document before returning it;
on failure an exception is raised and the input Document is untouched.

Usage::

    from src.processor.engine import ImportRequest, import_paste
    from src.schema.sprint_deck import build_sprint_deck

    deck = build_sprint_deck()
    result = import_paste(deck, ImportRequest(slide_id=2, text=pasted))
    print(result.summary())
    deck = result.document
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from src.schema.models import MAIN_TABLE, Document, Slide
from src.schema.registry import get_shape_spec, stats_keys
from src.schema.sprint_deck import build_sprint_deck

from .errors import ParseFailure, ValidationRejection
from .ingestion import (
    PastedStats,
    PastedTable,
    coerce_value,
    parse_pasted_text,
    read_bulk_file,
)
from .reconcile import reconcile
from .transform import recalculate_stats, retain_recent_sprints


# ---------------------------------------------------------------------------
# Request / result containers
# ---------------------------------------------------------------------------

@dataclass
class ImportRequest:
    """Pasted (or OCR-extracted) text aimed at one slide."""
    slide_id: int
    text: str = ""
    # Reject, rather than guess, when a multi-table slide cannot tell
    # which table the pasted headers belong to.
    strict_table_match: bool = False


@dataclass
class ImportResult:
    """Output of an import: the replacement Document plus what changed."""
    document: Document
    kind: str                      # "table", "stats", "bulk", "document"
    rows_imported: int = 0
    stats_updated: int = 0
    slides_updated: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> str:
        if self.kind == "stats":
            return f"Stats imported successfully! {self.stats_updated} stat(s) updated."
        if self.kind == "bulk":
            return (f"CSV imported successfully! {self.rows_imported} rows updated "
                    f"across {len(self.slides_updated)} slides.")
        if self.kind == "document":
            return (f"Full presentation imported successfully! "
                    f"{len(self.document.slides)} slides loaded.")
        return f"Table data imported successfully! {self.rows_imported} row(s) loaded."


# ---------------------------------------------------------------------------
# Pasted text
# ---------------------------------------------------------------------------

def _require_slide(document: Document, slide_id: int) -> Slide:
    slide = document.get_slide(slide_id)
    if slide is None:
        raise ValidationRejection(f"Slide {slide_id} not found")
    return slide


_PARSE_HELP = (
    "Unable to parse data. Please ensure:\n"
    "  - For tables: copy the entire table including headers\n"
    "  - For stats: use 'Key<TAB>value', 'Key: value', or one value per line"
)


def import_paste(document: Document, request: ImportRequest) -> ImportResult:
    """Import pasted spreadsheet text into one slide.

    Tab-delimited tables are mapped and reconciled onto the slide's
    tables; anything else is tried as stats text against the slide's
    stats block.

    Raises:
        ValidationRejection: If the text is empty or the slide is unknown.
        ParseFailure: If the text matches no supported layout.
    """
    if not str(request.text).strip():
        raise ValidationRejection(
            "Please paste data from your spreadsheet or upload a screenshot first.")
    slide = _require_slide(document, request.slide_id)

    parsed = parse_pasted_text(request.text, stats_keys(slide))
    if isinstance(parsed, PastedTable):
        return import_table_rows(document, request.slide_id, parsed.headers,
                                 parsed.rows, strict=request.strict_table_match)
    if isinstance(parsed, PastedStats):
        return import_stats(document, request.slide_id, parsed.values)
    raise ParseFailure(_PARSE_HELP)


def import_table_rows(document: Document, slide_id: int, headers, rows,
                      strict: bool = False) -> ImportResult:
    """Reconcile header-keyed *rows* onto one slide.

    Derived aggregate blocks the batch did not set explicitly are
    recalculated from the new table contents.
    """
    slide = _require_slide(document, slide_id)
    outcome = reconcile(slide, headers, rows, strict=strict)
    if not outcome.changed:
        raise ParseFailure(
            f"No rows could be imported into slide {slide_id}",
            warnings=outcome.warnings,
        )
    new_slide = outcome.slide
    if outcome.tables_written:
        new_slide = recalculate_stats(new_slide, skip=outcome.aggregates_written)
    return ImportResult(
        document=document.replace_slide(new_slide),
        kind="table",
        rows_imported=outcome.rows_imported,
        slides_updated=[slide_id],
        warnings=outcome.warnings,
    )


def import_stats(document: Document, slide_id: int, values: dict) -> ImportResult:
    """Overwrite fields of the slide's stats block; unknown keys are ignored.

    Raises:
        ParseFailure: If the slide has no stats block or no key matched.
    """
    slide = _require_slide(document, slide_id)
    spec = get_shape_spec(slide.shape)
    block_name = spec.stats_block
    if not block_name or block_name not in slide.data.aggregates:
        raise ParseFailure(f"Slide {slide_id} has no stats block to import into")

    new_slide = copy.deepcopy(slide)
    block = new_slide.data.aggregates[block_name]
    warnings = []
    updated = 0
    for key, value in values.items():
        if key in block:
            block[key] = value
            updated += 1
        else:
            warnings.append(f"slide {slide_id}: '{key}' is not a {block_name} field")
    if not updated:
        raise ParseFailure(_PARSE_HELP, warnings=warnings)
    return ImportResult(
        document=document.replace_slide(new_slide),
        kind="stats",
        stats_updated=updated,
        slides_updated=[slide_id],
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Bulk multi-slide rows (CSV / Excel)
# ---------------------------------------------------------------------------

def _field(row: dict, *names) -> str:
    for name in names:
        value = row.get(name)
        if value not in (None, ""):
            return str(value).strip()
    return ""


def _parse_int(value: str) -> int | None:
    digits = ""
    for i, ch in enumerate(value.strip()):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return None


def apply_bulk_rows(document: Document, rows) -> ImportResult:
    """Apply bulk-import rows across slides.

    Each row names its target with ``SlideID``, optional ``TableName``
    (default ``main``) and ``Sprint``. Other columns are matched by exact
    header text against the target table's column headers. A matching
    sprint row is updated in place; otherwise a new row is appended and
    the sprint window applied. Rows that cannot be applied are skipped
    with a warning.

    Raises:
        ParseFailure: If no row could be applied.
    """
    warnings: list[str] = []
    working: dict[int, Slide] = {}
    touched: list[int] = []
    updated = 0

    for line_no, row in enumerate(rows, start=2):
        slide_text = _field(row, "SlideID", "slideId")
        sprint_text = _field(row, "Sprint", "sprint")
        if not slide_text or not sprint_text:
            warnings.append(f"row {line_no}: SlideID and Sprint are required, skipping")
            continue

        slide_id = _parse_int(slide_text)
        original = document.get_slide(slide_id) if slide_id is not None else None
        if original is None:
            warnings.append(f"row {line_no}: slide {slide_text} not found, skipping")
            continue

        sprint = _parse_int(sprint_text)
        if sprint is None:
            warnings.append(f"row {line_no}: invalid sprint number for slide {slide_id}")
            continue

        if slide_id not in working:
            working[slide_id] = copy.deepcopy(original)
        slide = working[slide_id]

        table_name = _field(row, "TableName", "tableName") or MAIN_TABLE
        table = slide.data.tables.get(table_name)
        if table is None:
            warnings.append(
                f"row {line_no}: table \"{table_name}\" not found in slide {slide_id}")
            continue
        if not table.is_sprint_table:
            warnings.append(
                f"row {line_no}: slide {slide_id} table \"{table_name}\" "
                f"is not keyed by sprint")
            continue

        new_row = {"sprint": sprint}
        for col in table.columns:
            if col.key == "sprint":
                continue
            value = row.get(col.header)
            if value is None or str(value).strip() == "":
                continue
            new_row[col.key] = coerce_value(str(value).strip())

        if len(new_row) == 1:
            warnings.append(
                f"row {line_no}: no matching data found for slide {slide_id}, "
                f"sprint {sprint}")
            continue

        for existing in table.rows:
            if existing.get("sprint") == sprint:
                existing.update(new_row)
                break
        else:
            table.rows.append(new_row)
            table.rows = retain_recent_sprints(table.rows, "sprint")

        updated += 1
        if slide_id not in touched:
            touched.append(slide_id)

    if not updated:
        raise ParseFailure(
            "No data was imported. Please check your file format and make sure "
            "SlideID, TableName, and Sprint columns are correct.",
            warnings=warnings,
        )

    new_document = document
    for slide_id in touched:
        new_document = new_document.replace_slide(recalculate_stats(working[slide_id]))
    return ImportResult(
        document=new_document,
        kind="bulk",
        rows_imported=updated,
        slides_updated=touched,
        warnings=warnings,
    )


def sample_bulk_csv(document: Document, rows_per_table: int = 2) -> str:
    """Build a bulk-import template for *document*.

    The header row covers every sprint-table column header in the deck;
    example rows copy each table's first *rows_per_table* sprint rows, so
    importing the template unchanged is a no-op. A ``#`` comment guide
    listing each slide's tables and columns follows the data.
    """
    headers = ["SlideID", "TableName", "Sprint"]
    records = []
    guide = [
        "",
        "# ========================================",
        "# SPRINT DASHBOARD - CSV IMPORT TEMPLATE",
        "# ========================================",
        "# SlideID: required, the slide to update",
        "# TableName: 'main' unless the slide has named tables",
        "# Sprint: required, sprint number (e.g. 263)",
        "# Other columns: exact column headers from your slides",
        "# Max 5 sprint rows are kept per table (oldest removed)",
        "#",
    ]
    for slide in document.slides:
        sprint_tables = [(name, t) for name, t in slide.data.tables.items()
                         if t.is_sprint_table]
        if not sprint_tables:
            continue
        guide.append(f"# Slide {slide.id}: {slide.title}")
        for name, table in sprint_tables:
            data_cols = [c for c in table.columns if c.key != "sprint"]
            guide.append(f"#   TableName: {name}")
            guide.append(f"#   Columns: {', '.join(c.header for c in data_cols)}")
            for col in data_cols:
                if col.header not in headers:
                    headers.append(col.header)
            for row in table.rows[:rows_per_table]:
                if not isinstance(row.get("sprint"), int):
                    continue
                record = {"SlideID": slide.id, "TableName": name,
                          "Sprint": row["sprint"]}
                for col in data_cols:
                    value = row.get(col.key)
                    if value not in (None, ""):
                        record[col.header] = value
                records.append(record)

    df = pd.DataFrame(records, columns=headers, dtype=object)
    return df.to_csv(index=False) + "\n".join(guide) + "\n"


# ---------------------------------------------------------------------------
# File upload dispatch
# ---------------------------------------------------------------------------

def import_file(document: Document, path) -> ImportResult:
    """Import an uploaded file: ``.json`` replaces the whole deck,
    ``.csv`` / ``.xlsx`` are applied as bulk rows.

    Raises:
        ValidationRejection: On unsupported or malformed files.
        ParseFailure: If a bulk file applies no rows.
    """
    path = Path(path)
    if path.suffix.lower() == ".json":
        # Deferred: the loader imports this package's error types.
        from src.schema.loader import load_json

        return ImportResult(document=load_json(path), kind="document",
                            slides_updated=[])
    return apply_bulk_rows(document, read_bulk_file(path))


# ---------------------------------------------------------------------------
# DeckStore
# ---------------------------------------------------------------------------

class DeckStore:
    """Holds the current Document and swaps in operation results.

    ``apply`` calls ``operation(document, *args, **kwargs)``; the returned
    Document (or ``ImportResult.document``) replaces the current one only
    if the operation returns normally.
    """

    def __init__(self, document: Document | None = None):
        self._document = document if document is not None else build_sprint_deck()

    @property
    def document(self) -> Document:
        return self._document

    def apply(self, operation, *args, **kwargs):
        result = operation(self._document, *args, **kwargs)
        if isinstance(result, ImportResult):
            self._document = result.document
        elif isinstance(result, Document):
            self._document = result
        else:
            raise TypeError(
                f"{getattr(operation, '__name__', operation)!r} returned "
                f"{type(result).__name__}, expected Document or ImportResult")
        return result
