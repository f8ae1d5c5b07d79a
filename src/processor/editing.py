"""Inline editing operations for the sprint deck.

Every function takes the current :class:`Document` and returns a new one;
the input is never modified. The edited slide is deep-copied, changed,
and swapped in, and all other slides are shared with the input. Row
edits on a table that feeds a derived aggregate block re-run stats
recalculation.

Tables are addressed by :class:`TableRef` (slide id + table name).
"""

import copy
import time

from src.schema.models import (
    IDENTITY_KEYS,
    MAIN_TABLE,
    Column,
    Document,
    Slide,
    Table,
    TableRef,
)
from src.schema.registry import get_shape_spec

from .errors import ValidationRejection
from .ingestion import coerce_value
from .transform import recalculate_stats, retain_recent_sprints


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------

def _require_slide(document: Document, slide_id: int) -> Slide:
    slide = document.get_slide(slide_id)
    if slide is None:
        raise ValidationRejection(f"Slide {slide_id} not found")
    return slide


def _as_ref(ref) -> TableRef:
    if isinstance(ref, TableRef):
        return ref
    return TableRef(int(ref))


def _default_table_name(slide: Slide) -> str:
    """``main`` unless the shape keeps its only/first table under a name."""
    if MAIN_TABLE in slide.data.tables:
        return MAIN_TABLE
    spec = get_shape_spec(slide.shape)
    return spec.primary_table or MAIN_TABLE


def _table_of(slide: Slide, ref: TableRef) -> Table:
    name = ref.table_name
    if name == MAIN_TABLE:
        name = _default_table_name(slide)
    table = slide.data.tables.get(name)
    if table is None:
        raise ValidationRejection(
            f"Table '{ref.table_name}' not found in slide {slide.id}")
    return table


def _feeds_derived(slide: Slide, table: Table) -> bool:
    spec = get_shape_spec(slide.shape)
    return any(a.derived and slide.data.tables.get(a.source_table) is table
               for a in spec.aggregates)


def _edit_table(document: Document, ref, edit, recalc: bool = False) -> Document:
    """Apply ``edit(table)`` to a copy of the referenced table."""
    ref = _as_ref(ref)
    slide = copy.deepcopy(_require_slide(document, ref.slide_id))
    table = _table_of(slide, ref)
    edit(table)
    if recalc and _feeds_derived(slide, table):
        slide = recalculate_stats(slide)
    return document.replace_slide(slide)


def _edit_slide(document: Document, slide_id: int, edit) -> Document:
    slide = copy.deepcopy(_require_slide(document, slide_id))
    edit(slide)
    return document.replace_slide(slide)


# ---------------------------------------------------------------------------
# Slide-level edits
# ---------------------------------------------------------------------------

def update_slide_title(document: Document, slide_id: int, title: str) -> Document:
    def edit(slide):
        slide.title = title
    return _edit_slide(document, slide_id, edit)


def update_more_details_url(document: Document, slide_id: int, url: str) -> Document:
    def edit(slide):
        slide.more_details_url = url
    return _edit_slide(document, slide_id, edit)


def update_slide_field(document: Document, slide_id: int, name: str, value) -> Document:
    """Set a freeform scalar (``target``, ``text``, ``quarterTarget`` ...).

    Table and aggregate block names are refused; use the dedicated
    operations for those.
    """
    def edit(slide):
        if name in slide.data.tables or name in slide.data.aggregates:
            raise ValidationRejection(
                f"'{name}' on slide {slide.id} is not a freeform field")
        slide.data.extras[name] = value if name == "text" else coerce_value(value)
    return _edit_slide(document, slide_id, edit)


def update_aggregate(document: Document, slide_id: int, block: str,
                     key: str, value) -> Document:
    """Overwrite one existing field of an aggregate block."""
    def edit(slide):
        fields = slide.data.aggregates.get(block)
        if fields is None:
            raise ValidationRejection(
                f"Slide {slide.id} has no '{block}' block")
        if key not in fields:
            raise ValidationRejection(
                f"'{key}' is not a field of '{block}' on slide {slide.id}")
        fields[key] = coerce_value(value)
    return _edit_slide(document, slide_id, edit)


def set_current_sprint(document: Document, sprint: int) -> Document:
    return Document(slides=list(document.slides), current_sprint=int(sprint))


# ---------------------------------------------------------------------------
# Cell / header edits
# ---------------------------------------------------------------------------

def update_cell(document: Document, ref, row_index: int, key: str, value) -> Document:
    """Set one cell; the value goes through value coercion."""
    def edit(table):
        if table.get_column(key) is None:
            raise ValidationRejection(f"Column '{key}' not found in {ref}")
        if not 0 <= row_index < len(table.rows):
            raise ValidationRejection(f"Row {row_index} out of range in {ref}")
        table.rows[row_index][key] = coerce_value(value)
    return _edit_table(document, ref, edit, recalc=True)


def update_column_header(document: Document, ref, key: str, header: str) -> Document:
    def edit(table):
        col = table.get_column(key)
        if col is None:
            raise ValidationRejection(f"Column '{key}' not found in {ref}")
        col.header = header
    return _edit_table(document, ref, edit)


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

def _next_row(table: Table) -> dict:
    """New row following the table: the next sprint number after the
    newest one, and 0 or "" per cell depending on the last row."""
    last = table.rows[-1] if table.rows else {}
    sprints = [r.get("sprint") for r in table.rows
               if isinstance(r.get("sprint"), int)
               and not isinstance(r.get("sprint"), bool)]
    row = {}
    for col in table.columns:
        if col.key in IDENTITY_KEYS and (col.locked or col.key == "sprint"):
            if col.key == "sprint" and sprints:
                row[col.key] = max(sprints) + 1
            else:
                row[col.key] = ""
        else:
            prev = last.get(col.key)
            numeric = isinstance(prev, (int, float)) and not isinstance(prev, bool)
            row[col.key] = 0 if numeric else ""
    return row


def add_row(document: Document, ref) -> Document:
    """Append a row following the last one, then apply the sprint window."""
    def edit(table):
        table.rows.append(_next_row(table))
        if table.is_sprint_table:
            table.rows = retain_recent_sprints(table.rows, table.identity_key)
    return _edit_table(document, ref, edit, recalc=True)


def remove_row(document: Document, ref, row_index: int) -> Document:
    """Delete a row. The last remaining row cannot be deleted."""
    def edit(table):
        if len(table.rows) <= 1:
            raise ValidationRejection(
                "Cannot delete the last row. At least one row is required.")
        if not 0 <= row_index < len(table.rows):
            raise ValidationRejection(f"Row {row_index} out of range in {ref}")
        del table.rows[row_index]
    return _edit_table(document, ref, edit, recalc=True)


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------

def _new_column_key(table: Table) -> str:
    stamp = int(time.time() * 1000)
    existing = set(table.keys)
    while f"col{stamp}" in existing:
        stamp += 1
    return f"col{stamp}"


def add_column(document: Document, ref, header: str = "New Column",
               key: str | None = None) -> Document:
    """Append a data column; every existing row gets 0 in it."""
    def edit(table):
        new_key = key or _new_column_key(table)
        if table.get_column(new_key) is not None:
            raise ValidationRejection(f"Column '{new_key}' already exists in {ref}")
        table.columns.append(Column(new_key, header))
        for row in table.rows:
            row[new_key] = 0
    return _edit_table(document, ref, edit)


def remove_column(document: Document, ref, key: str) -> Document:
    """Delete a data column and prune it from every row.

    Locked (identity) columns and the last remaining data column cannot be
    deleted.
    """
    def edit(table):
        col = table.get_column(key)
        if col is None:
            raise ValidationRejection(f"Column '{key}' not found in {ref}")
        if col.locked:
            raise ValidationRejection(f"Column '{col.header}' is locked")
        if len([c for c in table.columns if not c.locked]) <= 1:
            raise ValidationRejection(
                "Cannot delete the last non-locked column. "
                "At least one data column is required.")
        table.columns = [c for c in table.columns if c.key != key]
        table.prune_rows()
    return _edit_table(document, ref, edit, recalc=True)
