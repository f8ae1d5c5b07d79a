"""Row-set transforms for the sprint deck.

Two derived-data steps run after every change to a sprint table:

- the retention window, which keeps the five most recent numeric sprints
  (plus every aggregate marker row such as ``QTD`` or ``Total``), and
- stats recalculation, which re-derives the aggregate blocks flagged as
  ``derived`` in the registry by summing the sprint table column by
  column.
"""

import copy

import pandas as pd

from src.schema.models import Slide
from src.schema.registry import get_shape_spec


MAX_SPRINTS = 5

SPECIAL_MARKERS = ("qtd", "total", "lifetime")


# ---------------------------------------------------------------------------
# Row classification
# ---------------------------------------------------------------------------

def identity_text(row: dict, identity_key: str = "sprint") -> str:
    """Lower-cased, stripped identity value of *row* ('' when absent)."""
    value = row.get(identity_key)
    if value is None:
        return ""
    return str(value).strip().lower()


def is_special_row(row: dict, identity_key: str = "sprint") -> bool:
    """True for aggregate marker rows (``Total``, ``QTD``, ``Lifetime``,
    ``Q3 QTD`` ...)."""
    s = identity_text(row, identity_key)
    return s in SPECIAL_MARKERS or "qtd" in s


def sprint_number(row: dict, identity_key: str = "sprint") -> int:
    """Parsed sprint number, 0 when the identity does not parse.

    Mirrors integer-prefix parsing: ``"264"`` -> 264, ``"264b"`` -> 264,
    ``"Sprint 264"`` -> 0.
    """
    value = row.get(identity_key)
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    s = str(value).strip()
    digits = ""
    for i, ch in enumerate(s):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def has_numeric_identity(row: dict, identity_key: str = "sprint") -> bool:
    value = row.get(identity_key)
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float)):
        return True
    s = str(value).strip().lstrip("+-")
    return bool(s) and s[0].isdigit()


# ---------------------------------------------------------------------------
# Retention window
# ---------------------------------------------------------------------------

def retain_recent_sprints(rows: list[dict], identity_key: str = "sprint",
                          limit: int = MAX_SPRINTS) -> list[dict]:
    """Keep the *limit* highest-numbered sprint rows plus all marker rows.

    Output order is the kept sprints, newest first, followed by the
    marker rows in their original order. Row sets no larger than *limit*
    are returned unchanged. The result is a new list; row dicts are
    shared.
    """
    if rows is None or len(rows) <= limit:
        return rows

    special = [r for r in rows if is_special_row(r, identity_key)]
    numeric = [r for r in rows if not is_special_row(r, identity_key)]
    numeric.sort(key=lambda r: sprint_number(r, identity_key), reverse=True)
    return numeric[:limit] + special


# ---------------------------------------------------------------------------
# Stats recalculation
# ---------------------------------------------------------------------------

def column_totals(rows: list[dict], keys) -> dict:
    """Sum each of *keys* across *rows*; non-numeric or missing cells count
    as 0. Integral totals come back as ``int``."""
    keys = list(keys)
    if not keys:
        return {}
    df = pd.DataFrame(list(rows), columns=keys)
    totals = {}
    for key in keys:
        values = df[key].map(lambda v: v if isinstance(v, (int, float))
                             and not isinstance(v, bool) else 0)
        total = float(pd.to_numeric(values, errors="coerce").fillna(0).sum())
        totals[key] = int(total) if total.is_integer() else total
    return totals


def recalculate_stats(slide: Slide, skip=()) -> Slide:
    """Return a copy of *slide* with its derived aggregate blocks refreshed.

    For every derived block (except those named in *skip*), each field
    that also names a column of the block's source table is overwritten
    with that column's sum over the table's non-marker rows. Fields with
    no matching column (``roas``, ``cardAdded`` ...) are left as they are.
    The previous aggregate values are never read.
    """
    spec = get_shape_spec(slide.shape)
    out = copy.deepcopy(slide)
    for aspec in spec.aggregates:
        if not aspec.derived or aspec.name in skip:
            continue
        block = out.data.aggregates.get(aspec.name)
        table = out.data.tables.get(aspec.source_table)
        if block is None or table is None:
            continue
        identity = table.identity_key or "sprint"
        rows = [r for r in table.rows if not is_special_row(r, identity)]
        keys = [k for k in block if k in table.keys and k != identity]
        block.update(column_totals(rows, keys))
    return out
