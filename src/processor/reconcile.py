"""Reconciliation rules — route an imported row batch onto a slide.

Every shape owns exactly one rule. A rule maps the raw rows onto the
destination table's canonical columns, splits them by identity value
into time-series rows (written to a table, then trimmed by the retention
window) and aggregate marker rows (written into an aggregate block,
overwriting only keys the block already has), and reports what it wrote.

Rules never mutate their input slide: they work on a deep copy and hand
it back inside a :class:`ReconcileOutcome`.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.schema.models import Slide, SlideShape
from src.schema.registry import ShapeSpec, TableSpec, get_shape_spec

from .errors import ParseFailure
from .ingestion import normalize_key
from .mapper import HeaderResolver, extract_sprint_number, map_row
from .transform import (
    SPECIAL_MARKERS,
    has_numeric_identity,
    identity_text,
    retain_recent_sprints,
)


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------

@dataclass
class ReconcileOutcome:
    """What a rule wrote into a slide."""
    slide: Slide
    tables_written: list[str] = field(default_factory=list)
    aggregates_written: list[str] = field(default_factory=list)
    series_written: list[str] = field(default_factory=list)
    rows_imported: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.tables_written or self.aggregates_written
                    or self.series_written)


# ---------------------------------------------------------------------------
# Row acceptance policies
# ---------------------------------------------------------------------------

_MARKERS = SPECIAL_MARKERS + ("quarter stats",)


def accept_all(row, identity_key):
    return True


def accept_identified(row, identity_key):
    s = identity_text(row, identity_key)
    return bool(s) and s not in _MARKERS


def accept_present(row, identity_key):
    return bool(identity_text(row, identity_key))


def accept_numeric(row, identity_key):
    return (accept_identified(row, identity_key)
            and has_numeric_identity(row, identity_key))


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _write_table(slide: Slide, name: str, rows: list[dict],
                 outcome: ReconcileOutcome) -> None:
    table = slide.data.tables[name]
    if table.is_sprint_table:
        rows = retain_recent_sprints(rows, table.identity_key)
    table.rows = rows
    outcome.tables_written.append(name)
    outcome.rows_imported += len(rows)


def _write_aggregate(slide: Slide, name: str, raw: dict,
                     resolver: HeaderResolver, outcome: ReconcileOutcome) -> None:
    """Overwrite the existing keys of block *name* from one raw row."""
    block = slide.data.aggregates.get(name)
    if block is None:
        return
    mapped = map_row(list(block), raw, resolver, identity_key=None)
    written = 0
    for key, value in mapped.items():
        if value is None or value == "":
            continue
        block[key] = value
        written += 1
    if written:
        outcome.aggregates_written.append(name)
    else:
        outcome.warnings.append(
            f"slide {slide.id}: '{name}' row matched no {name} fields")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

class ReconciliationRule(ABC):
    """Base rule: subclasses implement :meth:`apply`."""

    @abstractmethod
    def apply(self, slide: Slide, spec: ShapeSpec, raw_rows: list[dict],
              resolver: HeaderResolver, strict: bool = False) -> ReconcileOutcome:
        raise NotImplementedError


class SprintTableRule(ReconciliationRule):
    """One table plus zero or more aggregate blocks.

    *accept* decides which mapped rows are time-series rows. Aggregate
    blocks pick up the first row whose identity matches one of their
    selectors. The table is only replaced when at least one time-series
    row survives, so a batch of nothing but totals leaves it intact.
    """

    def __init__(self, accept=accept_all):
        self.accept = accept

    def apply(self, slide, spec, raw_rows, resolver, strict=False):
        out = copy.deepcopy(slide)
        outcome = ReconcileOutcome(slide=out)
        name = spec.primary_table
        table = out.data.tables[name]
        identity = table.identity_key

        mapped = [(raw, map_row(table.keys, raw, resolver, identity))
                  for raw in raw_rows]

        routed: set[int] = set()
        for aspec in spec.aggregates:
            if not aspec.selectors:
                continue
            for idx, (raw, row) in enumerate(mapped):
                if identity_text(row, identity or "sprint") in aspec.selectors:
                    _write_aggregate(out, aspec.name, raw, resolver, outcome)
                    routed.add(idx)
                    break

        series = [row for idx, (raw, row) in enumerate(mapped)
                  if idx not in routed and self.accept(row, identity)]
        if series:
            _write_table(out, name, series, outcome)
        elif not routed:
            outcome.warnings.append(
                f"slide {slide.id}: no sprint rows found in import")
        return outcome


class HeaderSignatureRule(ReconciliationRule):
    """Two or more tables, chosen by which header signature is present.

    When no signature matches, the primary table is used with a warning,
    or :class:`ParseFailure` is raised in strict mode.
    """

    def __init__(self, accept=accept_present):
        self.accept = accept

    def select_table(self, slide, spec: ShapeSpec, resolver: HeaderResolver,
                     strict: bool, outcome: ReconcileOutcome) -> TableSpec:
        for tspec in spec.tables:
            if resolver.has_any(tspec.signature):
                return tspec
        if strict:
            raise ParseFailure(
                f"Could not tell which table of slide {slide.id} the data "
                f"belongs to. Expected one of the headers: "
                + "; ".join(f"{t.name}: {', '.join(t.signature)}"
                            for t in spec.tables)
            )
        outcome.warnings.append(
            f"slide {slide.id}: no table signature matched, "
            f"importing into '{spec.primary_table}'")
        return spec.tables[0]

    def apply(self, slide, spec, raw_rows, resolver, strict=False):
        out = copy.deepcopy(slide)
        outcome = ReconcileOutcome(slide=out)
        tspec = self.select_table(slide, spec, resolver, strict, outcome)
        table = out.data.tables[tspec.name]
        identity = table.identity_key

        rows = [map_row(table.keys, raw, resolver, identity) for raw in raw_rows]
        rows = [r for r in rows if self.accept(r, identity)]
        if rows:
            _write_table(out, tspec.name, rows, outcome)
        else:
            outcome.warnings.append(
                f"slide {slide.id}: no '{tspec.name}' rows found in import")
        return outcome


class ReplaceRowsRule(ReconciliationRule):
    """Full replacement of a table with no identity column."""

    def apply(self, slide, spec, raw_rows, resolver, strict=False):
        out = copy.deepcopy(slide)
        outcome = ReconcileOutcome(slide=out)
        name = spec.primary_table
        table = out.data.tables[name]
        rows = [map_row(table.keys, raw, resolver, identity_key=None)
                for raw in raw_rows]
        rows = [r for r in rows if r]
        if rows:
            _write_table(out, name, rows, outcome)
        else:
            outcome.warnings.append(
                f"slide {slide.id}: no matching columns found in import")
        return outcome


class ComparisonRule(ReconciliationRule):
    """Sprint and quarter comparison arrays (not table-shaped).

    A row goes to ``quarters`` when tagged ``type: quarter`` or when it has
    a quarter label; to ``sprints`` when tagged ``type: sprint`` or when it
    has a sprint number.
    """

    def _kind(self, raw, resolver, sprint_row, quarter_row):
        type_header = resolver.find("type")
        if type_header is not None and normalize_key(type_header) == "type":
            tag = normalize_key(raw.get(type_header, ""))
            if tag.startswith("quarter"):
                return "quarters"
            if tag.startswith("sprint"):
                return "sprints"
        if quarter_row.get("quarter") not in (None, ""):
            return "quarters"
        if sprint_row.get("sprintNumber") not in (None, ""):
            return "sprints"
        return None

    def apply(self, slide, spec, raw_rows, resolver, strict=False):
        out = copy.deepcopy(slide)
        outcome = ReconcileOutcome(slide=out)
        collected: dict[str, list[dict]] = {name: [] for name in spec.series}

        for raw in raw_rows:
            sprint_row = map_row(spec.series["sprints"], raw, resolver, None)
            quarter_row = map_row(spec.series["quarters"], raw, resolver, None)
            kind = self._kind(raw, resolver, sprint_row, quarter_row)
            if kind == "sprints":
                sprint_row["sprintNumber"] = extract_sprint_number(
                    sprint_row.get("sprintNumber"))
                collected["sprints"].append(sprint_row)
            elif kind == "quarters":
                collected["quarters"].append(quarter_row)

        for name, rows in collected.items():
            if rows:
                out.data.extras[name] = rows
                outcome.series_written.append(name)
                outcome.rows_imported += len(rows)
        if not outcome.series_written:
            outcome.warnings.append(
                f"slide {slide.id}: no sprint or quarter rows found in import")
        return outcome


# ---------------------------------------------------------------------------
# Rule registry
# ---------------------------------------------------------------------------

RULES: dict[SlideShape, ReconciliationRule] = {
    SlideShape.TABLE: SprintTableRule(accept_all),
    SlideShape.PLUGIN_RANKING: SprintTableRule(accept_all),
    SlideShape.QUARTER_STATS: SprintTableRule(accept_identified),
    SlideShape.WITH_TARGET: SprintTableRule(accept_identified),
    SlideShape.REFERRAL: SprintTableRule(accept_numeric),
    SlideShape.WIX_APP: SprintTableRule(accept_numeric),
    SlideShape.RANKINGS: SprintTableRule(accept_present),
    SlideShape.SUPPORT_DATA: HeaderSignatureRule(),
    SlideShape.AGENCY_LEADS: HeaderSignatureRule(),
    SlideShape.SUBSCRIPTIONS: ReplaceRowsRule(),
    SlideShape.COMPARISON: ComparisonRule(),
}


def reconcile(slide: Slide, headers, raw_rows, strict: bool = False) -> ReconcileOutcome:
    """Route *raw_rows* (keyed by *headers*) onto *slide*.

    Raises:
        ParseFailure: If the slide's shape takes no row imports, or (in
            strict mode) its destination table cannot be determined.
    """
    spec = get_shape_spec(slide.shape)
    rule = RULES.get(slide.shape)
    if rule is None or not spec.accepts_rows:
        raise ParseFailure(
            f"Slide {slide.id} ({slide.shape.value}) does not accept table data")
    resolver = HeaderResolver(headers)
    return rule.apply(slide, spec, list(raw_rows), resolver, strict)
