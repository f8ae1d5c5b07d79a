"""QA validator — checks a deck Document against its structural invariants.

Validates that a deck (seed, edited, or freshly imported) is well formed:
unique slide ids, every table carrying its identity column, row keys
drawn from the table's columns, at least one row and one data column per
table, no more than five numeric sprint rows, and cell values of a
supported type. Derived totals that drift from their table sums are
reported as warnings.

Usage::

    from src.qa.validator import DeckValidator

    result = DeckValidator().validate(document)
    assert result.passed, result.summary()
"""

import math
from dataclasses import dataclass, field

from src.processor.transform import (
    MAX_SPRINTS,
    column_totals,
    is_special_row,
)
from src.schema.models import Document, Slide, Table
from src.schema.registry import get_shape_spec


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Issue:
    """A single QA issue found during validation."""
    severity: str       # "error" or "warning"
    slide_id: int       # -1 for deck-level issues
    slide_title: str
    table_name: str     # "" for slide-level issues
    category: str       # e.g. "duplicate_id", "dangling_key", "sprint_window"
    message: str

    def __str__(self) -> str:
        loc = f"slide {self.slide_id}"
        if self.slide_title:
            loc += f" ({self.slide_title})"
        if self.table_name:
            loc += f" / {self.table_name}"
        return f"[{self.severity.upper()}] {loc}: {self.message}"


@dataclass
class QAResult:
    """Aggregated result of QA validation."""
    issues: list[Issue] = field(default_factory=list)

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> str:
        """One-line summary string."""
        status = "PASS" if self.passed else "FAIL"
        return (
            f"QA {status}: {self.error_count} error(s), "
            f"{self.warning_count} warning(s)"
        )

    def report(self) -> str:
        """Multi-line report of all issues."""
        lines = [self.summary()]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _valid_value(value) -> bool:
    if value is None or isinstance(value, str):
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    return False


# ---------------------------------------------------------------------------
# DeckValidator
# ---------------------------------------------------------------------------

class DeckValidator:
    """Validates a Document against the deck invariants.

    Parameters
    ----------
    check_totals : bool
        Also warn when a derived aggregate field disagrees with the sum
        of its table column.
    """

    def __init__(self, check_totals: bool = True) -> None:
        self.check_totals = check_totals

    def validate(self, document: Document) -> QAResult:
        """Run all checks and return the aggregated result."""
        result = QAResult()
        self._check_unique_ids(document, result)
        for slide in document.slides:
            self._check_slide(slide, result)
        return result

    # ------------------------------------------------------------------
    # Deck-level checks
    # ------------------------------------------------------------------

    def _check_unique_ids(self, document: Document, result: QAResult) -> None:
        seen: set[int] = set()
        for slide in document.slides:
            if slide.id in seen:
                result.issues.append(Issue(
                    severity="error",
                    slide_id=slide.id,
                    slide_title=slide.title,
                    table_name="",
                    category="duplicate_id",
                    message=f"Slide id {slide.id} is used more than once",
                ))
            seen.add(slide.id)

    # ------------------------------------------------------------------
    # Per-slide checks
    # ------------------------------------------------------------------

    def _issue(self, result, severity, slide, table_name, category, message):
        result.issues.append(Issue(
            severity=severity,
            slide_id=slide.id,
            slide_title=slide.title,
            table_name=table_name,
            category=category,
            message=message,
        ))

    def _check_slide(self, slide: Slide, result: QAResult) -> None:
        spec = get_shape_spec(slide.shape)
        for tspec in spec.tables:
            table = slide.data.tables.get(tspec.name)
            if table is None:
                self._issue(result, "error", slide, tspec.name, "table_missing",
                            f"Shape '{slide.shape.value}' requires table '{tspec.name}'")
                continue
            self._check_table(slide, tspec.name, tspec.identity_key, table, result)

        for aspec in spec.aggregates:
            block = slide.data.aggregates.get(aspec.name)
            if block is None:
                continue
            for key, value in block.items():
                if not _valid_value(value):
                    self._issue(result, "error", slide, aspec.name, "value_type",
                                f"'{key}' has unsupported value {value!r}")
            if self.check_totals and aspec.derived:
                self._check_totals(slide, aspec.name, aspec.source_table, result)

    def _check_table(self, slide: Slide, name: str, identity_key: str | None,
                     table: Table, result: QAResult) -> None:
        keys = table.keys
        if len(keys) != len(set(keys)):
            self._issue(result, "error", slide, name, "duplicate_column",
                        "Column keys are not unique")

        if identity_key is not None and table.identity_key != identity_key:
            self._issue(result, "error", slide, name, "identity_missing",
                        f"Expected locked identity column '{identity_key}'")

        if not [c for c in table.columns if not c.locked]:
            self._issue(result, "error", slide, name, "no_data_columns",
                        "At least one data column is required")

        if not table.rows:
            self._issue(result, "error", slide, name, "no_rows",
                        "At least one row is required")

        key_set = set(keys)
        for idx, row in enumerate(table.rows):
            dangling = sorted(set(row) - key_set)
            if dangling:
                self._issue(result, "error", slide, name, "dangling_key",
                            f"Row {idx} has keys with no column: {', '.join(dangling)}")
            for key, value in row.items():
                if not _valid_value(value):
                    self._issue(result, "error", slide, name, "value_type",
                                f"Row {idx} '{key}' has unsupported value {value!r}")

        if table.is_sprint_table:
            numeric = [r for r in table.rows if not is_special_row(r, "sprint")]
            if len(numeric) > MAX_SPRINTS:
                self._issue(result, "error", slide, name, "sprint_window",
                            f"{len(numeric)} sprint rows, at most {MAX_SPRINTS} allowed")

    def _check_totals(self, slide: Slide, block_name: str, table_name: str,
                      result: QAResult) -> None:
        table = slide.data.tables.get(table_name)
        block = slide.data.aggregates.get(block_name)
        if table is None or block is None:
            return
        identity = table.identity_key or "sprint"
        rows = [r for r in table.rows if not is_special_row(r, identity)]
        keys = [k for k in block if k in table.keys and k != identity]
        for key, expected in column_totals(rows, keys).items():
            actual = block.get(key)
            if not isinstance(actual, (int, float)) or isinstance(actual, bool) \
                    or not math.isclose(actual, expected):
                self._issue(result, "warning", slide, block_name, "stale_total",
                            f"'{key}' is {actual!r}, column sum is {expected!r}")


def validate_document(document: Document) -> QAResult:
    """One-shot convenience: validate a deck Document."""
    return DeckValidator().validate(document)
