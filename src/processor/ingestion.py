"""Data ingestion module for the sprint deck.

Handles reading, cleaning, and classifying data from every import source:
- Pasted spreadsheet text (tab-delimited table or key/value stats)
- Text extracted from screenshots (same pipeline as pasted text)
- Bulk multi-slide CSV (UTF-8, comma-delimited, ``#`` comment lines)
- Bulk multi-slide Excel (.xlsx, first sheet)
"""

import io
import math
import re
import warnings
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .errors import ValidationRejection


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def strip_number_formatting(value) -> str:
    """Remove currency, percent, and thousands separators from *value*."""
    return re.sub(r"[$%,]", "", str(value)).strip()


def parse_number(value):
    """Parse *value* as a finite number, or return ``None``.

    Examples:
        "$1,234.50" -> 1234.5
        "45%"       -> 45
        "3"         -> 3
        "2h 15m"    -> None
        ""          -> None
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if value is None:
        return None
    s = strip_number_formatting(value)
    if not _NUMBER_RE.match(s):
        return None
    f = float(s)
    if not math.isfinite(f):
        return None
    if "." not in s and "e" not in s.lower():
        return int(s)
    return f


def coerce_value(value):
    """Coerce a raw cell into a number where possible.

    Total: never raises. Numbers pass through, strings that parse as a
    number after stripping ``$``, ``%`` and ``,`` become numbers, and
    anything else (including ``""`` and ``None``) is returned unchanged.
    """
    if isinstance(value, str) and not value.strip():
        return value
    number = parse_number(value)
    return value if number is None else number


def normalize_key(value) -> str:
    """Lower-case and drop every character outside ``[a-z0-9]``.

    This is the one normalization used wherever headers or field keys are
    compared: ``"KB Articles"`` -> ``"kbarticles"``, ``"Sprint #"`` ->
    ``"sprint"``.
    """
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


# ---------------------------------------------------------------------------
# Pasted text: format sniffing
# ---------------------------------------------------------------------------

@dataclass
class PastedTable:
    """A tab-delimited block: lower-cased headers plus coerced raw rows."""
    headers: list[str]
    rows: list[dict] = field(default_factory=list)


@dataclass
class PastedStats:
    """Key/value stats text matched onto a slide's aggregate keys."""
    values: dict[str, float]
    format: str  # "tab", "colon", or "ordered"


def split_lines(text: str) -> list[str]:
    """Split pasted text into its non-blank lines."""
    return [line for line in str(text).replace("\r\n", "\n").split("\n")
            if line.strip()]


def is_table_block(lines: list[str]) -> bool:
    """True when *lines* look like a spreadsheet copy: the first line has
    more than two tab-separated fields and there is at least one data row.
    """
    if len(lines) < 2:
        return False
    first = lines[0]
    return "\t" in first and len(first.split("\t")) > 2


def parse_table_block(lines: list[str]) -> PastedTable:
    """Parse a tab-delimited block; the first line holds the headers."""
    headers = [h.strip().lower() for h in lines[0].split("\t")]
    rows = []
    for line in lines[1:]:
        values = [v.strip() for v in line.split("\t")]
        row = {}
        for idx, header in enumerate(headers):
            row[header] = coerce_value(values[idx] if idx < len(values) else "")
        rows.append(row)
    return PastedTable(headers=headers, rows=rows)


def _match_stats_key(raw_key: str, expected_keys: list[str]) -> str | None:
    key = normalize_key(raw_key)
    if not key:
        return None
    for k in expected_keys:
        if normalize_key(k) == key:
            return k
    for k in expected_keys:
        nk = normalize_key(k)
        if nk in key or key in nk:
            return k
    return None


def parse_stats_lines(lines: list[str], expected_keys: list[str]) -> PastedStats | None:
    """Parse stats text against *expected_keys*.

    Two layouts are recognised:

    - delimited key/value lines (``Paying Users<TAB>50`` or
      ``Paying Users: 50``); the delimiter is whichever of tab or colon the
      first line contains. Lines whose key matches nothing or whose value
      is not numeric are skipped.
    - one bare number per line, assigned to *expected_keys* in order;
      only used when every line is numeric. Extra lines are ignored.

    Returns ``None`` when nothing could be matched.
    """
    if not lines or not expected_keys:
        return None

    first = lines[0]
    values: dict[str, float] = {}

    if "\t" in first or ":" in first:
        delimiter = "\t" if "\t" in first else ":"
        for line in lines:
            parts = [p.strip() for p in line.split(delimiter)]
            if len(parts) < 2:
                continue
            matched = _match_stats_key(parts[0], expected_keys)
            number = parse_number(parts[1])
            if matched and number is not None:
                values[matched] = number
        fmt = "tab" if delimiter == "\t" else "colon"
    elif all(parse_number(line) is not None for line in lines):
        for idx, line in enumerate(lines[:len(expected_keys)]):
            values[expected_keys[idx]] = parse_number(line)
        fmt = "ordered"
    else:
        return None

    if not values:
        return None
    return PastedStats(values=values, format=fmt)


def parse_pasted_text(text: str, expected_stats_keys: list[str] | None = None):
    """Classify and parse a pasted block.

    Returns a :class:`PastedTable`, a :class:`PastedStats`, or ``None``
    when the text matches neither layout.
    """
    lines = split_lines(text)
    if not lines:
        return None
    if is_table_block(lines):
        return parse_table_block(lines)
    if expected_stats_keys:
        return parse_stats_lines(lines, expected_stats_keys)
    return None


# ---------------------------------------------------------------------------
# Column cleaning
# ---------------------------------------------------------------------------

def clean_columns(df):
    """Strip whitespace from column names and string cells."""
    df.columns = [c.strip() if isinstance(c, str) else c for c in df.columns]
    df = df.fillna("")
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def _records(df) -> list[dict[str, str]]:
    return df.to_dict(orient="records")


# ---------------------------------------------------------------------------
# Bulk multi-slide files
# ---------------------------------------------------------------------------

def _read_text(source) -> str:
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ValidationRejection(
                f"Error reading CSV file: not valid UTF-8 ({exc.reason})") from exc
    return str(source)


def read_bulk_csv(source) -> list[dict[str, str]]:
    """Read a bulk-import CSV into a list of header-keyed string rows.

    *source* is a :class:`~pathlib.Path` or the CSV text itself. Blank
    lines and lines starting with ``#`` are dropped before parsing; quoted
    fields may contain commas. Rows longer than the header are truncated.

    Raises:
        ValidationRejection: If the file is not UTF-8 text, cannot be
            parsed, or fewer than two usable lines remain.
    """
    text = _read_text(source)
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]
    if len(lines) < 2:
        raise ValidationRejection("CSV file is empty or invalid.")

    try:
        width = len(pd.read_csv(io.StringIO(lines[0]), nrows=0).columns)
        # Truncating long rows is intended; silence pandas' data-loss notice.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            df = pd.read_csv(
                io.StringIO("\n".join(lines)),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                index_col=False,
                engine="python",
                on_bad_lines=lambda fields: fields[:width],
            )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ValidationRejection(f"Error reading CSV file: {exc}") from exc
    return _records(clean_columns(df))


def read_bulk_excel(path) -> list[dict[str, str]]:
    """Read the first sheet of a bulk-import workbook (.xlsx).

    Rows whose first cell starts with ``#`` are treated as comments.

    Raises:
        ValidationRejection: If the file is not a readable workbook.
    """
    try:
        df = pd.read_excel(path, sheet_name=0, dtype=str, engine="openpyxl")
    except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError) as exc:
        raise ValidationRejection(f"Error reading Excel file: {exc}") from exc
    df = clean_columns(df)
    if len(df.columns):
        first = df.columns[0]
        df = df[~df[first].str.startswith("#")]
    df = df[(df != "").any(axis=1)]
    return _records(df)


# ---------------------------------------------------------------------------
# Source type registry
# ---------------------------------------------------------------------------

BULK_SOURCE_TYPES = {
    ".csv": lambda path: read_bulk_csv(Path(path)),
    ".xlsx": read_bulk_excel,
}


def read_bulk_file(path) -> list[dict[str, str]]:
    """Read a bulk-import file, dispatching on its extension.

    Raises:
        ValidationRejection: If the extension is not supported.
    """
    suffix = Path(path).suffix.lower()
    if suffix not in BULK_SOURCE_TYPES:
        raise ValidationRejection(
            f"Unsupported file format '{suffix or path}'. "
            f"Valid types: {', '.join(sorted(BULK_SOURCE_TYPES))}"
        )
    return BULK_SOURCE_TYPES[suffix](path)
