"""Deck models - the contract between the registry, import engine, and CLI.

Defines the typed structure of a sprint reporting deck: which slides exist,
which tables and aggregate blocks each slide owns, and how every piece
round-trips through the JSON export format.
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


# A cell value: number, text, or empty (None).
Value = int | float | str | None

Row = dict[str, Value]

MAIN_TABLE = "main"

IDENTITY_KEYS = ("sprint", "metrics", "quarter")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SlideShape(Enum):
    """Which panel layout (and reconciliation rule) a slide uses."""
    COMPARISON = "comparison"          # Sprint vs. quarter paid-user arrays
    RANKINGS = "rankings"              # Region lists + position changes table
    TABLE = "table"                    # Single sprint table
    PLUGIN_RANKING = "pluginRanking"   # Single sprint table + quarter target
    SUPPORT_DATA = "supportData"       # Tickets + live chat tables
    AGENCY_LEADS = "agencyLeads"       # Leads conversion + quarter performance
    QUARTER_STATS = "quarterStats"     # Sprint table + quarter stats block
    TEXTAREA = "textarea"              # Freeform observations
    WITH_TARGET = "withTarget"         # Sprint table + totals vs. target
    REFERRAL = "referral"              # Sprint table + lifetime block
    WIX_APP = "wixApp"                 # Sprint table + lifetime and total blocks
    SUBSCRIPTIONS = "subscriptions"    # Channel rows, no identity column


# ---------------------------------------------------------------------------
# Table primitives
# ---------------------------------------------------------------------------

@dataclass
class Column:
    """A single table column: stable key, editable display header."""
    key: str
    header: str
    locked: bool = False

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"key": self.key, "header": self.header}
        if self.locked:
            d["locked"] = True
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Column":
        return cls(key=d["key"], header=d.get("header", d["key"]),
                   locked=bool(d.get("locked", False)))


@dataclass
class Table:
    """Ordered columns plus the rows keyed by column key."""
    columns: list[Column] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)

    @property
    def keys(self) -> list[str]:
        return [c.key for c in self.columns]

    @property
    def identity_key(self) -> str | None:
        """Key of the locked identity column, or ``None`` if there is none."""
        for col in self.columns:
            if col.locked and col.key in IDENTITY_KEYS:
                return col.key
        return None

    @property
    def is_sprint_table(self) -> bool:
        return self.identity_key == "sprint"

    def get_column(self, key: str) -> Column | None:
        for col in self.columns:
            if col.key == key:
                return col
        return None

    def prune_rows(self) -> None:
        """Drop row keys that no longer name a column."""
        keys = set(self.keys)
        self.rows = [{k: v for k, v in row.items() if k in keys}
                     for row in self.rows]

    def to_dict(self) -> dict:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "rows": [dict(r) for r in self.rows],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Table":
        return cls(
            columns=[Column.from_dict(c) for c in d.get("columns", [])],
            rows=[dict(r) for r in d.get("rows", [])],
        )


@dataclass(frozen=True)
class TableRef:
    """Composite address of a table: slide id plus nested table name."""
    slide_id: int
    table_name: str = MAIN_TABLE

    def __str__(self) -> str:
        if self.table_name == MAIN_TABLE:
            return f"slide {self.slide_id}"
        return f"slide {self.slide_id} / {self.table_name}"


# ---------------------------------------------------------------------------
# SlideData: the per-shape payload
# ---------------------------------------------------------------------------

@dataclass
class SlideData:
    """Tables, aggregate blocks, and freeform scalars owned by a slide.

    ``tables`` maps a table name to its Table; the table stored directly
    on the slide's data (``columns``/``rows`` at top level) is ``"main"``.
    ``aggregates`` maps a block name (``total``, ``lifetime``,
    ``quarterStats``) to a flat field->value dict. Everything else lives
    in ``extras`` untouched.
    """
    tables: dict[str, Table] = field(default_factory=dict)
    aggregates: dict[str, dict[str, Value]] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        for name, table in self.tables.items():
            if name == MAIN_TABLE:
                d.update(table.to_dict())
            else:
                d[name] = table.to_dict()
        for name, block in self.aggregates.items():
            d[name] = dict(block)
        for name, value in self.extras.items():
            d[name] = copy.deepcopy(value)
        return d


# ---------------------------------------------------------------------------
# Slide and Document
# ---------------------------------------------------------------------------

@dataclass
class Slide:
    """One panel in the deck, addressed by its stable ``id``."""
    id: int
    title: str
    shape: SlideShape
    data: SlideData
    more_details_url: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.shape.value,
            "moreDetailsUrl": self.more_details_url,
            "data": self.data.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Slide":
        # Imported here: the registry itself builds on these models.
        from .registry import get_shape_spec

        shape = SlideShape(d["type"])
        spec = get_shape_spec(shape)
        return cls(
            id=int(d["id"]),
            title=d.get("title", ""),
            shape=shape,
            data=spec.data_from_dict(d.get("data") or {}),
            more_details_url=d.get("moreDetailsUrl", ""),
        )


@dataclass
class Document:
    """The whole deck: ordered slides plus the display sprint number."""
    slides: list[Slide] = field(default_factory=list)
    current_sprint: int = 0

    def get_slide(self, slide_id: int) -> Slide | None:
        for s in self.slides:
            if s.id == slide_id:
                return s
        return None

    def slide_ids(self) -> list[int]:
        return [s.id for s in self.slides]

    def replace_slide(self, slide: Slide) -> "Document":
        """Return a new Document with *slide* swapped in by id.

        Untouched slides are shared with the original Document.
        """
        slides = [slide if s.id == slide.id else s for s in self.slides]
        return replace(self, slides=slides)

    def to_dict(self) -> dict:
        return {
            "currentSprint": self.current_sprint,
            "slides": [s.to_dict() for s in self.slides],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Document":
        return cls(
            slides=[Slide.from_dict(s) for s in d.get("slides", [])],
            current_sprint=int(d.get("currentSprint") or 0),
        )
