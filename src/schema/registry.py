"""Slide schema registry — the fixed catalog of slide shapes.

Each shape declares which nested tables it owns (and how incoming headers
pick between them), which aggregate blocks sit beside those tables, which
block receives key/value stats text, and which freeform series it keeps.
The per-shape routing rules themselves live in
:mod:`src.processor.reconcile`; this module only describes structure.
"""

from dataclasses import dataclass, field

from .models import (
    MAIN_TABLE,
    Column,
    SlideData,
    SlideShape,
    Table,
)


# ---------------------------------------------------------------------------
# Shape descriptions
# ---------------------------------------------------------------------------

@dataclass
class TableSpec:
    """A table slot on a shape."""
    name: str
    identity_key: str | None = "sprint"
    # Normalized header names that identify this table in a pasted block.
    signature: tuple[str, ...] = ()
    # Used when serialized data carries rows but no columns.
    default_columns: tuple[Column, ...] = ()


@dataclass
class AggregateSpec:
    """A flat block of totals stored beside a table."""
    name: str
    # Lower-cased identity values that route an imported row to this block;
    # "" stands for a row with no identity value at all.
    selectors: tuple[str, ...] = ()
    # Recomputed by summing the sprint table's matching columns.
    derived: bool = False
    source_table: str = MAIN_TABLE


@dataclass
class ShapeSpec:
    """Structural description of one slide shape."""
    shape: SlideShape
    tables: list[TableSpec] = field(default_factory=list)
    aggregates: list[AggregateSpec] = field(default_factory=list)
    stats_block: str | None = None
    # Non-table record lists kept in extras, keyed by list name -> fields.
    series: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    @property
    def primary_table(self) -> str | None:
        return self.tables[0].name if self.tables else None

    @property
    def accepts_rows(self) -> bool:
        return bool(self.tables or self.series)

    def get_aggregate_spec(self, name: str) -> AggregateSpec | None:
        for a in self.aggregates:
            if a.name == name:
                return a
        return None

    def data_from_dict(self, d: dict) -> SlideData:
        """Split a serialized ``data`` object into tables/aggregates/extras."""
        data = SlideData()
        consumed: set[str] = set()

        for tspec in self.tables:
            if tspec.name == MAIN_TABLE:
                raw = {"columns": d.get("columns", []), "rows": d.get("rows", [])}
                consumed.update(("columns", "rows"))
            else:
                raw = d.get(tspec.name) or {}
                consumed.add(tspec.name)
            table = Table.from_dict(raw)
            if not table.columns and tspec.default_columns:
                table.columns = [Column(c.key, c.header, c.locked)
                                 for c in tspec.default_columns]
            data.tables[tspec.name] = table

        for aspec in self.aggregates:
            block = d.get(aspec.name)
            if isinstance(block, dict):
                data.aggregates[aspec.name] = dict(block)
                consumed.add(aspec.name)

        for key, value in d.items():
            if key not in consumed:
                data.extras[key] = value

        return data


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

_SUBSCRIPTION_COLUMNS = (
    Column("channel", "Channel"),
    Column("totalTarget", "Total Target"),
    Column("targetAsOnDate", "Target As On Date"),
    Column("actual", "Actual"),
    Column("percentage", "Percentage"),
)

SHAPE_REGISTRY: dict[SlideShape, ShapeSpec] = {
    SlideShape.COMPARISON: ShapeSpec(
        shape=SlideShape.COMPARISON,
        series={
            "sprints": ("sprintNumber", "paidUsers", "totalPaidQTD"),
            "quarters": ("quarter", "total", "average"),
        },
    ),
    SlideShape.RANKINGS: ShapeSpec(
        shape=SlideShape.RANKINGS,
        tables=[TableSpec("positionChanges")],
    ),
    SlideShape.TABLE: ShapeSpec(
        shape=SlideShape.TABLE,
        tables=[TableSpec(MAIN_TABLE)],
    ),
    SlideShape.PLUGIN_RANKING: ShapeSpec(
        shape=SlideShape.PLUGIN_RANKING,
        tables=[TableSpec(MAIN_TABLE)],
    ),
    SlideShape.SUPPORT_DATA: ShapeSpec(
        shape=SlideShape.SUPPORT_DATA,
        tables=[
            TableSpec("tickets",
                      signature=("totaltickets", "totalticketssolved")),
            TableSpec("liveChat",
                      signature=("conversations", "conversationsassigned")),
        ],
    ),
    SlideShape.AGENCY_LEADS: ShapeSpec(
        shape=SlideShape.AGENCY_LEADS,
        tables=[
            TableSpec("leadsConversion", identity_key="metrics",
                      signature=("metrics", "metric")),
            TableSpec("q3Performance", identity_key="quarter",
                      signature=("quarter", "q3performance")),
        ],
    ),
    SlideShape.QUARTER_STATS: ShapeSpec(
        shape=SlideShape.QUARTER_STATS,
        tables=[TableSpec(MAIN_TABLE)],
        aggregates=[
            AggregateSpec("quarterStats",
                          selectors=("", "quarter stats", "qtd", "total"),
                          derived=True),
        ],
        stats_block="quarterStats",
    ),
    SlideShape.TEXTAREA: ShapeSpec(shape=SlideShape.TEXTAREA),
    SlideShape.WITH_TARGET: ShapeSpec(
        shape=SlideShape.WITH_TARGET,
        tables=[TableSpec(MAIN_TABLE)],
        aggregates=[
            AggregateSpec("total", selectors=("total", "qtd"), derived=True),
        ],
        stats_block="total",
    ),
    SlideShape.REFERRAL: ShapeSpec(
        shape=SlideShape.REFERRAL,
        tables=[TableSpec(MAIN_TABLE)],
        aggregates=[
            AggregateSpec("lifetime", selectors=("lifetime",)),
            AggregateSpec("total", derived=True),
        ],
        stats_block="lifetime",
    ),
    SlideShape.WIX_APP: ShapeSpec(
        shape=SlideShape.WIX_APP,
        tables=[TableSpec(MAIN_TABLE)],
        aggregates=[
            AggregateSpec("lifetime", selectors=("lifetime",)),
            AggregateSpec("total", selectors=("total", "qtd"), derived=True),
        ],
        stats_block="lifetime",
    ),
    SlideShape.SUBSCRIPTIONS: ShapeSpec(
        shape=SlideShape.SUBSCRIPTIONS,
        tables=[TableSpec(MAIN_TABLE, identity_key=None,
                          default_columns=_SUBSCRIPTION_COLUMNS)],
    ),
}


def get_shape_spec(shape: SlideShape | str) -> ShapeSpec:
    """Look up the spec for *shape* (enum member or wire tag).

    Raises:
        ValueError: If the shape tag is not recognized.
    """
    if not isinstance(shape, SlideShape):
        try:
            shape = SlideShape(shape)
        except ValueError:
            raise ValueError(
                f"Unknown slide shape '{shape}'. "
                f"Valid shapes: {', '.join(sorted(s.value for s in SlideShape))}"
            ) from None
    return SHAPE_REGISTRY[shape]


def stats_keys(slide) -> list[str]:
    """Expected field keys for stats-text import on *slide*, in block order."""
    spec = get_shape_spec(slide.shape)
    if not spec.stats_block:
        return []
    return list(slide.data.aggregates.get(spec.stats_block, {}))
