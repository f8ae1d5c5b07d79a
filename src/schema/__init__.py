"""Deck schema package — typed models for the sprint review deck.

- models.py: Core dataclasses (Document, Slide, SlideData, Table, Column)
- registry.py: Per-shape table/aggregate descriptions
- sprint_deck.py: The 17-slide seed deck
- loader.py: JSON export/import and YAML deck files
"""

from .models import (
    IDENTITY_KEYS,
    MAIN_TABLE,
    Column,
    Document,
    Slide,
    SlideData,
    SlideShape,
    Table,
    TableRef,
)
from .registry import (
    SHAPE_REGISTRY,
    AggregateSpec,
    ShapeSpec,
    TableSpec,
    get_shape_spec,
    stats_keys,
)
from .sprint_deck import SEED_SPRINTS, build_sprint_deck
from .loader import (
    EXPORT_VERSION,
    export_document,
    export_filename,
    import_document,
    load_deck,
    load_json,
    save_deck,
    save_json,
)

__all__ = [
    # Models
    "IDENTITY_KEYS",
    "MAIN_TABLE",
    "Column",
    "Document",
    "Slide",
    "SlideData",
    "SlideShape",
    "Table",
    "TableRef",
    # Registry
    "SHAPE_REGISTRY",
    "AggregateSpec",
    "ShapeSpec",
    "TableSpec",
    "get_shape_spec",
    "stats_keys",
    # Seed deck
    "SEED_SPRINTS",
    "build_sprint_deck",
    # Loader
    "EXPORT_VERSION",
    "export_document",
    "export_filename",
    "import_document",
    "load_deck",
    "load_json",
    "save_deck",
    "save_json",
]
