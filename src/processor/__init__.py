"""Data processor module for the sprint deck."""

from .errors import (
    DeckError,
    NetworkFailure,
    ParseFailure,
    ValidationRejection,
)
from .ingestion import (
    BULK_SOURCE_TYPES,
    clean_columns,
    coerce_value,
    normalize_key,
    parse_number,
    parse_pasted_text,
    read_bulk_csv,
    read_bulk_excel,
    read_bulk_file,
)
from .mapper import (
    FIELD_SYNONYMS,
    HeaderResolver,
    extract_sprint_number,
    map_row,
    map_rows,
)
from .transform import (
    MAX_SPRINTS,
    column_totals,
    recalculate_stats,
    retain_recent_sprints,
)
from .reconcile import ReconcileOutcome, reconcile
from .engine import (
    DeckStore,
    ImportRequest,
    ImportResult,
    apply_bulk_rows,
    import_file,
    import_paste,
    import_stats,
    import_table_rows,
    sample_bulk_csv,
)
from .ocr import OCRClient, OCRConfig, import_screenshot
