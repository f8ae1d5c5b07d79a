"""Deck loader — JSON export/import and YAML deck files.

The JSON export is the deck's interchange format::

    {"version": "1.0", "exportDate": "<ISO-8601>",
     "currentSprint": 265, "slides": [...]}

YAML files carry the same structure and exist so decks can be reviewed,
version-controlled, and edited by hand.
"""

import datetime
import json
from pathlib import Path

import yaml

from src.processor.errors import ValidationRejection

from .models import Document

EXPORT_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Export format
# ---------------------------------------------------------------------------

def export_document(document: Document, now: datetime.datetime | None = None) -> dict:
    """Serialize *document* into the versioned export structure."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    data = document.to_dict()
    return {
        "version": EXPORT_VERSION,
        "exportDate": now.isoformat(),
        "currentSprint": data["currentSprint"],
        "slides": data["slides"],
    }


def import_document(data) -> Document:
    """Build a Document from an export structure.

    Only ``version`` and a ``slides`` list are required; any other problem
    with the content rejects the import as a whole.

    Raises:
        ValidationRejection: If the structure is not a valid export.
    """
    if not isinstance(data, dict) or not data.get("version") \
            or not isinstance(data.get("slides"), list):
        raise ValidationRejection(
            "Invalid import file format. Please use a valid export file. "
            "Required: version, slides (array)")
    try:
        document = Document.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ValidationRejection(f"Error reading import file: {exc}") from exc

    ids = document.slide_ids()
    if len(ids) != len(set(ids)):
        raise ValidationRejection("Error reading import file: duplicate slide ids")
    return document


def export_filename(document: Document, today: datetime.date | None = None) -> str:
    today = today or datetime.date.today()
    return f"sprint-dashboard-export-{document.current_sprint}-{today.isoformat()}.json"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def save_json(document: Document, path: str | Path) -> None:
    """Write *document* as a JSON export file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(export_document(document), f, indent=2, ensure_ascii=False)


def load_json(path: str | Path) -> Document:
    """Read a JSON export file.

    Raises:
        ValidationRejection: If the file is not JSON or not a valid export.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationRejection(f"Error reading import file: {exc}") from exc
    return import_document(data)


def save_deck(document: Document, path: str | Path) -> None:
    """Write *document* to YAML or JSON depending on the file extension."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        save_json(document, path)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(export_document(document), f, default_flow_style=False,
                  sort_keys=False, allow_unicode=True, width=120)


def load_deck(path: str | Path) -> Document:
    """Read a deck from YAML or JSON depending on the file extension."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        return load_json(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ValidationRejection(f"Error reading deck file: {exc}") from exc
    return import_document(data)
