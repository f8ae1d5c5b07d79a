"""Tests for JSON export/import and YAML deck files."""

import datetime
import json

import pytest
import yaml

from src.processor.editing import set_current_sprint, update_cell
from src.processor.errors import ValidationRejection
from src.schema.loader import (
    EXPORT_VERSION,
    export_document,
    export_filename,
    import_document,
    load_deck,
    load_json,
    save_deck,
    save_json,
)
from src.schema.models import TableRef
from src.schema.sprint_deck import build_sprint_deck


@pytest.fixture
def deck():
    return build_sprint_deck()


class TestExportDocument:
    def test_top_level_fields(self, deck):
        now = datetime.datetime(2026, 10, 17, 9, 30, tzinfo=datetime.timezone.utc)
        data = export_document(set_current_sprint(deck, 266), now=now)
        assert data["version"] == EXPORT_VERSION == "1.0"
        assert data["exportDate"] == "2026-10-17T09:30:00+00:00"
        assert data["currentSprint"] == 266
        assert len(data["slides"]) == 17

    def test_slide_wire_layout(self, deck):
        slides = {s["id"]: s for s in export_document(deck)["slides"]}
        support = slides[7]
        assert support["type"] == "supportData"
        assert "moreDetailsUrl" in support
        assert set(support["data"]) == {"tickets", "liveChat"}

        plain = slides[2]["data"]
        assert [c["key"] for c in plain["columns"]] == \
            ["sprint", "blog", "infographics", "kb", "videos"]
        assert plain["columns"][0]["locked"] is True

        assert slides[13]["data"]["total"] == {"signups": 0, "paid": 0}
        assert slides[13]["data"]["target"] == 27

    def test_json_serialisable(self, deck):
        json.dumps(export_document(deck))


class TestImportDocument:
    def test_round_trip(self, deck):
        edited = update_cell(deck, TableRef(7, "tickets"), 1, "avgFirstResponse", "2h 15m")
        restored = import_document(export_document(edited))
        assert export_document(restored)["slides"] == export_document(edited)["slides"]
        assert restored.get_slide(7).data.tables["tickets"].rows[1]["avgFirstResponse"] \
            == "2h 15m"

    def test_missing_version(self, deck):
        data = export_document(deck)
        del data["version"]
        with pytest.raises(ValidationRejection, match="Invalid import file format"):
            import_document(data)

    def test_slides_not_list(self):
        with pytest.raises(ValidationRejection):
            import_document({"version": "1.0", "slides": {}})

    def test_not_a_dict(self):
        with pytest.raises(ValidationRejection):
            import_document([1, 2])

    def test_unknown_shape_rejected(self):
        data = {"version": "1.0", "slides": [{"id": 1, "type": "pie", "data": {}}]}
        with pytest.raises(ValidationRejection, match="Error reading import file"):
            import_document(data)

    def test_duplicate_ids_rejected(self, deck):
        data = export_document(deck)
        data["slides"].append(data["slides"][0])
        with pytest.raises(ValidationRejection, match="duplicate"):
            import_document(data)

    def test_minimal_file(self):
        doc = import_document({"version": "1.0", "slides": []})
        assert doc.slides == []
        assert doc.current_sprint == 0


class TestExportFilename:
    def test_name(self, deck):
        name = export_filename(set_current_sprint(deck, 266),
                               today=datetime.date(2026, 10, 17))
        assert name == "sprint-dashboard-export-266-2026-10-17.json"


class TestFiles:
    def test_json_round_trip(self, deck, tmp_path):
        path = tmp_path / "out" / "deck.json"
        save_json(deck, path)
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == "1.0"
        assert export_document(load_json(path))["slides"] == export_document(deck)["slides"]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationRejection):
            load_json(path)

    def test_yaml_round_trip(self, deck, tmp_path):
        path = tmp_path / "deck.yaml"
        save_deck(deck, path)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["slides"][0]["type"] == "comparison"
        assert export_document(load_deck(path))["slides"] == export_document(deck)["slides"]

    def test_deck_json_by_extension(self, deck, tmp_path):
        path = tmp_path / "deck.JSON"
        save_deck(deck, path)
        json.loads(path.read_text(encoding="utf-8"))
        assert len(load_deck(path).slides) == 17

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("slides: [unclosed", encoding="utf-8")
        with pytest.raises(ValidationRejection):
            load_deck(path)
