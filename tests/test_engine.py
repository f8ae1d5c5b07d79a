"""Tests for the import engine (paste, stats, bulk files, DeckStore)."""

import json

import pytest

from src.processor.editing import update_slide_title
from src.processor.engine import (
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
from src.processor.errors import ParseFailure, ValidationRejection
from src.processor.ingestion import read_bulk_csv
from src.schema.loader import export_document
from src.schema.sprint_deck import build_sprint_deck


@pytest.fixture
def deck():
    return build_sprint_deck()


TICKET_HEADER = (
    "SlideID,TableName,Sprint,Total Tickets Solved,Avg First Response Time,"
    "Avg Full Resolution time,CSAT Score,Pre-sales Tickets,"
    "Converted Tickets (Unique customers),Total Paid subscriptions (websites),"
    "Agency Tickets,Bad Rating"
)


# ---------------------------------------------------------------------------
# Pasted tables
# ---------------------------------------------------------------------------

class TestImportPasteTable:
    def test_content_publishing(self, deck):
        text = "sprint\tblog\tinfographics\tkb\tvideos\n267\t3\t1\t2\t0"
        result = import_paste(deck, ImportRequest(slide_id=2, text=text))
        rows = result.document.get_slide(2).data.tables["main"].rows
        assert rows[-1] == {"sprint": 267, "blog": 3, "infographics": 1,
                            "kb": 2, "videos": 0}
        assert len(rows) <= 5
        assert result.kind == "table"
        assert result.rows_imported == 1
        assert result.slides_updated == [2]

    def test_synonym_headers(self, deck):
        text = ("Sprint #\tBlog Posts\tKB Articles\tYouTube\n"
                "Sprint 266\t4\t1,200\t5")
        result = import_paste(deck, ImportRequest(slide_id=2, text=text))
        row = result.document.get_slide(2).data.tables["main"].rows[0]
        assert row["sprint"] == 266
        assert row["kb"] == 1200
        assert row["videos"] == 5

    def test_input_document_untouched(self, deck):
        before = export_document(deck)
        text = "sprint\tblog\tkb\n267\t3\t2"
        import_paste(deck, ImportRequest(slide_id=2, text=text))
        assert export_document(deck)["slides"] == before["slides"]

    def test_other_slides_shared(self, deck):
        text = "sprint\tblog\tkb\n267\t3\t2"
        result = import_paste(deck, ImportRequest(slide_id=2, text=text))
        assert result.document.get_slide(3) is deck.get_slide(3)
        assert result.document.get_slide(2) is not deck.get_slide(2)

    def test_recalculates_derived_totals(self, deck):
        text = "sprint\tsignups\tpaid\n263\t5\t8\n264\t6\t7"
        result = import_paste(deck, ImportRequest(slide_id=13, text=text))
        assert result.document.get_slide(13).data.aggregates["total"] == \
            {"signups": 11, "paid": 15}

    def test_explicit_total_row_wins(self, deck):
        text = "sprint\tsignups\tpaid\n263\t5\t8\nTotal\t50\t40"
        result = import_paste(deck, ImportRequest(slide_id=13, text=text))
        assert result.document.get_slide(13).data.aggregates["total"] == \
            {"signups": 50, "paid": 40}

    def test_strict_table_match(self, deck):
        text = "sprint\tcsat\tnotes\n264\t90\tok"
        with pytest.raises(ParseFailure):
            import_paste(deck, ImportRequest(slide_id=7, text=text,
                                             strict_table_match=True))
        result = import_paste(deck, ImportRequest(slide_id=7, text=text))
        assert result.warnings

    def test_textarea_rejects_table(self, deck):
        text = "a\tb\tc\n1\t2\t3"
        with pytest.raises(ParseFailure):
            import_paste(deck, ImportRequest(slide_id=10, text=text))


class TestImportPasteErrors:
    def test_empty_text(self, deck):
        with pytest.raises(ValidationRejection):
            import_paste(deck, ImportRequest(slide_id=2, text="  \n "))

    def test_unknown_slide(self, deck):
        with pytest.raises(ValidationRejection, match="Slide 6 not found"):
            import_paste(deck, ImportRequest(slide_id=6, text="1\n2"))

    def test_unparseable(self, deck):
        with pytest.raises(ParseFailure, match="Unable to parse data"):
            import_paste(deck, ImportRequest(slide_id=2, text="hello world"))

    def test_nothing_matched(self, deck):
        text = "sprint\tsignups\tpaid\n\t\t"
        with pytest.raises(ParseFailure):
            import_paste(deck, ImportRequest(slide_id=13, text=text))


# ---------------------------------------------------------------------------
# Stats text
# ---------------------------------------------------------------------------

class TestImportStats:
    def test_ordered_quarter_stats(self, deck):
        result = import_paste(deck, ImportRequest(slide_id=9, text="10\n2\n1\n50\n3.5"))
        assert result.kind == "stats"
        assert result.stats_updated == 5
        assert result.document.get_slide(9).data.aggregates["quarterStats"] == {
            "accountsCreated": 10, "cardAdded": 2, "bannerActive": 1,
            "payingUsers": 50, "roas": 3.5,
        }

    def test_key_value_lifetime(self, deck):
        text = "Advocates: 120\nPaid: 33"
        result = import_paste(deck, ImportRequest(slide_id=15, text=text))
        assert result.document.get_slide(15).data.aggregates["lifetime"] == \
            {"advocates": 120, "paid": 33}

    def test_stats_do_not_recalculate(self, deck):
        result = import_paste(deck, ImportRequest(slide_id=13, text="Paid: 99"))
        assert result.document.get_slide(13).data.aggregates["total"]["paid"] == 99

    def test_unknown_keys_warn(self, deck):
        result = import_stats(deck, 15, {"advocates": 1, "bogus": 2})
        assert result.stats_updated == 1
        assert result.warnings

    def test_slide_without_stats_block(self, deck):
        with pytest.raises(ParseFailure):
            import_stats(deck, 2, {"blog": 1})


class TestImportTableRows:
    def test_direct_rows(self, deck):
        result = import_table_rows(
            deck, 5, ["Sprint", "Total Paid", "Direct Plans"],
            [{"Sprint": "266", "Total Paid": "12", "Direct Plans": "4"}])
        assert result.document.get_slide(5).data.tables["main"].rows == \
            [{"sprint": 266, "total": 12, "direct": 4}]


# ---------------------------------------------------------------------------
# Bulk rows
# ---------------------------------------------------------------------------

class TestApplyBulkRows:
    def test_tickets_row_leaves_live_chat(self, deck):
        text = TICKET_HEADER + "\n7,tickets,264,375,2h 15m,1d 2h,92%,40,12,30,5,-\n"
        result = apply_bulk_rows(deck, read_bulk_csv(text))
        slide = result.document.get_slide(7)
        row = next(r for r in slide.data.tables["tickets"].rows if r["sprint"] == 264)
        assert row["totalTickets"] == 375
        assert row["avgFirstResponse"] == "2h 15m"
        assert row["csat"] == 92
        assert slide.data.tables["liveChat"] == deck.get_slide(7).data.tables["liveChat"]
        assert result.slides_updated == [7]
        assert result.rows_imported == 1

    def test_new_sprint_appended_and_window_applied(self, deck):
        rows = [{"SlideID": "5", "Sprint": str(s), "Total Paid": "1"}
                for s in (266, 267, 268)]
        result = apply_bulk_rows(deck, rows)
        sprints = [r["sprint"] for r in result.document.get_slide(5).data.tables["main"].rows]
        assert sprints == [268, 267, 266, 265, 264]

    def test_update_in_place_keeps_other_cells(self, deck):
        rows = [{"SlideID": "5", "Sprint": "264", "Total Paid": "9"}]
        result = apply_bulk_rows(deck, rows)
        row = result.document.get_slide(5).data.tables["main"].rows[1]
        assert row == {"sprint": 264, "total": 9, "direct": 0}

    def test_header_match_is_exact(self, deck):
        rows = [{"SlideID": "5", "Sprint": "264", "total paid": "9"}]
        with pytest.raises(ParseFailure) as exc:
            apply_bulk_rows(deck, rows)
        assert any("no matching data" in w for w in exc.value.warnings)

    def test_skips_are_warnings(self, deck):
        rows = [
            {"SlideID": "", "Sprint": "264"},
            {"SlideID": "99", "Sprint": "264"},
            {"SlideID": "5", "Sprint": "abc"},
            {"SlideID": "7", "TableName": "nope", "Sprint": "264"},
            {"SlideID": "8", "TableName": "q3Performance", "Sprint": "264",
             "Target": "3"},
            {"SlideID": "5", "Sprint": "264", "Total Paid": "9"},
        ]
        result = apply_bulk_rows(deck, rows)
        assert len(result.warnings) == 5
        assert result.slides_updated == [5]

    def test_recalculates_touched_slides(self, deck):
        rows = [{"SlideID": "14", "Sprint": "263", "Paid Signups": "4"},
                {"SlideID": "14", "Sprint": "264", "Paid Signups": "6"}]
        result = apply_bulk_rows(deck, rows)
        assert result.document.get_slide(14).data.aggregates["total"]["paid"] == 10

    def test_nothing_applied(self, deck):
        with pytest.raises(ParseFailure, match="No data was imported"):
            apply_bulk_rows(deck, [{"SlideID": "99", "Sprint": "1"}])


class TestSampleBulkCsv:
    def test_template_round_trip_is_noop(self, deck):
        text = sample_bulk_csv(deck)
        result = apply_bulk_rows(deck, read_bulk_csv(text))
        assert export_document(result.document)["slides"] == \
            export_document(deck)["slides"]

    def test_header_and_guide(self, deck):
        text = sample_bulk_csv(deck)
        lines = text.splitlines()
        assert lines[0].startswith("SlideID,TableName,Sprint,")
        assert "Total Tickets Solved" in lines[0]
        assert "# Slide 7: Support data" in lines
        assert any(line.startswith("#   TableName: liveChat") for line in lines)

    def test_integers_not_floats(self, deck):
        text = sample_bulk_csv(deck, rows_per_table=1)
        assert "263.0" not in text
        assert "\n2,main,263," in text


# ---------------------------------------------------------------------------
# File upload dispatch
# ---------------------------------------------------------------------------

class TestImportFile:
    def test_json_replaces_document(self, deck, tmp_path):
        edited = update_slide_title(deck, 2, "Content")
        path = tmp_path / "export.json"
        path.write_text(json.dumps(export_document(edited)), encoding="utf-8")
        result = import_file(deck, path)
        assert result.kind == "document"
        assert result.document.get_slide(2).title == "Content"

    def test_csv(self, deck, tmp_path):
        path = tmp_path / "bulk.csv"
        path.write_text("SlideID,Sprint,Total Paid\n5,266,12\n", encoding="utf-8")
        result = import_file(deck, path)
        assert result.kind == "bulk"

    def test_unsupported(self, deck, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("x", encoding="utf-8")
        with pytest.raises(ValidationRejection):
            import_file(deck, path)

    @pytest.mark.parametrize("name, content", [
        ("export.json", b'{"slides": "\xff\xfe"}'),
        ("bulk.csv", b"SlideID,Sprint,Total Paid\n5,266,\xff\n"),
        ("bulk.xlsx", b"not a workbook"),
    ])
    def test_malformed_file_rejected(self, deck, tmp_path, name, content):
        path = tmp_path / name
        path.write_bytes(content)
        before = export_document(deck)["slides"]
        with pytest.raises(ValidationRejection):
            import_file(deck, path)
        assert export_document(deck)["slides"] == before


class TestImportResult:
    def test_summaries(self, deck):
        assert "3 row(s)" in ImportResult(deck, "table", rows_imported=3).summary()
        assert "2 stat(s)" in ImportResult(deck, "stats", stats_updated=2).summary()
        assert "17 slides" in ImportResult(deck, "document").summary()
        assert "across 1 slides" in ImportResult(
            deck, "bulk", rows_imported=1, slides_updated=[5]).summary()


# ---------------------------------------------------------------------------
# DeckStore
# ---------------------------------------------------------------------------

class TestDeckStore:
    def test_defaults_to_seed_deck(self):
        assert len(DeckStore().document.slides) == 17

    def test_apply_swaps_on_success(self, deck):
        store = DeckStore(deck)
        store.apply(import_paste, ImportRequest(slide_id=2, text="sprint\tblog\tkb\n267\t3\t2"))
        assert store.document is not deck
        assert store.document.get_slide(2).data.tables["main"].rows[0]["sprint"] == 267

    def test_apply_document_operation(self, deck):
        store = DeckStore(deck)
        store.apply(update_slide_title, 2, "New")
        assert store.document.get_slide(2).title == "New"

    def test_failure_keeps_document(self, deck):
        store = DeckStore(deck)
        with pytest.raises(ParseFailure):
            store.apply(import_paste, ImportRequest(slide_id=2, text="nonsense"))
        assert store.document is deck

    def test_bad_return_type(self, deck):
        store = DeckStore(deck)
        with pytest.raises(TypeError):
            store.apply(lambda document: None)
        assert store.document is deck
