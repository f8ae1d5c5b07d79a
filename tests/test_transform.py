"""Tests for the retention window and stats recalculation."""

import pytest

from src.processor.transform import (
    MAX_SPRINTS,
    column_totals,
    has_numeric_identity,
    is_special_row,
    recalculate_stats,
    retain_recent_sprints,
    sprint_number,
)
from src.schema.sprint_deck import build_sprint_deck


def _rows(*sprints):
    return [{"sprint": s, "value": i} for i, s in enumerate(sprints)]


@pytest.fixture
def deck():
    return build_sprint_deck()


# ---------------------------------------------------------------------------
# Row classification
# ---------------------------------------------------------------------------

class TestRowClassification:
    @pytest.mark.parametrize("label", ["Total", "QTD", "lifetime", "Q3 QTD", " total "])
    def test_special_rows(self, label):
        assert is_special_row({"sprint": label})

    @pytest.mark.parametrize("label", [263, "264", "Sprint 265", "", None])
    def test_non_special_rows(self, label):
        assert not is_special_row({"sprint": label})

    def test_sprint_number_prefix_parse(self):
        assert sprint_number({"sprint": "264b"}) == 264
        assert sprint_number({"sprint": 265}) == 265
        assert sprint_number({"sprint": "Sprint 264"}) == 0
        assert sprint_number({}) == 0

    def test_has_numeric_identity(self):
        assert has_numeric_identity({"sprint": 263})
        assert has_numeric_identity({"sprint": "264"})
        assert not has_numeric_identity({"sprint": "Sprint 264"})
        assert not has_numeric_identity({"sprint": ""})


# ---------------------------------------------------------------------------
# retain_recent_sprints
# ---------------------------------------------------------------------------

class TestRetainRecentSprints:
    def test_small_sets_unchanged(self):
        rows = _rows(263, 261, "QTD", 262)
        assert retain_recent_sprints(rows) is rows

    def test_cap_keeps_highest_five(self):
        rows = _rows(260, 265, 261, 264, 262, 263, 259)
        kept = retain_recent_sprints(rows)
        assert [r["sprint"] for r in kept] == [265, 264, 263, 262, 261]
        assert len(kept) == MAX_SPRINTS

    def test_special_rows_always_kept(self):
        rows = _rows(260, "Total", 261, 262, 263, 264, 265, "QTD")
        kept = retain_recent_sprints(rows)
        assert [r["sprint"] for r in kept] == [265, 264, 263, 262, 261, "Total", "QTD"]

    def test_special_rows_not_counted(self):
        rows = _rows("Total", "QTD", "Lifetime", 1, 2, 3)
        kept = retain_recent_sprints(rows)
        assert len([r for r in kept if not is_special_row(r)]) == 3
        assert len(kept) == 6

    def test_unparseable_sorts_last(self):
        rows = _rows("abc", 261, 262, 263, 264, 265)
        kept = retain_recent_sprints(rows)
        assert "abc" not in [r["sprint"] for r in kept]

    def test_idempotent(self):
        rows = _rows(260, "Total", 261, 262, 263, 264, 265, 266, "QTD")
        once = retain_recent_sprints(rows)
        assert retain_recent_sprints(once) == once

    def test_custom_identity_and_limit(self):
        rows = [{"week": w} for w in (1, 2, 3, 4)]
        kept = retain_recent_sprints(rows, identity_key="week", limit=2)
        assert [r["week"] for r in kept] == [4, 3]


# ---------------------------------------------------------------------------
# column_totals
# ---------------------------------------------------------------------------

class TestColumnTotals:
    def test_integral_sum_is_int(self):
        totals = column_totals([{"a": 1}, {"a": 2}], ["a"])
        assert totals == {"a": 3}
        assert isinstance(totals["a"], int)

    def test_float_sum(self):
        assert column_totals([{"a": 1.5}, {"a": 2}], ["a"]) == {"a": 3.5}

    def test_text_and_missing_count_as_zero(self):
        rows = [{"a": "2h"}, {"a": 4}, {}, {"a": ""}, {"a": None}]
        assert column_totals(rows, ["a"]) == {"a": 4}

    def test_no_rows(self):
        assert column_totals([], ["a", "b"]) == {"a": 0, "b": 0}

    def test_no_keys(self):
        assert column_totals([{"a": 1}], []) == {}


# ---------------------------------------------------------------------------
# recalculate_stats
# ---------------------------------------------------------------------------

class TestRecalculateStats:
    def test_with_target_total(self, deck):
        slide = deck.get_slide(13)
        slide.data.tables["main"].rows = [
            {"sprint": 263, "paid": 8},
            {"sprint": 264, "paid": 7},
        ]
        slide.data.aggregates["total"]["paid"] = 999
        out = recalculate_stats(slide)
        assert out.data.aggregates["total"]["paid"] == 15
        assert out.data.aggregates["total"]["signups"] == 0

    def test_input_slide_not_modified(self, deck):
        slide = deck.get_slide(13)
        slide.data.tables["main"].rows[0]["paid"] = 5
        recalculate_stats(slide)
        assert slide.data.aggregates["total"]["paid"] == 0

    def test_special_rows_excluded(self, deck):
        slide = deck.get_slide(14)
        slide.data.tables["main"].rows = [
            {"sprint": 263, "newAff": 2, "trials": 1, "paid": 1},
            {"sprint": "QTD", "newAff": 100, "trials": 100, "paid": 100},
        ]
        out = recalculate_stats(slide)
        assert out.data.aggregates["total"] == {"newAff": 2, "trials": 1, "paid": 1}

    def test_unmatched_fields_untouched(self, deck):
        slide = deck.get_slide(9)
        slide.data.aggregates["quarterStats"]["roas"] = 3.5
        slide.data.aggregates["quarterStats"]["cardAdded"] = 7
        slide.data.tables["main"].rows[0]["payingUsers"] = 12
        out = recalculate_stats(slide)
        stats = out.data.aggregates["quarterStats"]
        assert stats["payingUsers"] == 12
        assert stats["roas"] == 3.5
        assert stats["cardAdded"] == 7

    def test_lifetime_is_not_derived(self, deck):
        slide = deck.get_slide(15)
        slide.data.aggregates["lifetime"]["advocates"] = 40
        slide.data.tables["main"].rows[0]["advocates"] = 3
        out = recalculate_stats(slide)
        assert out.data.aggregates["lifetime"]["advocates"] == 40
        assert out.data.aggregates["total"]["advocates"] == 3

    def test_skip(self, deck):
        slide = deck.get_slide(13)
        slide.data.aggregates["total"]["paid"] = 42
        out = recalculate_stats(slide, skip=("total",))
        assert out.data.aggregates["total"]["paid"] == 42

    def test_slide_without_aggregates(self, deck):
        slide = deck.get_slide(2)
        out = recalculate_stats(slide)
        assert out.data.tables == slide.data.tables
        assert out is not slide

    def test_rerun_is_stable(self, deck):
        slide = deck.get_slide(16)
        slide.data.tables["main"].rows[1]["installs"] = 9
        once = recalculate_stats(slide)
        twice = recalculate_stats(once)
        assert once.data.aggregates == twice.data.aggregates
