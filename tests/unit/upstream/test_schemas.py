# tests/unit/upstream/test_schemas.py
"""Tests for upstream/schemas.py record normalization."""

from __future__ import annotations

from backend.app.upstream.schemas import (
    ClassificationTerm,
    ContentItem,
    Page,
    ReviewRecord,
    parse_records,
)


class TestContentItem:
    def test_rendered_fields_cleaned(self):
        record = ContentItem.from_upstream(
            {
                "id": 3,
                "slug": "banff",
                "title": {"rendered": "Banff &#038; <em>Jasper</em>"},
                "excerpt": {"rendered": "<p>Lakes &amp; peaks</p>"},
                "tour-destination": [5, "9", "bad"],
                "tour_meta": {"duration_days": 6},
            }
        )
        assert record.title == "Banff & Jasper"
        assert record.excerpt == "Lakes & peaks"
        assert record.classifications["tour-destination"] == [5, 9]
        assert record.meta["duration_days"] == 6

    def test_missing_id_rejected(self):
        assert ContentItem.from_upstream({"slug": "x"}) is None
        assert ContentItem.from_upstream("not a dict") is None


class TestClassificationTerm:
    def test_parent_and_count(self):
        record = ClassificationTerm.from_upstream(
            {"id": 4, "slug": "banff", "name": "Banff", "parent": 2, "count": "7"}
        )
        assert record.parent_id == 2 and not record.is_root
        assert record.count == 7

    def test_slug_required(self):
        assert ClassificationTerm.from_upstream({"id": 4}) is None


class TestReviewRecord:
    def test_out_of_range_rating_becomes_zero(self):
        assert ReviewRecord.from_upstream({"rating": 9, "text": "x"}).rating == 0
        assert ReviewRecord.from_upstream({"rating": "n/a"}).rating == 0

    def test_missing_fields_are_empty(self):
        record = ReviewRecord.from_upstream({})
        assert record.text == "" and record.time == 0 and record.images == []


class TestParseRecords:
    def test_malformed_entries_skipped(self):
        records = parse_records([{"id": 1}, None, {"id": "x"}, {"id": 2}], ContentItem)
        assert [r.id for r in records] == [1, 2]

    def test_non_list_payload(self):
        assert parse_records({"id": 1}, ContentItem) == []


class TestPage:
    def test_empty_page_is_well_typed(self):
        page = Page[ContentItem].empty(3)
        assert page.items == [] and page.total == 0 and page.total_pages == 0
        assert page.page == 3
