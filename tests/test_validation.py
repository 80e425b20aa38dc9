"""Tests for batch item validation."""

from datetime import datetime, timedelta

from knowledge_engine import KnowledgeItem, validate_item, validate_items


class TestValidateItem:
    """Tests for single item validation."""

    def test_valid_item(self, pricing_item, now):
        """Test a complete item has no problems."""
        assert validate_item(pricing_item, now=now) == []

    def test_all_problems_are_reported(self, now):
        """Test every problem is listed, not just the first."""
        item = KnowledgeItem(id="", title="", content="  ", relevance_score=1.5, last_updated=now)

        errors = validate_item(item, now=now)

        assert errors == [
            "id is required",
            "title is required",
            "content is required",
            "relevance_score 1.5 is outside [0, 1]",
        ]

    def test_future_timestamp(self, now):
        """Test timestamps beyond the clock skew tolerance are rejected."""
        future = KnowledgeItem(id="f", title="T", content="C", last_updated=now + timedelta(hours=1))
        skewed = KnowledgeItem(id="s", title="T", content="C", last_updated=now + timedelta(minutes=2))

        assert len(validate_item(future, now=now)) == 1
        assert "in the future" in validate_item(future, now=now)[0]
        assert validate_item(skewed, now=now) == []

    def test_naive_timestamp(self, now):
        """Test naive timestamps are compared as UTC."""
        item = KnowledgeItem(id="n", title="T", content="C", last_updated=datetime(2030, 1, 1))

        assert validate_item(item, now=now) == [f"last_updated {item.last_updated.isoformat()} is in the future"]


class TestValidateItems:
    """Tests for batch validation."""

    def test_batch_keeps_valid_items(self, pricing_item, now):
        """Test invalid records are reported while valid ones pass through."""
        records = [
            pricing_item,
            {"id": "raw-1", "title": "Raw", "content": "Body", "last_updated": "2024-05-01T00:00:00+00:00"},
            {"id": "bad", "title": "No content"},
            KnowledgeItem(id="blank", title="", content="text", last_updated=now),
        ]

        report = validate_items(records, now=now)

        assert [item.id for item in report.valid_items] == ["pricing-1", "raw-1"]
        assert [error.item_id for error in report.errors] == ["bad", "blank"]
        assert report.errors[0].errors == ["content: Field required"]
        assert report.errors[1].errors == ["title is required"]
        assert not report.is_valid

    def test_missing_id_uses_position(self, now):
        """Test records without an id are identified by position."""
        report = validate_items([{"title": "T", "content": "C"}], now=now)

        assert report.errors[0].item_id == "<item 0>"

    def test_empty_batch(self):
        """Test an empty batch is valid."""
        report = validate_items([])

        assert report.is_valid
        assert report.valid_items == []
