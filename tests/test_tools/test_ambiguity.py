"""
Layer 1: Ambiguity Helper Tests
"""
import pytest

from elicit.helpers.ambiguity import (
    detect_ambiguity,
    extract_ambiguous_parts,
    find_hedges,
    first_ambiguous_part,
)


class TestAmbiguity:
    """Tests for hedge detection and snippet extraction."""

    @pytest.mark.parametrize("text,expected", [
        ("maybe it could work", True),
        ("the system will use PostgreSQL", False),
        ("It DEPENDS on the tenant", True),
        ("In some cases we batch writes", True),
        ("Writes are batched every 5 seconds", False),
    ])
    def test_detect_ambiguity(self, text, expected):
        assert detect_ambiguity(text) is expected

    def test_find_hedges_in_pattern_order(self):
        assert find_hedges("Probably fine, maybe not") == ["maybe", "probably"]

    def test_extract_parts_windows_each_hedge(self):
        text = "The export job runs nightly but might be skipped when the queue is full"

        parts = extract_ambiguous_parts(text)

        assert parts == ["ob runs nightly but might be skipped when the"]

    def test_extract_parts_fallback(self):
        assert extract_ambiguous_parts("Use PostgreSQL 16") == ["your response"]

    def test_first_part_uses_earliest_hedge(self):
        text = "Probably weekly, maybe daily"

        assert first_ambiguous_part(text) == "Probably weekly, maybe daily"
        assert first_ambiguous_part("All settled") == "your response"
