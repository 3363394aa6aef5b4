"""
Tests for leftmost-prefix redundancy elimination.
"""

from index_advisor.models import IndexDef
from index_advisor.redundancy import (
    dedupe,
    find_subsumed,
    is_prefix,
    is_strict_prefix,
    prune_against_existing,
)


def idx(*columns, table="t"):
    return IndexDef(table, columns)


class TestPrefix:
    """Test the prefix relation."""

    def test_leading_prefix(self):
        """Test (A) and (A, B) are prefixes of (A, B, C)."""
        assert is_prefix(idx("a"), idx("a", "b", "c"))
        assert is_strict_prefix(idx("a", "b"), idx("a", "b", "c"))

    def test_not_a_prefix(self):
        """Test skipping a column or reordering breaks the relation."""
        assert not is_prefix(idx("a", "c"), idx("a", "b", "c"))
        assert not is_prefix(idx("b"), idx("a", "b"))

    def test_equal_keys(self):
        """Test an index is a prefix of itself but not a strict one."""
        assert is_prefix(idx("a", "b"), idx("a", "b"))
        assert not is_strict_prefix(idx("a", "b"), idx("a", "b"))

    def test_different_tables(self):
        """Test indexes on different tables never subsume each other."""
        assert not is_prefix(idx("a"), idx("a", "b", table="u"))


class TestDedupe:
    """Test candidate deduplication."""

    def test_prefix_chain_collapses(self):
        """Test (A), (A, B) and (A, B, C) collapse into (A, B, C)."""
        result = dedupe([idx("a"), idx("a", "b"), idx("a", "b", "c"), idx("a", "b", "c")])
        assert result == [idx("a", "b", "c")]

    def test_unrelated_indexes_kept(self):
        """Test indexes with different leading columns all survive, sorted by id."""
        result = dedupe([idx("b", "a"), idx("a", "c"), idx("a", "b")])
        assert [index.id for index in result] == ["t(a,b)", "t(a,c)", "t(b,a)"]

    def test_idempotent(self):
        """Test deduplicating twice changes nothing."""
        indexes = [idx("a"), idx("b"), idx("a", "b"), idx("b", "c"), idx("c"), idx("a", "b", table="u")]
        once = dedupe(indexes)
        assert dedupe(once) == once
        assert len(once) <= len(indexes)
        assert not find_subsumed(once)

    def test_empty(self):
        """Test an empty candidate list stays empty."""
        assert dedupe([]) == []


class TestExisting:
    """Test pruning against existing indexes."""

    def test_candidate_already_provided(self):
        """Test a candidate equal to or a prefix of an existing index is dropped."""
        existing = [idx("a", "b")]
        assert prune_against_existing([idx("a"), idx("a", "b")], existing) == []

    def test_longer_candidate_kept(self):
        """Test a candidate extending an existing index is kept."""
        existing = [idx("a", "b")]
        assert prune_against_existing([idx("a", "b", "c")], existing) == [idx("a", "b", "c")]

    def test_find_subsumed(self):
        """Test subsumed pairs are reported shorter-first."""
        pairs = find_subsumed([idx("a", "b", "c"), idx("a"), idx("b")])
        assert pairs == [(idx("a"), idx("a", "b", "c"))]
