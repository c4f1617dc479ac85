"""Tests for attribute diffing."""

from converge.model.expressions import UNKNOWN
from converge.planner.diff import creation_changes, diff_attributes


class TestDiffAttributes:
    """Test top-level attribute comparison."""

    def test_equal_attributes_have_no_changes(self):
        assert diff_attributes({"a": 1, "b": [1, 2]}, {"a": 1, "b": [1, 2]}) == []

    def test_added_removed_and_changed(self):
        """Test additions, removals and modifications are all reported."""
        changes = diff_attributes({"a": 2, "c": "new"}, {"a": 1, "b": "old"})

        assert [(c.path, c.before, c.after) for c in changes] == [
            ("a", 1, 2),
            ("b", "old", None),
            ("c", None, "new"),
        ]

    def test_unknown_always_counts_as_change(self):
        """Test an unknown desired value is a change even if the stored value might match."""
        changes = diff_attributes({"vpc_id": UNKNOWN}, {"vpc_id": "vpc-1"})

        assert len(changes) == 1
        assert changes[0].known is False

    def test_nested_unknown(self):
        changes = diff_attributes({"ids": ["a", UNKNOWN]}, {"ids": ["a", "b"]})
        assert changes[0].known is False

    def test_force_new_and_ignore(self):
        """Test replacement triggers are flagged and ignored keys skipped."""
        changes = diff_attributes(
            {"cidr_block": "10.1.0.0/16", "tags": {"env": "prod"}},
            {"cidr_block": "10.0.0.0/16", "tags": {"env": "dev"}},
            force_new=["cidr_block"],
            ignore=["tags"],
        )

        assert [(c.path, c.forces_replacement) for c in changes] == [("cidr_block", True)]


class TestCreationChanges:
    def test_every_attribute_listed(self):
        changes = creation_changes({"b": UNKNOWN, "a": "x"})
        assert [(c.path, c.after, c.known) for c in changes] == [("a", "x", True), ("b", None, False)]
