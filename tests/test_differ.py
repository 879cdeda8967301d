"""
Tests for snapshot diffing.
"""

from src.polling.differ import diff, rows_equal


ROW_A = {"id": 1, "name": "a"}
ROW_B = {"id": 2, "name": "b"}


class TestChanged:
    """Change detection tests."""

    def test_identical_sequences_are_unchanged(self):
        result = diff([ROW_A, ROW_B], [dict(ROW_A), dict(ROW_B)])
        assert result.changed is False
        assert result.new_values == []

    def test_column_order_is_ignored(self):
        reordered = {"name": "a", "id": 1}
        assert diff([ROW_A], [reordered]).changed is False

    def test_row_order_matters(self):
        result = diff([ROW_A, ROW_B], [ROW_B, ROW_A])
        assert result.changed is True
        assert result.new_values == []

    def test_duplicates_count_for_equality(self):
        assert diff([ROW_A], [ROW_A, ROW_A]).changed is True

    def test_empty_to_empty_is_unchanged(self):
        assert diff([], []).changed is False

    def test_rows_equal_length_mismatch(self):
        assert rows_equal([ROW_A], []) is False


class TestNewValues:
    """New-values exclusion tests."""

    def test_first_fetch_everything_is_new(self):
        result = diff([], [ROW_A, ROW_B])
        assert result.changed is True
        assert result.new_values == [ROW_A, ROW_B]

    def test_only_unseen_rows_are_new(self):
        result = diff([ROW_A], [ROW_A, ROW_B])
        assert result.new_values == [ROW_B]

    def test_one_previous_copy_excludes_all_current_copies(self):
        result = diff([ROW_A], [ROW_A, ROW_A, ROW_B])
        assert result.new_values == [ROW_B]

    def test_row_in_both_never_new(self):
        previous = [ROW_A, ROW_A, ROW_B]
        current = [ROW_B, ROW_A, {"id": 3, "name": "c"}, ROW_A]
        result = diff(previous, current)
        assert ROW_A not in result.new_values
        assert ROW_B not in result.new_values
        assert result.new_values == [{"id": 3, "name": "c"}]

    def test_new_duplicates_are_kept(self):
        row_c = {"id": 3, "name": "c"}
        result = diff([ROW_A], [row_c, row_c])
        assert result.new_values == [row_c, row_c]

    def test_updated_row_is_new(self):
        updated = {"id": 1, "name": "z"}
        result = diff([ROW_A], [updated])
        assert result.new_values == [updated]

    def test_unhashable_values_fall_back_to_equality(self):
        previous = [{"id": 1, "tags": ["x"]}]
        current = [{"id": 1, "tags": ["x"]}, {"id": 2, "tags": ["y"]}]
        result = diff(previous, current)
        assert result.changed is True
        assert result.new_values == [{"id": 2, "tags": ["y"]}]

    def test_hashable_row_matches_unhashable_equal_row(self):
        previous = [{"id": 1, "data": bytearray(b"ab")}]
        current = [{"id": 1, "data": b"ab"}, {"id": 2, "data": b"cd"}]
        result = diff(previous, current)
        assert result.new_values == [{"id": 2, "data": b"cd"}]
