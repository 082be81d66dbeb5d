"""
Tests for fee split recommendations.
"""

import pytest

from core.workflow.splits import (
    DEFAULT_WEIGHTS,
    SplitRole,
    calculate_splits,
    total_percentage,
)
from database.models.placements import CollaboratorRole


class TestCalculateSplits:
    def test_default_weights_for_all_roles(self):
        splits = calculate_splits(10000, list(CollaboratorRole))
        by_role = {s.role: s for s in splits}

        assert by_role[CollaboratorRole.SOURCER].split_percentage == 40.0
        assert by_role[CollaboratorRole.SOURCER].split_amount == 4000.0
        assert by_role[CollaboratorRole.SUPPORT].split_amount == 1000.0
        assert total_percentage([s.split_percentage for s in splits]) == 100.0

    def test_weights_are_normalized(self):
        splits = calculate_splits(900, ["sourcer", "closer"])
        assert [s.split_percentage for s in splits] == [66.67, 33.33]
        assert [s.split_amount for s in splits] == [600.0, 300.0]

    def test_custom_weights(self):
        splits = calculate_splits(
            1000,
            [SplitRole(CollaboratorRole.SOURCER, 1), {"role": "submitter", "weight": 3}],
        )
        assert [s.split_percentage for s in splits] == [25.0, 75.0]
        assert splits[1].to_dict() == {
            "role": "submitter",
            "split_percentage": 75.0,
            "split_amount": 750.0,
        }

    def test_single_role_takes_everything(self):
        (split,) = calculate_splits(1234.56, [CollaboratorRole.CLOSER])
        assert split.split_percentage == 100.0
        assert split.split_amount == 1234.56

    def test_empty_roles(self):
        assert calculate_splits(1000, []) == []

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            calculate_splits(1000, [{"role": "sourcer", "weight": -1}])

    def test_zero_total_weight_rejected(self):
        with pytest.raises(ValueError):
            calculate_splits(1000, [{"role": "sourcer", "weight": 0}])

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            calculate_splits(1000, ["janitor"])

    def test_default_weights_sum_to_100(self):
        assert sum(DEFAULT_WEIGHTS.values()) == 100
