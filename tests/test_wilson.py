"""Tests for Wilson score intervals and the exploration bonus."""
import pytest

from explainrank.scoring.wilson import (
    DEFAULT_Z,
    exploration_bonus,
    wilson_interval,
    wilson_lower_bound,
    z_for_confidence,
)


class TestWilsonInterval:
    """Tests for the interval bounds."""

    def test_no_trials_is_full_interval(self):
        assert wilson_interval(0, 0) == (0.0, 1.0)

    def test_negative_trials_rejected(self):
        with pytest.raises(ValueError):
            wilson_interval(0, -1)

    def test_known_value(self):
        """10 saves out of 100 views at 95% confidence."""
        lower, upper = wilson_interval(10, 100)
        assert lower == pytest.approx(0.0552, abs=1e-3)
        assert upper == pytest.approx(0.1744, abs=1e-3)

    def test_bounds_contain_observed_rate(self):
        for successes, trials in [(0, 5), (3, 7), (7, 7), (50, 1000)]:
            lower, upper = wilson_interval(successes, trials)
            assert 0.0 <= lower <= successes / trials <= upper <= 1.0

    def test_successes_clamped_to_trials(self):
        assert wilson_interval(12, 10) == wilson_interval(10, 10)
        assert wilson_interval(-3, 10) == wilson_interval(0, 10)

    def test_interval_narrows_with_volume(self):
        small = wilson_interval(5, 10)
        large = wilson_interval(500, 1000)
        assert (large[1] - large[0]) < (small[1] - small[0])

    def test_lower_bound_helper(self):
        assert wilson_lower_bound(10, 100) == wilson_interval(10, 100)[0]


class TestExplorationBonus:
    """Tests for the interval-width bonus."""

    def test_full_weight_without_views(self):
        assert exploration_bonus(0, 0, weight=0.2) == pytest.approx(0.2)

    def test_zero_weight_disables_bonus(self):
        assert exploration_bonus(3, 10, weight=0.0) == 0.0

    def test_bonus_shrinks_as_views_accumulate(self):
        assert exploration_bonus(10, 100, 0.1) < exploration_bonus(1, 10, 0.1) < exploration_bonus(0, 0, 0.1)


class TestZForConfidence:
    """Tests for confidence-level quantiles."""

    def test_95_percent(self):
        assert z_for_confidence(0.95) == pytest.approx(DEFAULT_Z, abs=1e-3)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, -0.5, 1.5])
    def test_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            z_for_confidence(confidence)
