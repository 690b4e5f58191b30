"""Tests for envelopes and solution path construction."""

import numpy as np
import pytest

from maq.core.contracts import validate_arrays
from maq.path import ALL_UNITS, PathBuilder, build_envelopes, build_path, hull_options


def _path(reward, cost, budget, reward_eval=None, **kwargs):
    tau, cost_mat, gamma = validate_arrays(reward, cost, reward_eval)
    return build_path(tau, cost_mat, budget, reward_eval=gamma, **kwargs)


class TestEnvelope:
    """Test per-unit envelope construction."""

    def test_both_options_survive(self):
        """Ratios 2.0 then 1.5 are both on the envelope."""
        options = hull_options(np.array([2.0, 5.0]), np.array([1.0, 3.0]))

        assert options == [0, 1]

    def test_non_positive_values_never_offered(self):
        """Options with value <= 0 are dropped."""
        options = hull_options(np.array([-1.0, 0.0, 2.0]), np.array([1.0, 2.0, 3.0]))

        assert options == [2]

    def test_cost_dominated_option_removed(self):
        """A costlier option with a lower value is never on the envelope."""
        options = hull_options(np.array([3.0, 2.0]), np.array([1.0, 2.0]))

        assert options == [0]

    def test_ratio_dominated_option_removed(self):
        """A vertex below the chord of its neighbours is popped (collinear too)."""
        options = hull_options(np.array([1.0, 1.5, 3.0]), np.array([1.0, 2.0, 3.0]))

        assert options == [2]

    def test_equal_costs_keep_higher_value(self):
        """Among equal-cost options only the most valuable one is kept."""
        options = hull_options(np.array([1.0, 2.0]), np.array([1.0, 1.0]))

        assert options == [1]

    def test_action_ratios_strictly_decrease(self, random_problem):
        """Every unit's action sequence has increasing cost and decreasing ratio."""
        reward, cost, reward_eval = random_problem
        tau, cost_mat, gamma = validate_arrays(reward, cost, reward_eval)
        env = build_envelopes(tau, cost_mat, gamma)

        for i in range(env.n_units):
            sl = env.unit_slice(i)
            assert np.all(env.d_cost[sl] > 0)
            assert np.all(env.d_reward[sl] > 0)
            assert np.all(np.diff(env.ratio[sl]) < 0)

    def test_upgrade_deltas(self):
        """Upgrade actions carry cost and value differences."""
        tau, cost_mat, gamma = validate_arrays([[2.0, 5.0]], [[1.0, 3.0]])
        env = build_envelopes(tau, cost_mat, gamma)

        np.testing.assert_array_equal(env.option, [0, 1])
        np.testing.assert_array_equal(env.prev_option, [-1, 0])
        np.testing.assert_allclose(env.d_cost, [1.0, 2.0])
        np.testing.assert_allclose(env.ratio, [2.0, 1.5])


class TestPathBuilder:
    """Test the merged solution path."""

    def test_three_unit_breakpoints(self, three_units):
        """Units are applied by decreasing value/cost."""
        reward, cost = three_units
        path = _path(reward, cost, budget=3.0)

        spend, gain, _ = path.breakpoints()
        np.testing.assert_allclose(spend, [0, 1, 2, 3])
        np.testing.assert_allclose(gain, [0, 3, 5, 6])
        np.testing.assert_array_equal(path.unit, [0, 2, 1])
        assert path.complete

    def test_single_option_sorted_by_ratio(self):
        """K = 1 assigns units in descending value/cost order."""
        reward = np.array([1.0, 4.0, 3.0, 0.5])
        cost = np.array([1.0, 2.0, 1.0, 0.25])
        path = _path(reward, cost, budget=10.0)

        ratios = reward / cost
        expected = sorted(range(4), key=lambda i: (-ratios[i], i))
        np.testing.assert_array_equal(path.unit, expected)

    def test_budget_truncation_keeps_crossing_action(self, three_units):
        """The action that crosses the budget ends the path."""
        reward, cost = three_units
        path = _path(reward, cost, budget=1.5)

        assert path.n_actions == 2
        assert not path.complete
        assert path.spend[-1] == pytest.approx(2.0)
        assert path.gain_at(1.5) == pytest.approx(4.0)

    def test_zero_spend_is_zero_gain(self, random_problem):
        """The path starts at the origin."""
        reward, cost, reward_eval = random_problem
        path = _path(reward, cost, budget=50.0, reward_eval=reward_eval)

        assert path.spend[0] == 0.0
        assert path.gain_at(0.0) == 0.0

    def test_equal_ratios_ordered_by_unit_index(self):
        """Ties are broken by unit index and collapse into one breakpoint interval."""
        reward = np.array([2.0, 2.0, 2.0])
        cost = np.array([1.0, 1.0, 1.0])
        path = _path(reward, cost, budget=3.0)

        np.testing.assert_array_equal(path.unit, [0, 1, 2])
        spend, gain, ratio = path.breakpoints()
        np.testing.assert_allclose(spend, [0, 3])
        np.testing.assert_allclose(gain, [0, 6])
        assert ratio[-1] == pytest.approx(2.0)

    def test_gain_uses_evaluation_scores(self):
        """Ranking follows reward while gain accumulates reward_eval."""
        reward = np.array([3.0, 1.0])
        reward_eval = np.array([0.5, 2.0])
        path = _path(reward, [1.0, 1.0], budget=2.0, reward_eval=reward_eval)

        np.testing.assert_array_equal(path.unit, [0, 1])
        np.testing.assert_allclose(path.gain, [0.0, 0.5, 2.5])

    def test_concave_non_decreasing(self, random_problem):
        """With reward_eval = reward the curve is non-decreasing and concave."""
        reward, cost, _ = random_problem
        path = _path(reward, cost, budget=1e6)

        slopes = np.diff(path.gain) / np.diff(path.spend)
        assert np.all(np.diff(path.spend) > 0)
        assert np.all(slopes > 0)
        assert np.all(np.diff(slopes) <= 1e-8)

    def test_full_spend_realises_best_options(self, random_problem):
        """Past the sum of envelope-top costs, spending more changes nothing."""
        reward, cost, _ = random_problem
        tau, cost_mat, gamma = validate_arrays(reward, cost)
        total = 0.0
        for i in range(tau.shape[0]):
            options = hull_options(tau[i], cost_mat[i])
            if options:
                total += cost_mat[i, options[-1]]

        path = _path(reward, cost, budget=total * 2)

        assert path.complete
        assert path.spend[-1] == pytest.approx(total)
        assert path.gain_at(total) == pytest.approx(path.gain_at(total * 2))

    def test_cost_scaling_invariance(self, random_problem):
        """Scaling costs and budget rescales spend only."""
        reward, cost, reward_eval = random_problem
        path = _path(reward, cost, budget=40.0, reward_eval=reward_eval)
        scaled = _path(reward, cost * 4.0, budget=160.0, reward_eval=reward_eval)

        np.testing.assert_array_equal(path.unit, scaled.unit)
        np.testing.assert_array_equal(path.option, scaled.option)
        np.testing.assert_allclose(path.gain, scaled.gain)
        np.testing.assert_allclose(path.spend * 4.0, scaled.spend)

    def test_no_admissible_action(self):
        """All values non-positive gives an empty path."""
        path = _path([-1.0, 0.0], [1.0, 1.0], budget=5.0)

        assert path.is_empty()
        assert path.is_degenerate()
        assert path.gain_at(3.0) == 0.0

    def test_resample_repeats_units(self, three_units):
        """A drawn unit appearing twice contributes twice."""
        reward, cost = three_units
        tau, cost_mat, gamma = validate_arrays(reward, cost)
        builder = PathBuilder(tau, cost_mat, gamma, budget=10.0)

        path = builder.build_resample(np.array([0, 0, 1]))

        np.testing.assert_array_equal(path.unit, [0, 1, 2])
        np.testing.assert_allclose(path.gain, [0, 3, 6, 7])

    def test_area_under_path(self, three_units):
        """Trapezoid area of the piecewise-linear curve."""
        reward, cost = three_units
        path = _path(reward, cost, budget=3.0)

        assert path.area_to(3.0) == pytest.approx(11.0)
        assert path.area_to(1.0) == pytest.approx(1.5)


class TestBaselinePath:
    """Test ranking by population means."""

    def test_baseline_moves_all_units(self, three_units):
        """One mean-envelope step upgrades every unit."""
        reward, cost = three_units
        path = _path(reward, cost, budget=3.0, target_with_covariates=False)

        assert path.is_baseline
        np.testing.assert_array_equal(path.unit, [ALL_UNITS])
        np.testing.assert_allclose(path.spend, [0, 3])
        np.testing.assert_allclose(path.gain, [0, 6])

    def test_baseline_multi_option(self):
        """Mean envelope with two options gives two linear segments."""
        reward = np.array([[1.0, 3.0], [3.0, 5.0]])
        cost = np.array([1.0, 3.0])
        path = _path(reward, cost, budget=10.0, target_with_covariates=False)

        np.testing.assert_array_equal(path.option, [0, 1])
        np.testing.assert_allclose(path.spend, [0, 2, 6])
        np.testing.assert_allclose(path.gain, [0, 4, 8])
