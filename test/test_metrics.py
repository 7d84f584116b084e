"""
Tests for metric normalization: budget weights, population weights and immigration pull.
"""

import pytest

from techrace.engine.metrics import (
    compute_im_weights,
    compute_initial_k,
    compute_pop_weights,
    compute_w_from_gdp,
    normalize_metric,
)


def test_normalized_mean_equals_baseline():
    out = normalize_metric([26000, 17500, 3000, 2200], 0.2, 4)
    assert sum(out) / len(out) == pytest.approx(4)


@pytest.mark.parametrize("value", [5, 6, 14, 29, 31, 136, 139])
@pytest.mark.parametrize("count", [3, 4, 5])
def test_equal_inputs_map_exactly_to_baseline(value, count):
    assert normalize_metric([value] * count, 0.2, 4) == [4] * count


def test_equal_gdp_gives_exact_budget_weights(config):
    assert compute_w_from_gdp([14] * 3, config) == [4, 4, 4]
    assert compute_w_from_gdp([139] * 5, config) == [4, 4, 4, 4, 4]


def test_order_is_preserved():
    out = normalize_metric([1, 100, 10], 0.2, 1)
    assert out[0] < out[2] < out[1]


def test_zero_input_stays_zero():
    out = normalize_metric([0, 10, 100], 0.2, 1)
    assert out[0] == 0
    assert sum(out) / len(out) == pytest.approx(1)


def test_all_zero_inputs_give_all_zero():
    assert normalize_metric([0, 0, 0], 0.2, 4) == [0, 0, 0]


def test_default_budget_weights(config):
    gdps = [config.init_by_team[t].GDP for t in config.teams]
    assert compute_w_from_gdp(gdps, config) == [6, 5, 4, 4]


def test_budget_weights_are_rounded_up(config):
    weights = compute_w_from_gdp([1, 1, 1, 1], config)
    assert weights == [4, 4, 4, 4]
    assert all(isinstance(w, int) for w in weights)


def test_pop_weights_have_mean_one(config):
    pops = [config.init_by_team[t].POP for t in config.teams]
    weights = compute_pop_weights(pops, config)
    assert sum(weights) / len(weights) == pytest.approx(1)


def test_initial_k():
    assert compute_initial_k(2, 4) == 6
    assert compute_initial_k(2, 4, scale=0.5) == 3


def test_im_weights_have_mean_one(state, config):
    weights = compute_im_weights(state.teams, config.teams)
    assert sum(weights.values()) / len(weights) == pytest.approx(1)


def test_im_weights_cap_closed_teams(state, config):
    # China (closed) has above-average pull; as an open team it would be weighted higher
    capped = compute_im_weights(state.teams, config.teams)
    opened = compute_im_weights(state.teams, config.teams, im_override={"China": 1})
    assert capped["China"] / capped["US"] < opened["China"] / opened["US"]


def test_im_override_does_not_touch_state(state, config):
    compute_im_weights(state.teams, config.teams, im_override={"China": 1, "US": 0})
    assert state.teams["China"].im == 0
    assert state.teams["US"].im == 1


def test_im_weights_fall_back_to_parity_without_pull(state, config):
    for ts in state.teams.values():
        ts.te = 0
    assert compute_im_weights(state.teams, config.teams) == {t: 1.0 for t in config.teams}
