"""
Tests for the tier draw and per-team dice streams.
"""

import random

import pytest

from techrace.engine.dice import DiceRoller, draw_tier, p_high, roll_d6, team_rollers


def test_d6_range():
    rolls = roll_d6(200, random.Random(1))
    assert len(rolls) == 200
    assert set(rolls) <= {1, 2, 3, 4, 5, 6}


def test_negative_count_rolls_nothing():
    assert roll_d6(-2, random.Random(1)) == []


@pytest.mark.parametrize("tier, values", [("L", {1, 2}), ("M", {2, 6}), ("H", {1, 36})])
def test_draw_only_produces_tier_outcomes(config, tier, values):
    draws = draw_tier(config.tech_info[tier], 300, 10, random.Random(3))
    assert len(draws) == 300
    assert set(draws) <= values


def test_p_high_rises_until_tk_ref(config):
    rules = config.tech_info["M"]
    probs = [p_high(rules, tk) for tk in range(0, 16)]
    assert probs[0] == pytest.approx(rules.base_p)
    assert probs[-1] == pytest.approx(rules.max_p)
    assert all(a < b for a, b in zip(probs, probs[1:]))


def test_p_high_is_flat_beyond_tk_ref(config):
    rules = config.tech_info["H"]
    assert p_high(rules, 40) == p_high(rules, 400) == pytest.approx(rules.max_p)


def test_low_tier_probability_is_constant(config):
    rules = config.tech_info["L"]
    assert p_high(rules, 0) == p_high(rules, 50) == pytest.approx(0.75)


def test_seeded_rollers_are_reproducible(config):
    first = team_rollers(config.teams, seed=11)
    second = team_rollers(config.teams, seed=11)
    for team in config.teams:
        assert first[team].roll(10) == second[team].roll(10)


def test_team_streams_are_independent(config):
    busy = team_rollers(config.teams, seed=5)
    busy["China"].roll(50)
    quiet = team_rollers(config.teams, seed=5)
    assert busy["US"].roll(10) == quiet["US"].roll(10)


def test_roller_draw_uses_its_own_stream(config):
    a, b = DiceRoller(2), DiceRoller(2)
    assert a.draw(config.tech_info["H"], 20, 5) == b.draw(config.tech_info["H"], 20, 5)
