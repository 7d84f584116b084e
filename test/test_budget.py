"""
Tests for allocation pricing and budget validation.
"""

import pytest

from techrace.engine.budget import applied_research_cost, secondary_education_cost, validate_budget
from techrace.engine.state import SpyAction, TeamAllocation

from conftest import allocation


@pytest.mark.parametrize("total, cost", [(0, 0), (1, 1), (2, 2), (3, 4), (4, 6), (5, 9), (6, 12)])
def test_applied_research_cost_bands(total, cost):
    assert applied_research_cost(total) == cost


def test_applied_research_cost_is_over_the_combined_total(state, config):
    ts = state.teams["US"]
    spread = validate_budget(ts.w, allocation(ar={"L": 2, "M": 2, "H": 2}), ts.pop, state.teams, config.techs)
    stacked = validate_budget(ts.w, allocation(ar={"H": 6}), ts.pop, state.teams, config.techs)
    assert spread.costs["AR"] == stacked.costs["AR"] == 12


def test_secondary_education_cost_scales_with_population(state):
    pops = [ts.pop for ts in state.teams.values()]
    assert secondary_education_cost(330, pops) == 1
    assert secondary_education_cost(1400, pops) == 3
    assert secondary_education_cost(10, [0, 0]) == 0


def test_zero_allocation_costs_nothing(state, config):
    ts = state.teams["France"]
    check = validate_budget(ts.w, TeamAllocation.empty(config.techs), ts.pop, state.teams, config.techs)
    assert check.ok
    assert check.used == 0
    assert check.budget == 2 * ts.w


def test_full_allocation_prices_every_category(state, config):
    ts = state.teams["China"]
    alloc = allocation(se=1, te=1, im="open", br=2, ar={"L": 1}, sp=[("US", "M")])
    check = validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs, acting_team="China")
    assert check.costs == {"SE": 3, "TE": 1, "BR": 2, "AR": 1, "SP": 1}
    assert check.used == 8
    assert check.budget == 10
    assert check.ok


def test_over_budget_is_rejected(state, config):
    ts = state.teams["France"]
    check = validate_budget(ts.w, allocation(br=25), ts.pop, state.teams, config.techs, acting_team="France")
    assert not check.ok
    assert check.used == 25
    assert check.budget == 8
    assert check.errors == []


def test_carryover_extends_budget(state, config):
    ts = state.teams["France"]
    alloc = allocation(br=10)
    assert not validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs).ok
    assert validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs, carryover=2).ok


def test_pricing_ignores_order(state, config):
    ts = state.teams["US"]
    a = allocation(ar={"L": 1, "M": 2, "H": 3}, sp=[("China", "L"), ("France", "H")])
    b = TeamAllocation(ar={"H": 3, "M": 2, "L": 1}, sp=[SpyAction("France", "H"), SpyAction("China", "L")])
    check_a = validate_budget(ts.w, a, ts.pop, state.teams, config.techs, acting_team="US")
    check_b = validate_budget(ts.w, b, ts.pop, state.teams, config.techs, acting_team="US")
    assert check_a.used == check_b.used == 14


def test_abstained_spy_slots_are_free(state, config):
    ts = state.teams["US"]
    alloc = TeamAllocation(sp=[None, SpyAction("", "L")])
    check = validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs, acting_team="US")
    assert check.costs["SP"] == 0
    assert check.ok


def test_used_is_never_negative(state, config):
    ts = state.teams["US"]
    alloc = TeamAllocation(br=-5, ar={"L": -3})
    check = validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs)
    assert check.used >= 0
    assert not check.ok


@pytest.mark.parametrize("alloc, fragment", [
    (TeamAllocation(se=2), "SE must be 0 or 1"),
    (TeamAllocation(im="maybe"), "IM must be one of"),
    (TeamAllocation(ar={"X": 1}), "Unknown AR tier"),
    (TeamAllocation(sp=[SpyAction("Germany", "L")]), "Unknown espionage target"),
    (TeamAllocation(sp=[SpyAction("US", "L")]), "cannot spy on itself"),
    (TeamAllocation(sp=[SpyAction("China", "Z")]), "Unknown espionage tier"),
])
def test_structural_errors(state, config, alloc, fragment):
    ts = state.teams["US"]
    check = validate_budget(ts.w, alloc, ts.pop, state.teams, config.techs, acting_team="US")
    assert not check.ok
    assert any(fragment in e for e in check.errors)
