"""
Tests for round resolution: phases, rejection, discovery, espionage, carryover and history.
"""

import dataclasses

import pytest

from techrace.engine.errors import AlreadyResolved, IncompleteSubmissions, PostMaxRounds
from techrace.engine.events import (
    ALLOCATION_REJECTED,
    GAME_CONCLUDED,
    ROUND_RESOLVED,
    SPY_CAUGHT,
    SPY_SUCCEEDED,
    TECHNOLOGY_DISCOVERED,
)
from techrace.engine.definitions import load_ruleset
from techrace.engine.resolver import check_resolvable, resolve_round
from techrace.engine.state import GameState
from techrace.engine.utils import initialize_game_state

from conftest import allocation, zero_submissions


def reopen(state):
    """Start the next allocation cycle the way open_round does."""
    state.round_resolved = False
    return state


def test_zero_allocations_advance_the_round(state, config):
    zero_submissions(state, config)
    new_state, events = resolve_round(state, config, seed=1)

    assert new_state.round == 2
    assert new_state.round_resolved is True
    assert len(new_state.history) == 1
    assert new_state.history[0].round == 1
    for team in config.teams:
        before, after = state.teams[team], new_state.teams[team]
        assert after.k == before.k
        assert after.tk == before.tk
        assert after.tp == before.tp
        assert after.br_total == before.br_total
        assert after.submitted is False
        assert new_state.submissions[team] is None
    assert events[-1].type == ROUND_RESOLVED
    assert events[-1].payload["rejected_teams"] == []


def test_missing_submissions_abstain(state, config):
    new_state, _ = resolve_round(state, config, seed=1)
    assert new_state.round == 2
    assert new_state.history[0].allocations == {t: None for t in config.teams}


def test_input_state_is_not_mutated(state, config):
    state.submissions["US"] = allocation(se=1, te=1, br=3, ar={"L": 2}, sp=[("China", "L")])
    snapshot = state.to_json()
    resolve_round(state, config, seed=3)
    assert state.to_json() == snapshot


def test_over_budget_allocation_is_rejected_whole(state, config):
    zero_submissions(state, config)
    state.submissions["France"] = allocation(se=1, br=25)
    new_state, events = resolve_round(state, config, seed=2)

    france = new_state.teams["France"]
    assert france.br_total == 0
    assert france.k == state.teams["France"].k
    assert france.pending_w_carryover == 0
    assert france.rolls_saved["BR"] is None
    private = new_state.private_logs["France"]
    assert private[-1].event.startswith("Allocation rejected")
    assert private[-1].round == 1

    rejected = [e for e in events if e.type == ALLOCATION_REJECTED]
    assert [e.payload["team"] for e in rejected] == ["France"]
    assert rejected[0].payload["used"] == 26
    assert events[-1].payload["rejected_teams"] == ["France"]
    # Other teams still resolve
    assert new_state.teams["US"].pending_w_carryover == new_state.teams["US"].w


def test_rejection_is_only_visible_to_the_team(state, config):
    zero_submissions(state, config)
    state.submissions["France"] = allocation(br=25)
    new_state, _ = resolve_round(state, config, seed=2)
    assert not any("rejected" in e.event for e in new_state.public_log)
    assert not any("rejected" in e.event for e in new_state.private_logs["US"])


def test_already_resolved_leaves_state_untouched(state, config):
    zero_submissions(state, config)
    new_state, _ = resolve_round(state, config, seed=1)
    snapshot = new_state.to_json()
    with pytest.raises(AlreadyResolved) as exc:
        resolve_round(new_state, config, seed=1)
    assert exc.value.code == "already_resolved"
    assert new_state.to_json() == snapshot


def test_incomplete_submissions_when_all_are_required():
    config = load_ruleset("quick")
    state = initialize_game_state(config)
    state.submissions["US"] = allocation()
    with pytest.raises(IncompleteSubmissions) as exc:
        check_resolvable(state, config)
    assert exc.value.details["missing"] == ["China", "France", "Russia"]

    new_state, _ = resolve_round(state, config, seed=1, force=True)
    assert new_state.round == 2


def test_game_concludes_after_max_rounds(state, config):
    config = dataclasses.replace(config, max_rounds=2)
    state, _ = resolve_round(state, config, seed=1)
    assert not state.concluded
    state, events = resolve_round(reopen(state), config, seed=2)

    assert state.concluded
    assert state.round == 3
    assert events[-1].type == GAME_CONCLUDED
    assert state.public_log[-1].event == "Game concluded after round 2."

    with pytest.raises(PostMaxRounds):
        resolve_round(state, config)
    with pytest.raises(PostMaxRounds):
        resolve_round(reopen(state), config)


def test_seeded_resolution_is_reproducible(state, config):
    for team in config.teams:
        state.submissions[team] = allocation(br=3, ar={"L": 1, "M": 1})
    first, _ = resolve_round(state, config, seed=99)
    second, _ = resolve_round(state, config, seed=99)
    assert first.to_dict() == second.to_dict()


def test_basic_research_bookkeeping(state, config):
    for team in config.teams:
        state.submissions[team] = allocation(br=4)
    new_state, _ = resolve_round(state, config, seed=21)

    success_min = config.tech_info[config.br_success_tier].ar_thr
    all_rolls = []
    for team in config.teams:
        ts = new_state.teams[team]
        rolls = ts.rolls_saved["BR"]
        assert len(rolls) == 4
        assert ts.br_succ == sum(1 for r in rolls if r >= success_min)
        assert ts.br_total == ts.br_succ
        all_rolls.extend(rolls)
    for tier in config.techs:
        thr = config.tech_info[tier].ar_thr
        assert new_state.global_br_pool[tier] == sum(1 for r in all_rolls if r >= thr)


def test_spillover_uses_every_other_team(state, config):
    state.teams["US"].br_total = 4
    state.teams["France"].br_total = 2
    new_state, _ = resolve_round(state, config, seed=1)
    assert new_state.teams["US"].br_effective == pytest.approx(4 + 0.75 * 2)
    assert new_state.teams["China"].br_effective == pytest.approx(0.75 * 6)


def test_applied_research_adds_points_and_knowledge(state, config):
    state.submissions["US"] = allocation(ar={"L": 3, "M": 2})
    new_state, _ = resolve_round(state, config, seed=8)
    us = new_state.teams["US"]
    tk_gain = 0
    for tier in ("L", "M"):
        draws = us.rolls_saved["AR"][tier]
        assert us.tp[tier] == sum(draws)
        tk_gain += sum(1 for d in draws if d >= config.tech_info[tier].ar_thr)
    assert us.rolls_saved["AR"]["H"] is None
    assert us.tk == tk_gain
    assert us.tp_last_round == {"L": 0, "M": 0, "H": 0}


def test_education_raises_knowledge(state, config):
    state.submissions["US"] = allocation(se=1, te=1)
    new_state, _ = resolve_round(state, config, seed=1)
    us, before = new_state.teams["US"], state.teams["US"]
    assert us.te == before.te + 1
    # SE: SE * cost * factor = 2 * 1 * 0.5; open borders add the immigration pull
    assert us.k > before.k + 1


def test_closing_borders_stops_immigration(state, config):
    state.submissions["US"] = allocation(im="close")
    new_state, _ = resolve_round(state, config, seed=1)
    assert new_state.teams["US"].im == 0
    assert new_state.teams["US"].k == state.teams["US"].k


def test_discovery_requires_every_gate(state, config):
    ts = state.teams["US"]
    ts.tp["M"] = 25
    ts.br_total = 8
    ts.k = 6
    blocked, _ = resolve_round(state, config, seed=1)
    assert not blocked.teams["US"].discovered["M"]

    ts.k = 7
    unlocked, events = resolve_round(state, config, seed=1)
    us = unlocked.teams["US"]
    assert us.discovered["M"]
    assert us.tk == config.tech_info["M"].discovery_tk
    assert any(e.type == TECHNOLOGY_DISCOVERED for e in events)
    assert unlocked.private_logs["US"][0].event.startswith("Breakthrough: M-tier")
    assert us.dice_log[-1].phase == "DISC"


def test_discovery_is_permanent(state, config):
    config = dataclasses.replace(config, tp_threshold={"L": 1, "M": 20, "H": 40})
    state.submissions["US"] = allocation(ar={"L": 1})
    state, _ = resolve_round(state, config, seed=4)
    assert state.teams["US"].discovered["L"]
    tk_after_discovery = state.teams["US"].tk

    for seed in range(3):
        state, _ = resolve_round(reopen(state), config, seed=seed)
        assert state.teams["US"].discovered["L"]
    # The bonus is granted once
    assert state.teams["US"].tk == tk_after_discovery


def test_capabilities_never_decrease(state, config):
    plans = {
        "US": allocation(se=1, te=1, im="open", br=2, ar={"L": 1, "M": 1}),
        "China": allocation(se=1, te=1, br=2, ar={"L": 1, "M": 1}),
        "France": allocation(te=1, br=2, ar={"M": 1, "H": 1}),
        "Russia": allocation(se=1, im="open", br=2, ar={"L": 2}),
    }
    for seed in range(5):
        for team, plan in plans.items():
            state.submissions[team] = plan
        new_state, _ = resolve_round(state, config, seed=seed)
        for team in config.teams:
            old, new = state.teams[team], new_state.teams[team]
            assert new.k >= old.k
            assert new.tk >= old.tk
            assert new.br_total >= old.br_total
            for tier in config.techs:
                assert new.tp[tier] >= old.tp[tier]
                assert new.discovered[tier] or not old.discovered[tier]
        state = reopen(new_state)


def test_successful_espionage_is_private(state, config):
    config = dataclasses.replace(config, spy_success_min={"demo": 1, "auto": 1})
    state.teams["China"].tp["M"] = 7
    state.submissions["US"] = allocation(sp=[("China", "M")])
    new_state, events = resolve_round(state, config, seed=1)

    us = new_state.teams["US"]
    assert us.spy_revealed["China"]["M"] is True
    assert us.spy_caught_count["China"]["M"] == 0
    assert us.tk == config.spy_tk_gain
    assert any(e.type == SPY_SUCCEEDED for e in events)
    assert any("Espionage on China (M) succeeded: 7/20 TP" in e.event for e in new_state.private_logs["US"])
    assert not any("China" in e.event for e in new_state.public_log)
    assert new_state.private_logs["China"] == []


def test_caught_espionage_is_public(state, config):
    config = dataclasses.replace(config, spy_success_min={"demo": 7, "auto": 7})
    state.submissions["US"] = allocation(sp=[("China", "M"), ("France", "L")])
    new_state, events = resolve_round(state, config, seed=1)

    us = new_state.teams["US"]
    assert us.spy_caught_count["China"]["M"] == 1
    assert us.spy_caught_count["France"]["L"] == 1
    assert us.spy_revealed["China"]["M"] is False
    assert us.tk == 0
    assert len([e for e in events if e.type == SPY_CAUGHT]) == 2
    public = [e.event for e in new_state.public_log]
    assert "US was caught spying on China's M-tier program." in public
    assert len(us.rolls_saved["SP"]) == 2


def test_carryover_banks_half_of_unspent(state, config):
    zero_submissions(state, config)
    state, events = resolve_round(state, config, seed=1)
    us = state.teams["US"]
    assert us.unspent_dice == 12
    assert us.pending_w_carryover == 6
    assert us.last_carryover == 0

    zero_submissions(reopen(state), config)
    state, _ = resolve_round(state, config, seed=2)
    us = state.teams["US"]
    assert us.unspent_dice == 18
    assert us.pending_w_carryover == 9
    assert us.last_carryover == 6


def test_history_entries_are_frozen_snapshots(state, config):
    state.submissions["US"] = allocation(br=2)
    new_state, _ = resolve_round(state, config, seed=1)
    entry = new_state.history[0]
    k_before = entry.after["US"]["K"]

    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.round = 5
    new_state.teams["US"].k = 999
    assert entry.after["US"]["K"] == k_before
    assert entry.allocations["US"]["BR"] == 2
    assert entry.before["US"]["BR_total"] == 0
    assert len(entry.rolls["US"]["BR"]) == 2
    assert entry.public_log[-1]["event"] == "Round 1 resolved."


def test_history_nested_data_is_read_only(state, config):
    state.submissions["US"] = allocation(br=2)
    new_state, _ = resolve_round(state, config, seed=1)
    entry = new_state.history[0]

    with pytest.raises(TypeError):
        entry.after["US"]["K"] = 0
    with pytest.raises(TypeError):
        entry.allocations["US"]["AR"]["L"] = 5
    with pytest.raises(TypeError):
        entry.public_log[0]["event"] = "edited"
    with pytest.raises(AttributeError):
        entry.rolls["US"]["BR"].append(6)

    # Copies handed out are independent of the archive
    exported = entry.to_dict()
    exported["after"]["US"]["K"] = 0
    assert entry.after["US"]["K"] != 0
    assert new_state.copy().history[0] is entry


def test_history_grows_one_entry_per_round(state, config):
    for seed in range(3):
        state, _ = resolve_round(state, config, seed=seed)
        state = reopen(state)
    assert [h.round for h in state.history] == [1, 2, 3]


def test_rejected_team_records_no_stale_rolls(state, config):
    state.submissions["France"] = allocation(br=2)
    state, _ = resolve_round(state, config, seed=3)
    assert len(state.history[0].rolls["France"]["BR"]) == 2
    assert state.teams["France"].br_succ == sum(1 for r in state.history[0].rolls["France"]["BR"] if r >= 4)

    reopen(state).submissions["France"] = allocation(br=25)
    state, _ = resolve_round(state, config, seed=4)
    france = state.teams["France"]
    assert france.rolls_saved["BR"] is None
    assert france.br_succ == 0
    assert state.history[1].rolls["France"]["BR"] is None
    assert all(v is None for v in state.history[1].rolls["France"]["AR"].values())


def test_unknown_stance_from_a_snapshot_is_rejected(state, config):
    data = state.to_dict()
    data["submissions"]["US"] = {"IM": "sideways", "BR": 1}
    restored = GameState.from_dict(data)
    new_state, events = resolve_round(restored, config, seed=1)
    assert new_state.teams["US"].br_total == 0
    assert "IM must be one of" in new_state.private_logs["US"][-1].event
    assert events[-1].payload["rejected_teams"] == ["US"]
