"""
Shared fixtures: the default ruleset and a freshly initialized game.
"""

import pytest

from techrace.engine.definitions import load_ruleset
from techrace.engine.state import GameState, SpyAction, TeamAllocation
from techrace.engine.utils import initialize_game_state


@pytest.fixture
def config():
    return load_ruleset("default")


@pytest.fixture
def state(config):
    return initialize_game_state(config)


def zero_submissions(state: GameState, config) -> GameState:
    """Every team submits the all-zero allocation."""
    for team in config.teams:
        state.submissions[team] = TeamAllocation.empty(config.techs)
        state.teams[team].submitted = True
    return state


def allocation(techs=("L", "M", "H"), **kwargs) -> TeamAllocation:
    """TeamAllocation with zeroed AR tiers unless given; SP accepts (target, tech) pairs."""
    ar = {t: 0 for t in techs}
    ar.update(kwargs.pop("ar", {}))
    sp = [SpyAction(target=target, tech=tech) for target, tech in kwargs.pop("sp", [])]
    return TeamAllocation(ar=ar, sp=sp, **kwargs)
