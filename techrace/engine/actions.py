"""
Action definitions for the game.
Actions are immutable, deterministic instructions handed to the reducer.
"""

from dataclasses import dataclass

from techrace.engine import GM_ROLE
from techrace.engine.state import TeamAllocation


@dataclass
class Action:
    """Base action class. All actions have a type, role, and payload."""
    type: str  # e.g., "submit_allocation", "resolve_round"
    role: str  # team id, or GM_ROLE
    payload: dict  # Action-specific data


def start_game() -> Action:
    """GM opens the game for submissions."""
    return Action(type="start_game", role=GM_ROLE, payload={})


def open_round() -> Action:
    """GM starts the allocation cycle for the current round after a resolution."""
    return Action(type="open_round", role=GM_ROLE, payload={})


def submit_allocation(team: str, allocation: TeamAllocation) -> Action:
    """
    Submit (or replace) a team's allocation for the current round.
    Last write wins; the budget is checked again when the round resolves.

    Example: submit_allocation("France", TeamAllocation(se=1, br=2, ar={"L": 2, "M": 0, "H": 0}))
    """
    return Action(
        type="submit_allocation",
        role=team,
        payload={"allocation": allocation},
    )


def withdraw_allocation(team: str) -> Action:
    """Clear a team's submission for the current round."""
    return Action(type="withdraw_allocation", role=team, payload={})


def resolve_round(force: bool = False, seed: int | None = None) -> Action:
    """
    Resolve the current round.

    force: resolve even if the ruleset requires every team and some have not submitted
           (missing teams abstain).
    seed: optional seed so the round's dice are reproducible.
    """
    return Action(
        type="resolve_round",
        role=GM_ROLE,
        payload={"force": force, "seed": seed},
    )
