"""
Carryover and round history bookkeeping.
Unspent budget partially rolls into the next round; resolved rounds are frozen into history.
"""

import math
from copy import deepcopy
from typing import TYPE_CHECKING

from techrace.engine.state import RoundHistory

if TYPE_CHECKING:
    from techrace.engine.state import GameState, TeamAllocation, TeamState


def compute_carryover(budget: int, used: int, carry_fraction: float) -> tuple[int, int]:
    """Return (unspent, carried). Carried budget is rounded down to whole units."""
    unspent = max(budget - used, 0)
    carried = math.floor(unspent * max(carry_fraction, 0))
    return unspent, carried


def apply_carryover(team_state: "TeamState", budget: int, used: int) -> tuple[int, int, int]:
    """
    Settle one team's carryover at the end of a round.

    The carryover that was pending at the start of the round was part of this
    round's budget, so it becomes last_carryover and is replaced by what this
    round leaves behind.

    Returns:
        (unspent, banked, consumed)
    """
    unspent, banked = compute_carryover(budget, used, team_state.carry_fraction)
    consumed = team_state.pending_w_carryover
    team_state.last_carryover = consumed
    team_state.unspent_dice = unspent
    team_state.pending_w_carryover = banked
    return unspent, banked, consumed


def snapshot_round(
    round_number: int,
    allocations: dict[str, "TeamAllocation | None"],
    before: dict[str, "TeamState"],
    after: dict[str, "TeamState"],
    public_entries: list,
    private_entries: dict[str, list],
) -> RoundHistory:
    """Freeze a resolved round. Everything is converted to plain data, so no live object is shared."""
    return RoundHistory(
        round=round_number,
        allocations={t: a.to_dict() if a is not None else None for t, a in allocations.items()},
        before={t: ts.to_dict() for t, ts in before.items()},
        after={t: ts.to_dict() for t, ts in after.items()},
        rolls={t: deepcopy(ts.rolls_saved) for t, ts in after.items()},
        public_log=tuple(e.to_dict() for e in public_entries),
        private_logs={t: tuple(e.to_dict() for e in entries) for t, entries in private_entries.items()},
    )


def archive_round(history: list[RoundHistory], entry: RoundHistory) -> list[RoundHistory]:
    """Return a new history list with `entry` appended. Existing entries are never touched."""
    if history and entry.round <= history[-1].round:
        raise ValueError(f"Round {entry.round} is already archived")
    return [*history, entry]


def round_entries(state: "GameState", round_number: int) -> tuple[list, dict[str, list]]:
    """Public and per-team private log entries posted during `round_number`."""
    public = [e for e in state.public_log if e.round == round_number]
    private = {
        t: [e for e in entries if e.round == round_number]
        for t, entries in state.private_logs.items()
    }
    return public, private
