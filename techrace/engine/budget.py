"""
Budget validation.
Prices an allocation under the cost schedule and checks it against the team's budget.
Acceptance is all-or-nothing: callers must not apply any part of a rejected allocation.
"""

import math
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from techrace.engine.state import IM_STANCES, TeamAllocation

if TYPE_CHECKING:
    from techrace.engine.state import TeamState

# Applied research price per die, by position in the round's combined AR total.
# (units in band, price each); the last band is open-ended.
AR_COST_BANDS = ((2, 1), (2, 2), (None, 3))


@dataclass
class BudgetCheck:
    """Result of pricing an allocation."""
    ok: bool
    used: int
    budget: int
    costs: dict[str, int] = field(default_factory=dict)  # SE, TE, BR, AR, SP
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "used": self.used,
            "budget": self.budget,
            "costs": dict(self.costs),
            "errors": list(self.errors),
        }


def applied_research_cost(ar_total: int) -> int:
    """Tiered over the total across all tiers: 1-2 cost 1 each, 3-4 cost 2 each, 5+ cost 3 each."""
    remaining = max(0, ar_total)
    cost = 0
    for band, price in AR_COST_BANDS:
        take = remaining if band is None else min(band, remaining)
        cost += take * price
        remaining -= take
        if remaining == 0:
            break
    return cost


def secondary_education_cost(pop: float, all_pops: list[float]) -> int:
    """Larger populations cost proportionally more to educate."""
    mean_pop = sum(all_pops) / len(all_pops) if all_pops else 0
    if mean_pop <= 0:
        return 0
    return math.ceil(pop / mean_pop)


def _structural_errors(
    allocation: TeamAllocation,
    techs: tuple[str, ...] | list[str],
    teams: list[str],
    acting_team: str | None,
) -> list[str]:
    errors = []
    if allocation.se not in (0, 1):
        errors.append(f"SE must be 0 or 1, got {allocation.se}")
    if allocation.te not in (0, 1):
        errors.append(f"TE must be 0 or 1, got {allocation.te}")
    if allocation.im not in IM_STANCES:
        errors.append(f"IM must be one of {IM_STANCES}, got {allocation.im!r}")
    if allocation.br < 0:
        errors.append(f"BR cannot be negative, got {allocation.br}")
    for tier, n in allocation.ar.items():
        if tier not in techs:
            errors.append(f"Unknown AR tier: {tier}")
        elif n < 0:
            errors.append(f"AR[{tier}] cannot be negative, got {n}")
    for spy in allocation.active_spy_actions():
        if spy.target not in teams:
            errors.append(f"Unknown espionage target: {spy.target}")
        elif acting_team is not None and spy.target == acting_team:
            errors.append("A team cannot spy on itself")
        if spy.tech not in techs:
            errors.append(f"Unknown espionage tier: {spy.tech}")
    return errors


def validate_budget(
    w: int,
    allocation: TeamAllocation,
    pop: float,
    teams_state: dict[str, "TeamState"],
    techs: tuple[str, ...] | list[str],
    carryover: int = 0,
    acting_team: str | None = None,
) -> BudgetCheck:
    """
    Price `allocation` for a team with weight `w` and population `pop`.

    Args:
        w: Team's budget weight for this round
        allocation: Proposed allocation
        pop: Team's population
        teams_state: All teams (mean population drives secondary education cost)
        techs: Known tiers
        carryover: Budget banked from the previous round
        acting_team: The submitting team (used to refuse self-espionage)

    Returns:
        BudgetCheck with ok = used <= budget and no structural errors
    """
    budget = 2 * w + max(0, carryover)
    teams = list(teams_state.keys())

    se_cost = 0
    if allocation.se > 0:
        se_cost = secondary_education_cost(pop, [teams_state[t].pop for t in teams])
    te_cost = 1 if allocation.te > 0 else 0
    br_cost = max(0, allocation.br)
    sp_cost = len(allocation.active_spy_actions())
    ar_cost = applied_research_cost(allocation.ar_total())

    costs = {"SE": se_cost, "TE": te_cost, "BR": br_cost, "AR": ar_cost, "SP": sp_cost}
    used = sum(costs.values())
    errors = _structural_errors(allocation, techs, teams, acting_team)
    return BudgetCheck(
        ok=used <= budget and not errors,
        used=used,
        budget=budget,
        costs=costs,
        errors=errors,
    )
