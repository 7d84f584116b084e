"""
Game events for UI hooks and logging.
Events describe what happened while an action was processed; they are returned
alongside the new state and are not persisted in it (the state's logs are).
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Lifecycle events
GAME_STARTED = "game_started"
ROUND_OPENED = "round_opened"
ROUND_RESOLVED = "round_resolved"
GAME_CONCLUDED = "game_concluded"

# Submission events
ALLOCATION_SUBMITTED = "allocation_submitted"
ALLOCATION_WITHDRAWN = "allocation_withdrawn"
ALLOCATION_REJECTED = "allocation_rejected"

# Resolution events
WEIGHTS_COMPUTED = "weights_computed"
EDUCATION_APPLIED = "education_applied"
BASIC_RESEARCH_ROLLED = "basic_research_rolled"
APPLIED_RESEARCH_ROLLED = "applied_research_rolled"
TECHNOLOGY_DISCOVERED = "technology_discovered"
SPY_SUCCEEDED = "spy_succeeded"
SPY_CAUGHT = "spy_caught"
CARRYOVER_APPLIED = "carryover_applied"


# ===== Event Factory Functions =====

def game_started(round_number: int) -> GameEvent:
    return GameEvent(GAME_STARTED, {"round": round_number})


def round_opened(round_number: int) -> GameEvent:
    return GameEvent(ROUND_OPENED, {"round": round_number})


def round_resolved(round_number: int, next_round: int, rejected: list[str]) -> GameEvent:
    return GameEvent(ROUND_RESOLVED, {
        "round": round_number,
        "next_round": next_round,
        "rejected_teams": rejected,
    })


def game_concluded(final_round: int, discoveries: dict[str, list[str]]) -> GameEvent:
    """Emitted once, right after the last round is resolved."""
    return GameEvent(GAME_CONCLUDED, {
        "final_round": final_round,
        "discoveries": discoveries,  # team -> discovered tiers
    })


def allocation_submitted(team: str, round_number: int, ok: bool, used: int, budget: int) -> GameEvent:
    return GameEvent(ALLOCATION_SUBMITTED, {
        "team": team,
        "round": round_number,
        "within_budget": ok,
        "used": used,
        "budget": budget,
    })


def allocation_withdrawn(team: str, round_number: int) -> GameEvent:
    return GameEvent(ALLOCATION_WITHDRAWN, {"team": team, "round": round_number})


def allocation_rejected(team: str, used: int, budget: int, errors: list[str]) -> GameEvent:
    return GameEvent(ALLOCATION_REJECTED, {
        "team": team,
        "used": used,
        "budget": budget,
        "errors": errors,
    })


def weights_computed(weights: dict[str, int]) -> GameEvent:
    return GameEvent(WEIGHTS_COMPUTED, {"W": weights})


def education_applied(team: str, delta_k: float, delta_te: int, old_im: int, new_im: int) -> GameEvent:
    return GameEvent(EDUCATION_APPLIED, {
        "team": team,
        "delta_K": delta_k,
        "delta_TE": delta_te,
        "old_IM": old_im,
        "new_IM": new_im,
    })


def basic_research_rolled(team: str, rolls: list[int], successes: int, br_total: int) -> GameEvent:
    return GameEvent(BASIC_RESEARCH_ROLLED, {
        "team": team,
        "rolls": rolls,
        "successes": successes,
        "BR_total": br_total,
    })


def applied_research_rolled(team: str, tier: str, draws: list[int], delta_tp: int, delta_tk: int) -> GameEvent:
    return GameEvent(APPLIED_RESEARCH_ROLLED, {
        "team": team,
        "tier": tier,
        "draws": draws,
        "delta_TP": delta_tp,
        "delta_TK": delta_tk,
    })


def technology_discovered(team: str, tier: str, tp: int, tk_bonus: int) -> GameEvent:
    return GameEvent(TECHNOLOGY_DISCOVERED, {
        "team": team,
        "tier": tier,
        "TP": tp,
        "TK_bonus": tk_bonus,
    })


def spy_succeeded(team: str, target: str, tier: str, raw_roll: int) -> GameEvent:
    return GameEvent(SPY_SUCCEEDED, {
        "team": team,
        "target": target,
        "tier": tier,
        "raw_roll": raw_roll,
    })


def spy_caught(team: str, target: str, tier: str, raw_roll: int, caught_count: int) -> GameEvent:
    return GameEvent(SPY_CAUGHT, {
        "team": team,
        "target": target,
        "tier": tier,
        "raw_roll": raw_roll,
        "caught_count": caught_count,
    })


def carryover_applied(team: str, unspent: int, banked: int, consumed: int) -> GameEvent:
    """
    banked: budget units carried into next round.
    consumed: carryover that was part of this round's budget.
    """
    return GameEvent(CARRYOVER_APPLIED, {
        "team": team,
        "unspent": unspent,
        "banked": banked,
        "consumed": consumed,
    })
