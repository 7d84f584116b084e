"""
Query functions for UI integration.
These functions help a client show budgets, intel and available actions
without mutating game state.
"""

from dataclasses import dataclass
from typing import Any

from techrace.engine import GM_ROLE
from techrace.engine.actions import Action
from techrace.engine.budget import BudgetCheck, validate_budget
from techrace.engine.definitions import GameConfig
from techrace.engine.metrics import compute_w_from_gdp
from techrace.engine.state import GameState, TeamAllocation

AWAITING_SUBMISSIONS = "awaiting_submissions"
RESOLVED = "resolved"
CONCLUDED = "concluded"

# Role rules: which action types each kind of role may send
# (duplicated from reducer to avoid circular imports)
ROLE_ALLOWED_ACTIONS = {
    "gm": ["start_game", "open_round", "resolve_round"],
    "team": ["submit_allocation", "withdraw_allocation"],
}


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


# ===== Budget =====

def current_weights(state: GameState, config: GameConfig) -> dict[str, int]:
    """W for every team as the next resolution will compute it."""
    weights = compute_w_from_gdp([state.teams[t].gdp for t in config.teams], config)
    return dict(zip(config.teams, weights))


def validate_allocation(
    team: str,
    allocation: TeamAllocation,
    state: GameState,
    config: GameConfig,
) -> BudgetCheck:
    """
    Price an allocation for `team` exactly as resolution will, for pre-submission feedback.
    Raises ValueError for a team the game does not know.
    """
    if team not in config.teams or team not in state.teams:
        raise ValueError(f"Unknown team: {team}")
    ts = state.teams[team]
    w = current_weights(state, config)[team]
    return validate_budget(
        w, allocation, ts.pop, state.teams, config.techs,
        carryover=ts.pending_w_carryover,
        acting_team=team,
    )


# ===== Round status =====

def round_phase(state: GameState, config: GameConfig) -> str:
    if state.concluded or state.round > config.max_rounds:
        return CONCLUDED
    if state.round_resolved:
        return RESOLVED
    return AWAITING_SUBMISSIONS


def missing_submissions(state: GameState, config: GameConfig) -> list[str]:
    return [t for t in config.teams if state.submissions.get(t) is None]


def get_available_action_types(state: GameState, role: str, config: GameConfig) -> list[str]:
    phase = round_phase(state, config)
    if phase == CONCLUDED:
        return []
    if role == GM_ROLE:
        if not state.game_ready:
            return ["start_game"]
        return ["open_round"] if phase == RESOLVED else ["resolve_round"]
    if role in config.teams and state.game_ready:
        if state.submissions.get(role) is not None:
            return ["submit_allocation", "withdraw_allocation"]
        return ["submit_allocation"]
    return []


def validate_action(state: GameState, action: Action, config: GameConfig) -> ValidationResult:
    """
    Validate an action without applying it.
    Returns ValidationResult with valid=True or valid=False with error message.
    """
    kind = "gm" if action.role == GM_ROLE else "team"
    if kind == "team" and action.role not in config.teams:
        return ValidationResult(False, f"Unknown team: {action.role}")
    if action.type not in ROLE_ALLOWED_ACTIONS[kind]:
        return ValidationResult(False, f"{action.role} cannot {action.type}")
    if action.type in get_available_action_types(state, action.role, config):
        if action.type == "submit_allocation":
            check = validate_allocation(action.role, action.payload["allocation"], state, config)
            if check.errors:
                return ValidationResult(False, "; ".join(check.errors))
        return ValidationResult(True)

    phase = round_phase(state, config)
    if phase == CONCLUDED:
        return ValidationResult(False, f"Game concluded after round {config.max_rounds}")
    if not state.game_ready and action.type != "start_game":
        return ValidationResult(False, "Game has not started")
    if action.type == "start_game":
        return ValidationResult(False, "Game already started")
    return ValidationResult(False, f"Cannot {action.type} while round {state.round} is {phase}")


# ===== Views =====

def get_revealed_intel(state: GameState, team: str) -> dict[str, dict[str, dict[str, Any]]]:
    """Target progress `team` has uncovered by espionage: target -> tier -> {TP, discovered}."""
    ts = state.teams.get(team)
    if not ts:
        return {}
    intel: dict[str, dict[str, dict[str, Any]]] = {}
    for target, tiers in ts.spy_revealed.items():
        target_state = state.teams.get(target)
        if not target_state:
            continue
        for tier, revealed in tiers.items():
            if revealed:
                intel.setdefault(target, {})[tier] = {
                    "TP": target_state.tp.get(tier, 0),
                    "discovered": target_state.discovered.get(tier, False),
                }
    return intel


def get_team_view(state: GameState, team: str) -> dict[str, Any]:
    """Everything `team` may see: own state, own private log, public log, revealed intel."""
    ts = state.teams.get(team)
    if not ts:
        raise ValueError(f"Unknown team: {team}")
    submission = state.submissions.get(team)
    return {
        "round": state.round,
        "team": team,
        "state": ts.to_dict(),
        "submission": submission.to_dict() if submission is not None else None,
        "private_log": [e.to_dict() for e in state.private_logs.get(team, [])],
        "public_log": [e.to_dict() for e in state.public_log],
        "intel": get_revealed_intel(state, team),
    }


def get_public_view(state: GameState) -> dict[str, Any]:
    """What every participant can see."""
    return {
        "round": state.round,
        "game_ready": state.game_ready,
        "round_resolved": state.round_resolved,
        "concluded": state.concluded,
        "submitted": {t: state.submissions.get(t) is not None for t in state.teams},
        "public_log": [e.to_dict() for e in state.public_log],
    }


def get_game_summary(state: GameState, config: GameConfig) -> dict[str, Any]:
    """GM overview of the whole game."""
    return {
        "round": state.round,
        "max_rounds": config.max_rounds,
        "phase": round_phase(state, config),
        "missing_submissions": missing_submissions(state, config),
        "global_BR_pool": dict(state.global_br_pool),
        "rounds_archived": len(state.history),
        "teams": {
            t: {
                "W": ts.w,
                "K": ts.k,
                "TK": ts.tk,
                "BR_total": ts.br_total,
                "BR_effective": ts.br_effective,
                "TP": dict(ts.tp),
                "discovered": [tier for tier in config.techs if ts.discovered.get(tier)],
                "pending_carryover": ts.pending_w_carryover,
            }
            for t, ts in state.teams.items()
        },
    }
