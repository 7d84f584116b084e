"""
Handlers a hosting service calls with a stored snapshot and a raw payload.
Each returns a JSON-serializable dict:
    {"ok": True, "state": {...}, "events": [...]}  or  {"ok": False, "error": {"code", "message", ...}}
Persistence, transport and access control stay with the caller.
"""

import logging
from typing import Any

from pydantic import ValidationError

from techrace.config import DEFAULT_RULESET_ID
from techrace.engine.actions import Action, open_round, resolve_round, start_game, submit_allocation, withdraw_allocation
from techrace.engine.definitions import GameConfig, list_rulesets, load_ruleset
from techrace.engine.errors import EngineError
from techrace.engine.queries import get_game_summary, get_public_view, get_team_view, validate_allocation
from techrace.engine.reducer import apply_action
from techrace.engine.state import GameState
from techrace.engine.utils import initialize_game_state

from .schemas import ResolveRoundRequest, SubmitAllocationRequest, ValidateAllocationRequest

logger = logging.getLogger(__name__)


def _error(code: str, message: str, **extra: Any) -> dict[str, Any]:
    error = {"code": code, "message": message}
    error.update(extra)
    return {"ok": False, "error": error}


def _invalid_payload(exc: ValidationError) -> dict[str, Any]:
    return _error(
        "invalid_payload",
        "Payload failed validation",
        errors=exc.errors(include_url=False, include_context=False, include_input=False),
    )


def _run(state_data: dict[str, Any], action: Action, config: GameConfig) -> dict[str, Any]:
    """Apply one action to a stored snapshot. Errors come back as data, never as a half-updated state."""
    state = GameState.from_dict(state_data)
    try:
        new_state, events = apply_action(state, action, config)
    except EngineError as e:
        logger.info("%s refused for %s: %s", action.type, action.role, e.message)
        return {"ok": False, "error": e.to_dict()}
    except ValueError as e:
        logger.info("%s refused for %s: %s", action.type, action.role, e)
        return _error("rejected", str(e))
    return {
        "ok": True,
        "state": new_state.to_dict(),
        "events": [evt.to_dict() for evt in events],
    }


# ===== Game setup =====

def available_rulesets() -> list[dict]:
    return list_rulesets()


def new_game(ruleset_id: str | None = None) -> dict[str, Any]:
    """Fresh snapshot plus the config snapshot the caller should store with it."""
    try:
        config = load_ruleset(ruleset_id or DEFAULT_RULESET_ID)
    except FileNotFoundError as e:
        return _error("unknown_ruleset", str(e))
    state = initialize_game_state(config)
    return {"ok": True, "state": state.to_dict(), "config": config.to_dict()}


# ===== Actions =====

def handle_start_game(state_data: dict[str, Any], config: GameConfig) -> dict[str, Any]:
    return _run(state_data, start_game(), config)


def handle_open_round(state_data: dict[str, Any], config: GameConfig) -> dict[str, Any]:
    return _run(state_data, open_round(), config)


def handle_submit(state_data: dict[str, Any], payload: dict[str, Any], config: GameConfig) -> dict[str, Any]:
    try:
        request = SubmitAllocationRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_payload(e)
    return _run(state_data, submit_allocation(request.team, request.allocation.to_allocation()), config)


def handle_withdraw(state_data: dict[str, Any], team: str, config: GameConfig) -> dict[str, Any]:
    return _run(state_data, withdraw_allocation(team), config)


def handle_resolve(
    state_data: dict[str, Any],
    payload: dict[str, Any] | None,
    config: GameConfig,
) -> dict[str, Any]:
    try:
        request = ResolveRoundRequest.model_validate(payload or {})
    except ValidationError as e:
        return _invalid_payload(e)
    return _run(state_data, resolve_round(force=request.force, seed=request.seed), config)


# ===== Queries =====

def handle_validate(state_data: dict[str, Any], payload: dict[str, Any], config: GameConfig) -> dict[str, Any]:
    """Pre-submission budget feedback: {"ok": True, "result": {"ok", "used", "budget", ...}}."""
    try:
        request = ValidateAllocationRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_payload(e)
    state = GameState.from_dict(state_data)
    try:
        check = validate_allocation(request.team, request.allocation.to_allocation(), state, config)
    except ValueError as e:
        return _error("unknown_team", str(e))
    return {"ok": True, "result": check.to_dict()}


def handle_team_view(state_data: dict[str, Any], team: str) -> dict[str, Any]:
    state = GameState.from_dict(state_data)
    try:
        return {"ok": True, "view": get_team_view(state, team)}
    except ValueError as e:
        return _error("unknown_team", str(e))


def handle_public_view(state_data: dict[str, Any]) -> dict[str, Any]:
    return {"ok": True, "view": get_public_view(GameState.from_dict(state_data))}


def handle_summary(state_data: dict[str, Any], config: GameConfig) -> dict[str, Any]:
    return {"ok": True, "summary": get_game_summary(GameState.from_dict(state_data), config)}
