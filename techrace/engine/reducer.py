"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.
"""

import logging
from copy import deepcopy

from techrace.engine import GM_ROLE
from techrace.engine.actions import Action
from techrace.engine.definitions import GameConfig
from techrace.engine.errors import GameNotReady, InvalidAllocation, PostMaxRounds, UnknownTeam
from techrace.engine.events import (
    GameEvent,
    allocation_submitted,
    allocation_withdrawn,
    game_started,
    round_opened,
)
from techrace.engine.queries import validate_allocation
from techrace.engine.resolver import resolve_round
from techrace.engine.state import GameState, TeamAllocation

logger = logging.getLogger(__name__)

# Role rules: which action types each kind of role may send
ROLE_ALLOWED_ACTIONS = {
    "gm": ["start_game", "open_round", "resolve_round"],
    "team": ["submit_allocation", "withdraw_allocation"],
}


def _validate_action_for_role(action: Action, config: GameConfig) -> None:
    """Reject actions from unknown teams and actions a role may not send."""
    if action.role == GM_ROLE:
        kind = "gm"
    elif action.role in config.teams:
        kind = "team"
    else:
        raise UnknownTeam(f"Unknown team: {action.role}", team=action.role)

    allowed_actions = ROLE_ALLOWED_ACTIONS[kind]
    if action.type not in allowed_actions:
        raise ValueError(
            f"Action '{action.type}' is not allowed for {action.role}. "
            f"Allowed actions: {', '.join(allowed_actions)}"
        )


def apply_action(
    state: GameState,
    action: Action,
    config: GameConfig,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - Action role is the GM or a team in this game
    - Action type is allowed for that role
    - Game has not concluded

    Args:
        state: Current game state (not mutated)
        action: Action to apply
        config: Rules for this game

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    _validate_action_for_role(action, config)

    if state.concluded:
        raise PostMaxRounds(f"Game concluded after round {config.max_rounds}", round=state.round)

    if action.type == "resolve_round":
        # Resolver copies the state itself and checks its own preconditions
        return resolve_round(
            state,
            config,
            seed=action.payload.get("seed"),
            force=bool(action.payload.get("force", False)),
        )

    new_state = state.copy()
    events: list[GameEvent] = []

    if action.type == "start_game":
        new_state, evts = _handle_start_game(new_state)
        events.extend(evts)

    elif action.type == "open_round":
        new_state, evts = _handle_open_round(new_state)
        events.extend(evts)

    elif action.type == "submit_allocation":
        new_state, evts = _handle_submit_allocation(new_state, action, config)
        events.extend(evts)

    elif action.type == "withdraw_allocation":
        new_state, evts = _handle_withdraw_allocation(new_state, action)
        events.extend(evts)

    else:
        raise ValueError(f"Unknown action type: {action.type}")

    return new_state, events


def _handle_start_game(state: GameState) -> tuple[GameState, list[GameEvent]]:
    if state.game_ready:
        raise ValueError("Game already started")
    state.game_ready = True
    state.post_public(f"Game started. Round {state.round} is open for allocations.")
    logger.info("Game started at round %d", state.round)
    return state, [game_started(state.round)]


def _open_round(state: GameState) -> GameEvent:
    state.round_resolved = False
    state.post_public(f"Round {state.round} is open for allocations.")
    return round_opened(state.round)


def _handle_open_round(state: GameState) -> tuple[GameState, list[GameEvent]]:
    """Begin the allocation cycle for the current round after a resolution."""
    if not state.game_ready:
        raise GameNotReady("Game has not started")
    if not state.round_resolved:
        raise ValueError(f"Round {state.round} is already open")
    return state, [_open_round(state)]


def _handle_submit_allocation(
    state: GameState,
    action: Action,
    config: GameConfig,
) -> tuple[GameState, list[GameEvent]]:
    """
    Store a team's allocation for the current round (last write wins).

    Malformed allocations (unknown tiers or targets, negative counts, self-espionage)
    are refused here. Over-budget allocations are stored and rejected when the round
    resolves, so the team sees the rejection in its private log.
    """
    events: list[GameEvent] = []
    team = action.role
    allocation = action.payload.get("allocation")
    if not isinstance(allocation, TeamAllocation):
        raise InvalidAllocation("Submission carries no allocation", team=team)

    if not state.game_ready:
        raise GameNotReady("Game has not started")

    check = validate_allocation(team, allocation, state, config)
    if check.errors:
        raise InvalidAllocation("; ".join(check.errors), team=team, errors=check.errors)

    if state.round_resolved:
        events.append(_open_round(state))

    state.submissions[team] = deepcopy(allocation)
    state.teams[team].submitted = True
    if not check.ok:
        logger.info("%s submitted an over-budget allocation (%d / %d)", team, check.used, check.budget)
    events.append(allocation_submitted(team, state.round, check.ok, check.used, check.budget))
    return state, events


def _handle_withdraw_allocation(state: GameState, action: Action) -> tuple[GameState, list[GameEvent]]:
    team = action.role
    if state.submissions.get(team) is None:
        raise ValueError(f"{team} has no submission to withdraw")
    state.submissions[team] = None
    state.teams[team].submitted = False
    return state, [allocation_withdrawn(team, state.round)]


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    config: GameConfig,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of actions from an initial state.
    Event sourcing: state is derived from action log. Resolve actions need a seed
    to reproduce the same dice.

    Args:
        initial_state: Starting game state
        actions: List of actions to apply in sequence
        config: Rules for this game

    Returns:
        Tuple of (final_state, all_events) after all actions applied
    """
    current_state = initial_state.copy()
    all_events: list[GameEvent] = []

    for action in actions:
        current_state, events = apply_action(current_state, action, config)
        all_events.extend(events)

    return current_state, all_events
