"""
Round resolution.
Turns one round of submissions into the next round's state, in fixed phases:
weights -> validation -> education -> basic research -> spillover -> applied research
-> espionage -> carryover -> archive.

Every phase walks teams in the ruleset's team order. Values that depend on more than
one team are derived in a read-only pass before any team is written. Resolution runs
on a copy and either returns a complete new state or raises before touching anything.
"""

import logging
from copy import deepcopy

from techrace.engine import DICE_SIDES
from techrace.engine.budget import BudgetCheck, validate_budget
from techrace.engine.carryover import apply_carryover, archive_round, round_entries, snapshot_round
from techrace.engine.definitions import GameConfig
from techrace.engine.dice import DiceRoller, team_rollers
from techrace.engine.errors import AlreadyResolved, IncompleteSubmissions, PostMaxRounds, UnknownTeam
from techrace.engine.events import (
    GameEvent,
    allocation_rejected,
    applied_research_rolled,
    basic_research_rolled,
    carryover_applied,
    education_applied,
    game_concluded,
    round_resolved,
    spy_caught,
    spy_succeeded,
    technology_discovered,
    weights_computed,
)
from techrace.engine.metrics import compute_im_weights, compute_w_from_gdp
from techrace.engine.state import DiceLogEntry, GameState, TeamAllocation, TeamState, empty_rolls

logger = logging.getLogger(__name__)


def check_resolvable(state: GameState, config: GameConfig, force: bool = False) -> None:
    """
    Raise if the current round cannot be resolved. Never mutates state.

    Raises:
        PostMaxRounds: the game has concluded
        AlreadyResolved: round_resolved is set
        UnknownTeam: a ruleset team has no state
        IncompleteSubmissions: ruleset requires every team, some are missing, and force is off
    """
    if state.concluded or state.round > config.max_rounds:
        raise PostMaxRounds(
            f"Game concluded after round {config.max_rounds}",
            round=state.round,
            max_rounds=config.max_rounds,
        )
    if state.round_resolved:
        raise AlreadyResolved(
            f"Round {state.round - 1} has already been resolved; open round {state.round} first",
            round=state.round,
        )
    missing_state = [t for t in config.teams if t not in state.teams]
    if missing_state:
        raise UnknownTeam(f"No state for teams: {', '.join(missing_state)}", teams=missing_state)
    missing = [t for t in config.teams if state.submissions.get(t) is None]
    if missing and config.require_all_submissions and not force:
        raise IncompleteSubmissions(
            f"Waiting for submissions from: {', '.join(missing)}",
            missing=missing,
        )


def resolve_round(
    state: GameState,
    config: GameConfig,
    seed: int | None = None,
    force: bool = False,
) -> tuple[GameState, list[GameEvent]]:
    """
    Resolve the current round.

    Args:
        state: Current game state (not mutated)
        config: Rules for this game
        seed: Optional seed for reproducible dice
        force: GM override; resolve with missing submissions even if the ruleset requires all teams

    Returns:
        Tuple of (new_state, events)
    """
    check_resolvable(state, config, force)

    new_state = state.copy()
    events: list[GameEvent] = []
    round_number = new_state.round
    teams = list(config.teams)

    allocations = {t: new_state.submissions.get(t) for t in teams}
    before = {t: deepcopy(new_state.teams[t]) for t in teams}
    rollers = team_rollers(teams, seed)

    # Per-round roll records start empty for every team, rejected ones included
    for t in teams:
        new_state.teams[t].br_succ = 0
        new_state.teams[t].rolls_saved = empty_rolls(config.techs)

    _recompute_weights(new_state, config, events)
    checks, accepted = _validate_submissions(new_state, config, allocations, events)

    _apply_education(new_state, config, accepted, checks, events)
    _resolve_basic_research(new_state, config, accepted, rollers, events)
    _recompute_br_effective(new_state, config)
    _resolve_applied_research(new_state, config, accepted, rollers, events)
    _resolve_espionage(new_state, config, accepted, rollers, events)
    _settle_carryover(new_state, accepted, checks, events)

    rejected = [t for t in teams if t not in accepted]
    _archive_and_advance(new_state, config, round_number, allocations, before, rejected, events)

    logger.info(
        "Resolved round %d (%d accepted, %d rejected)",
        round_number, len(accepted), len(rejected),
    )
    return new_state, events


# ===== Phase 1: Weights =====

def _recompute_weights(state: GameState, config: GameConfig, events: list[GameEvent]) -> None:
    weights = compute_w_from_gdp([state.teams[t].gdp for t in config.teams], config)
    for t, w in zip(config.teams, weights):
        state.teams[t].w = w
    events.append(weights_computed(dict(zip(config.teams, weights))))


# ===== Phase 2: Validation =====

def _validate_submissions(
    state: GameState,
    config: GameConfig,
    allocations: dict[str, TeamAllocation | None],
    events: list[GameEvent],
) -> tuple[dict[str, BudgetCheck], dict[str, TeamAllocation]]:
    """
    Price every submission against this round's W.
    Missing submissions abstain (all-zero). Rejected teams are left out of `accepted`
    and receive no effects this round.
    """
    checks: dict[str, BudgetCheck] = {}
    accepted: dict[str, TeamAllocation] = {}
    for t in config.teams:
        ts = state.teams[t]
        alloc = allocations.get(t) or TeamAllocation.empty(config.techs)
        check = validate_budget(
            ts.w, alloc, ts.pop, state.teams, config.techs,
            carryover=ts.pending_w_carryover,
            acting_team=t,
        )
        checks[t] = check
        logger.debug("%s allocation costs %s (used %d / %d)", t, check.costs, check.used, check.budget)
        if check.ok:
            accepted[t] = alloc
            continue
        reason = "; ".join(check.errors) if check.errors else "over budget"
        state.post_private(
            t,
            f"Allocation rejected ({reason}): used {check.used} of {check.budget} budget units. "
            f"No actions were applied this round.",
        )
        events.append(allocation_rejected(t, check.used, check.budget, list(check.errors)))
        logger.info("Rejected %s allocation for round %d: %s", t, state.round, reason)
    return checks, accepted


# ===== Phase 3: Education & Immigration =====

def _apply_education(
    state: GameState,
    config: GameConfig,
    accepted: dict[str, TeamAllocation],
    checks: dict[str, BudgetCheck],
    events: list[GameEvent],
) -> None:
    # Read pass: next IM stances and the pull they produce
    next_im: dict[str, int] = {}
    for t in config.teams:
        ts = state.teams[t]
        alloc = accepted.get(t)
        if alloc is not None and alloc.im == "open":
            next_im[t] = 1
        elif alloc is not None and alloc.im == "close":
            next_im[t] = 0
        else:
            next_im[t] = ts.im
    im_weights = compute_im_weights(state.teams, config.teams, im_override=next_im)

    # Write pass
    for t in config.teams:
        alloc = accepted.get(t)
        if alloc is None:
            continue
        ts = state.teams[t]
        delta_k = 0.0
        if alloc.se > 0:
            delta_k += ts.se * checks[t].costs["SE"] * config.se_k_factor
        delta_te = config.te_gain if alloc.te > 0 else 0
        engaged = alloc.im != "none" or alloc.se > 0 or alloc.te > 0
        if next_im[t] == 1 and engaged:
            delta_k += config.im_k_gain * im_weights[t]

        old_im = ts.im
        ts.k += delta_k
        ts.te += delta_te
        ts.im = next_im[t]

        if delta_k or delta_te or old_im != ts.im:
            ts.dice_log.append(DiceLogEntry(
                round=state.round,
                phase="EDU",
                delta_im=ts.im - old_im,
            ))
            events.append(education_applied(t, delta_k, delta_te, old_im, ts.im))


# ===== Phase 4: Basic Research =====

def _resolve_basic_research(
    state: GameState,
    config: GameConfig,
    accepted: dict[str, TeamAllocation],
    rollers: dict[str, DiceRoller],
    events: list[GameEvent],
) -> None:
    success_min = config.tech_info[config.br_success_tier].ar_thr
    for t in config.teams:
        alloc = accepted.get(t)
        if alloc is None or alloc.br <= 0:
            continue
        ts = state.teams[t]
        rolls = rollers[t].roll(alloc.br)
        successes = sum(1 for r in rolls if r >= success_min)
        ts.br_succ = successes
        ts.br_total += successes
        for tier in config.techs:
            thr = config.tech_info[tier].ar_thr
            state.global_br_pool[tier] = state.global_br_pool.get(tier, 0) + sum(1 for r in rolls if r >= thr)
        ts.rolls_saved["BR"] = rolls
        ts.dice_log.append(DiceLogEntry(round=state.round, phase="BR", rolls=rolls))
        events.append(basic_research_rolled(t, rolls, successes, ts.br_total))
        logger.debug("%s basic research rolls %s -> %d successes", t, rolls, successes)


# ===== Phase 5: Spillover =====

def _recompute_br_effective(state: GameState, config: GameConfig) -> None:
    totals = {t: state.teams[t].br_total for t in config.teams}
    grand_total = sum(totals.values())
    for t in config.teams:
        state.teams[t].br_effective = totals[t] + config.br_spillover * (grand_total - totals[t])


# ===== Phase 6: Applied Research & Discovery =====

def _tier_unlocked(ts: TeamState, tier: str, config: GameConfig) -> bool:
    req = config.requirement(tier)
    return (
        ts.tp.get(tier, 0) >= config.tp_threshold[tier]
        and ts.br_effective >= config.tech_info[tier].br_req
        and ts.k >= req.k_min
        and ts.tk >= req.tk_min
    )


def _resolve_applied_research(
    state: GameState,
    config: GameConfig,
    accepted: dict[str, TeamAllocation],
    rollers: dict[str, DiceRoller],
    events: list[GameEvent],
) -> None:
    for t in config.teams:
        alloc = accepted.get(t)
        if alloc is None:
            continue
        ts = state.teams[t]
        ts.tp_last_round = dict(ts.tp)
        tk_at_start = ts.tk

        for tier in config.techs:
            n = alloc.ar.get(tier, 0)
            if n <= 0:
                continue
            rules = config.tech_info[tier]
            draws = rollers[t].draw(rules, n, tk_at_start)
            delta_tp = sum(draws)
            delta_tk = sum(1 for d in draws if d >= rules.ar_thr)
            ts.tp[tier] = ts.tp.get(tier, 0) + delta_tp
            ts.tk += delta_tk
            ts.rolls_saved["AR"][tier] = draws
            ts.dice_log.append(DiceLogEntry(
                round=state.round,
                phase="AR",
                tech=tier,
                rolls=draws,
                delta_tk=delta_tk,
                delta_tp=delta_tp,
            ))
            events.append(applied_research_rolled(t, tier, draws, delta_tp, delta_tk))

        for tier in config.techs:
            if ts.discovered.get(tier) or not _tier_unlocked(ts, tier, config):
                continue
            bonus = config.tech_info[tier].discovery_tk
            ts.discovered[tier] = True
            ts.tk += bonus
            ts.dice_log.append(DiceLogEntry(round=state.round, phase="DISC", tech=tier, delta_tk=bonus))
            state.post_private(t, f"Breakthrough: {tier}-tier technology discovered ({ts.tp[tier]} TP).")
            events.append(technology_discovered(t, tier, ts.tp[tier], bonus))
            logger.info("%s discovered %s-tier technology in round %d", t, tier, state.round)


# ===== Phase 7: Espionage =====

def _resolve_espionage(
    state: GameState,
    config: GameConfig,
    accepted: dict[str, TeamAllocation],
    rollers: dict[str, DiceRoller],
    events: list[GameEvent],
) -> None:
    # Read pass: what each target looks like to a successful spy this round
    intel = {
        t: {
            "regime": state.teams[t].regime,
            "TP": dict(state.teams[t].tp),
            "discovered": dict(state.teams[t].discovered),
        }
        for t in config.teams
    }

    for t in config.teams:
        alloc = accepted.get(t)
        if alloc is None:
            continue
        actions = alloc.active_spy_actions()
        if not actions:
            continue
        ts = state.teams[t]
        saved = []
        for spy in actions:
            target, tier = spy.target, spy.tech
            raw_roll = rollers[t].roll(1)[0]
            needed = config.spy_success_min.get(intel[target]["regime"], DICE_SIDES)
            saved.append({"raw_roll": raw_roll, "target": target, "tech": tier})

            if raw_roll >= needed:
                ts.spy_revealed.setdefault(target, {})[tier] = True
                ts.tk += config.spy_tk_gain
                tp = intel[target]["TP"].get(tier, 0)
                status = "discovered" if intel[target]["discovered"].get(tier) else "not yet discovered"
                state.post_private(
                    t,
                    f"Espionage on {target} ({tier}) succeeded: {tp}/{config.tp_threshold[tier]} TP, {status}.",
                )
                events.append(spy_succeeded(t, target, tier, raw_roll))
                result = "revealed"
            else:
                counts = ts.spy_caught_count.setdefault(target, {})
                counts[tier] = counts.get(tier, 0) + 1
                state.post_public(f"{t} was caught spying on {target}'s {tier}-tier program.")
                events.append(spy_caught(t, target, tier, raw_roll, counts[tier]))
                logger.info("%s caught spying on %s (%s)", t, target, tier)
                result = "caught"

            ts.dice_log.append(DiceLogEntry(
                round=state.round,
                phase="SP",
                tech=tier,
                rolls=[raw_roll],
                delta_tk=config.spy_tk_gain if result == "revealed" else 0,
                sp_result=f"{target}:{result}",
            ))
        ts.rolls_saved["SP"] = saved


# ===== Phase 8: Carryover =====

def _settle_carryover(
    state: GameState,
    accepted: dict[str, TeamAllocation],
    checks: dict[str, BudgetCheck],
    events: list[GameEvent],
) -> None:
    for t in accepted:
        check = checks[t]
        unspent, banked, consumed = apply_carryover(state.teams[t], check.budget, check.used)
        events.append(carryover_applied(t, unspent, banked, consumed))


# ===== Phase 9: Archive =====

def _archive_and_advance(
    state: GameState,
    config: GameConfig,
    round_number: int,
    allocations: dict[str, TeamAllocation | None],
    before: dict[str, TeamState],
    rejected: list[str],
    events: list[GameEvent],
) -> None:
    final_round = round_number >= config.max_rounds

    state.post_public(f"Round {round_number} resolved.")
    if final_round:
        state.post_public(f"Game concluded after round {round_number}.")

    for t in config.teams:
        state.teams[t].submitted = False

    public, private = round_entries(state, round_number)
    entry = snapshot_round(
        round_number,
        allocations,
        before,
        {t: state.teams[t] for t in config.teams},
        public,
        private,
    )
    state.history = archive_round(state.history, entry)

    state.submissions = {t: None for t in config.teams}
    state.round = round_number + 1
    state.round_resolved = True
    events.append(round_resolved(round_number, state.round, rejected))

    if final_round:
        state.concluded = True
        discoveries = {
            t: [tier for tier in config.techs if state.teams[t].discovered.get(tier)]
            for t in config.teams
        }
        events.append(game_concluded(round_number, discoveries))
        logger.info("Game concluded after round %d", round_number)
