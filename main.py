"""
Main entry point for the Tech Race Round Engine.
Plays a full game with random in-budget allocations and prints the state each round.
"""

import logging
import random
import sys

from techrace.engine.actions import resolve_round, start_game, submit_allocation
from techrace.engine.definitions import GameConfig, load_ruleset
from techrace.engine.queries import validate_allocation
from techrace.engine.reducer import apply_action
from techrace.engine.state import GameState, SpyAction, TeamAllocation
from techrace.engine.utils import initialize_game_state, print_game_state


def random_allocation(team: str, state: GameState, config: GameConfig, rng: random.Random) -> TeamAllocation:
    """Add random choices one at a time, keeping only those that stay within budget."""
    alloc = TeamAllocation.empty(config.techs)
    alloc.im = rng.choice(["none", "none", "open", "close"])
    others = [t for t in config.teams if t != team]

    def try_add(change) -> None:
        candidate = TeamAllocation(
            se=alloc.se, te=alloc.te, im=alloc.im, br=alloc.br,
            ar=dict(alloc.ar), sp=list(alloc.sp),
        )
        change(candidate)
        if validate_allocation(team, candidate, state, config).ok:
            alloc.se, alloc.te, alloc.br = candidate.se, candidate.te, candidate.br
            alloc.ar, alloc.sp = candidate.ar, candidate.sp

    if rng.random() < 0.5:
        try_add(lambda a: setattr(a, "se", 1))
    if rng.random() < 0.5:
        try_add(lambda a: setattr(a, "te", 1))
    for _ in range(rng.randint(0, 4)):
        try_add(lambda a: setattr(a, "br", a.br + 1))
    for _ in range(rng.randint(0, 5)):
        tier = rng.choice(config.techs)
        try_add(lambda a, tier=tier: a.ar.__setitem__(tier, a.ar[tier] + 1))
    if rng.random() < 0.3:
        spy = SpyAction(target=rng.choice(others), tech=rng.choice(config.techs))
        try_add(lambda a: a.sp.append(spy))
    return alloc


def main(seed: int = 7):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("Tech Race Round Engine")
    print("=" * 60)

    config = load_ruleset()
    state = initialize_game_state(config)
    rng = random.Random(seed)

    print("\n[INITIAL STATE]")
    print_game_state(state, config)

    state, _ = apply_action(state, start_game(), config)

    while not state.concluded:
        for team in config.teams:
            alloc = random_allocation(team, state, config, rng)
            state, _ = apply_action(state, submit_allocation(team, alloc), config)

        try:
            state, events = apply_action(state, resolve_round(seed=rng.randint(0, 10**6)), config)
        except ValueError as e:
            print(f"✗ Resolution failed: {e}")
            return 1

        print(f"\n[ROUND {state.round - 1} RESOLVED]")
        print(f"  Events: {sorted({e.type for e in events})}")
        for entry in state.history[-1].public_log:
            print(f"  public: {entry['event']}")
        print_game_state(state, config)

    print("=" * 60)
    print("Final discoveries:")
    for team in config.teams:
        found = [tier for tier in config.techs if state.teams[team].discovered.get(tier)]
        print(f"  {team}: {', '.join(found) or 'none'}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
