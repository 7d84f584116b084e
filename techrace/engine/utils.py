"""
Utility functions for the game engine.
"""

from techrace.engine.definitions import GameConfig, load_ruleset
from techrace.engine.metrics import compute_initial_k, compute_w_from_gdp
from techrace.engine.state import GameState, TeamState, empty_rolls


def empty_team_state(team: str, config: GameConfig) -> TeamState:
    """
    Fresh TeamState for `team` from the ruleset's starting values.
    W is left at 0; initialize_game_state fills it in jointly for all teams.
    """
    init = config.init_by_team[team]
    others = [t for t in config.teams if t != team]
    return TeamState(
        gdp=init.GDP,
        pop=init.POP,
        w=0,
        se=init.SE,
        te=init.TE,
        im=init.IM,
        regime=init.regime,
        k=compute_initial_k(init.SE, init.TE, config.k_scale),
        tk=0,
        tp={tier: 0 for tier in config.techs},
        tp_last_round={tier: 0 for tier in config.techs},
        discovered={tier: False for tier in config.techs},
        spy_revealed={t: {tier: False for tier in config.techs} for t in others},
        spy_caught_count={t: {tier: 0 for tier in config.techs} for t in others},
        rolls_saved=empty_rolls(config.techs),
        carry_fraction=config.carry_fraction,
    )


def initialize_game_state(config: GameConfig | None = None) -> GameState:
    """
    Create an initial game state with every team set up for round 1.

    Args:
        config: Rules to use (default: the default ruleset)

    Returns:
        GameState with game_ready False; the GM starts the game.
    """
    if config is None:
        config = load_ruleset()

    teams = {t: empty_team_state(t, config) for t in config.teams}
    weights = compute_w_from_gdp([teams[t].gdp for t in config.teams], config)
    for t, w in zip(config.teams, weights):
        teams[t].w = w

    return GameState(
        round=1,
        teams=teams,
        submissions={t: None for t in config.teams},
        global_br_pool={tier: 0 for tier in config.techs},
        public_log=[],
        private_logs={t: [] for t in config.teams},
        game_ready=False,
    )


def print_game_state(state: GameState, config: GameConfig, verbose: bool = False):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        config: Rules (team and tier order)
        verbose: If True, also show espionage flags and carryover
    """
    status = "concluded" if state.concluded else ("resolved" if state.round_resolved else "open")
    print(f"\n{'='*60}")
    print(f"Round {state.round}/{config.max_rounds} | Status: {status} | Ready: {state.game_ready}")
    print(f"{'='*60}")

    for team in config.teams:
        ts = state.teams[team]
        tp_str = ", ".join(f"{tier}: {ts.tp.get(tier, 0)}" for tier in config.techs)
        disc = [tier for tier in config.techs if ts.discovered.get(tier)]
        print(f"\n{team} ({ts.regime}) W={ts.w} K={ts.k:g} TK={ts.tk:g} IM={ts.im}")
        print(f"  BR total={ts.br_total} effective={ts.br_effective:g}")
        print(f"  TP: {tp_str} | discovered: {', '.join(disc) or 'none'}")
        if verbose:
            revealed = [
                f"{target}:{tier}"
                for target, tiers in ts.spy_revealed.items()
                for tier, flag in tiers.items() if flag
            ]
            print(f"  revealed: {', '.join(revealed) or 'none'}")
            print(f"  carryover pending={ts.pending_w_carryover} last={ts.last_carryover} unspent={ts.unspent_dice}")

    print(f"\n{'Global BR pool':.<40}")
    print("  " + ", ".join(f"{tier}: {n}" for tier, n in state.global_br_pool.items()))
    print()
