"""
Dice and probability.
Every tier shares one two-outcome draw; tier behaviour lives entirely in its TierRules row.
Each team rolls with its own DiceRoller so no random state crosses team boundaries.
"""

import random
from typing import TYPE_CHECKING

from techrace.engine import DICE_SIDES

if TYPE_CHECKING:
    from techrace.engine.definitions import TierRules


def p_high(rules: "TierRules", tk: float) -> float:
    """Probability of the high outcome at technical knowledge `tk` (flat beyond tk_ref)."""
    x = min(max(tk, 0) / rules.tk_ref, 1)
    return rules.base_p + (rules.max_p - rules.base_p) * x


def draw_tier(rules: "TierRules", n: int, tk: float, rng: random.Random) -> list[int]:
    """Draw `n` applied research dice for one tier. Each value is rules.low or rules.high."""
    p = p_high(rules, tk)
    return [rules.high if rng.random() < p else rules.low for _ in range(max(0, n))]


def roll_d6(n: int, rng: random.Random) -> list[int]:
    return [rng.randint(1, DICE_SIDES) for _ in range(max(0, n))]


class DiceRoller:
    """Independent random source for one team within one resolution."""

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self.random = random.Random(seed)

    def roll(self, n: int) -> list[int]:
        return roll_d6(n, self.random)

    def draw(self, rules: "TierRules", n: int, tk: float) -> list[int]:
        return draw_tier(rules, n, tk, self.random)


def team_rollers(teams: tuple[str, ...] | list[str], seed: int | None = None) -> dict[str, DiceRoller]:
    """
    One roller per team.

    With a seed, each team's stream is derived from (seed, team position), so a
    resolution is reproducible. Without one, every roller seeds from system entropy.
    """
    if seed is None:
        return {t: DiceRoller() for t in teams}
    return {t: DiceRoller(seed * 1009 + i) for i, t in enumerate(teams)}
