"""
Metric normalization.
Turns raw per-team economics (GDP, POP) and education capacity into comparative weights.
All functions are pure; callers pass values in fixed team order and get results in the same order.
"""

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from techrace.engine.definitions import GameConfig
    from techrace.engine.state import TeamState


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def normalize_metric(values: list[float], exponent: float, baseline: float) -> list[float]:
    """
    Dampen scale differences with `exponent`, then rescale so the mean of the output is `baseline`.

    A zero input with a positive exponent stays zero (scarcity is not smoothed away).
    If every scaled value is zero there is nothing to compare and every output is zero.
    Equal inputs map to exactly `baseline`, so ceil() downstream cannot round them up.
    """
    scaled = [math.pow(v, exponent) for v in values]
    mean_scaled = _mean(scaled)
    if mean_scaled == 0:
        return [0.0 for _ in scaled]
    if all(v == scaled[0] for v in scaled):
        return [float(baseline) for _ in scaled]
    return [baseline * (v / mean_scaled) for v in scaled]


def compute_w_from_gdp(gdp_values: list[float], config: "GameConfig") -> list[int]:
    """Budget weight W per team. Rounded up so no team is shorted its share."""
    normed = normalize_metric(gdp_values, config.gdp_weight_exponent, config.gdp_baseline)
    return [math.ceil(v) for v in normed]


def compute_pop_weights(pop_values: list[float], config: "GameConfig") -> list[float]:
    return normalize_metric(pop_values, config.pop_weight_exponent, 1)


def compute_initial_k(se: int, te: int, scale: float = 1) -> float:
    return scale * (se + te)


def compute_im_weights(
    teams_state: dict[str, "TeamState"],
    teams: tuple[str, ...] | list[str],
    im_override: dict[str, int] | None = None,
) -> dict[str, float]:
    """
    Immigration pull per team, mean 1.

    pull = W * TE. Closed-border teams (IM == 0) are capped at parity before the
    final rescale. `im_override` lets the resolver evaluate next-round IM stances
    without writing them into team state first.
    """
    im_override = im_override or {}
    w = [teams_state[t].w for t in teams]
    te = [teams_state[t].te for t in teams]
    im = [im_override.get(t, teams_state[t].im) for t in teams]

    pull = [wi * tei for wi, tei in zip(w, te)]
    avg_pull = _mean(pull)

    if avg_pull <= 0:
        return {t: 1.0 for t in teams}

    pull_norm = [p / avg_pull for p in pull]
    weights = [min(1.0, p) if im[i] == 0 else p for i, p in enumerate(pull_norm)]

    mean_weight = _mean(weights)
    stabilized = [wt / mean_weight for wt in weights]
    return {t: stabilized[i] for i, t in enumerate(teams)}
