"""
Static rule definitions for a game: teams, tiers, dice tables and economic constants.
All ruleset data lives under data/rulesets/<ruleset_id>/: rules.json, and optional manifest.json (display_name).
A GameConfig is an immutable value passed into every engine call; nothing here is a process-wide singleton.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"
RULESETS_DIR = DATA_DIR / "rulesets"


def _default_ruleset_id() -> str:
    """Single place for default: techrace.config.DEFAULT_RULESET_ID."""
    from techrace.config import DEFAULT_RULESET_ID
    return DEFAULT_RULESET_ID


def _ruleset_dir(ruleset_id: str) -> Path:
    return RULESETS_DIR / ruleset_id


@dataclass(frozen=True)
class TeamInit:
    """Starting economy, education and regime for one team."""
    GDP: float
    POP: float
    SE: int
    TE: int
    IM: int  # 0 = closed, 1 = open
    regime: str  # "demo" or "auto"

    def to_dict(self) -> dict[str, Any]:
        return {
            "GDP": self.GDP,
            "POP": self.POP,
            "SE": self.SE,
            "TE": self.TE,
            "IM": self.IM,
            "regime": self.regime,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamInit":
        return cls(
            GDP=data["GDP"],
            POP=data["POP"],
            SE=int(data.get("SE", 0)),
            TE=int(data.get("TE", 0)),
            IM=1 if data.get("IM") else 0,
            regime=str(data.get("regime") or "demo"),
        )


@dataclass(frozen=True)
class TierRules:
    """
    One row of the per-tier dice table.

    Each applied research die draws `high` with probability p_high(TK) and `low` otherwise,
    where p rises linearly from base_p at TK=0 to max_p at TK=tk_ref and stays there.
    A tier with base_p == max_p has no TK dependency.
    """
    br_req: int  # BR_effective needed before the tier can be discovered
    ar_thr: int  # a draw (or BR roll) at or above this value counts for the tier
    low: int
    high: int
    base_p: float
    max_p: float
    tk_ref: float
    discovery_tk: int = 0  # TK granted once when the tier is discovered

    def to_dict(self) -> dict[str, Any]:
        return {
            "br_req": self.br_req,
            "ar_thr": self.ar_thr,
            "low": self.low,
            "high": self.high,
            "base_p": self.base_p,
            "max_p": self.max_p,
            "TK_ref": self.tk_ref,
            "discovery_TK": self.discovery_tk,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TierRules":
        tk_ref = float(data.get("TK_ref", 1))
        if tk_ref <= 0:
            raise ValueError(f"TK_ref must be positive, got {tk_ref}")
        return cls(
            br_req=int(data.get("br_req", 0)),
            ar_thr=int(data["ar_thr"]),
            low=int(data["low"]),
            high=int(data["high"]),
            base_p=float(data["base_p"]),
            max_p=float(data["max_p"]),
            tk_ref=tk_ref,
            discovery_tk=int(data.get("discovery_TK", 0)),
        )


@dataclass(frozen=True)
class TierRequirement:
    """Capability gates a team must meet before a tier can be discovered."""
    k_min: float = 0
    tk_min: float = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"K_min": self.k_min}
        if self.tk_min:
            out["TK_min"] = self.tk_min
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TierRequirement":
        if not isinstance(data, dict):
            data = {}
        return cls(k_min=data.get("K_min", 0), tk_min=data.get("TK_min", 0))


@dataclass(frozen=True)
class GameConfig:
    """Complete rule set for one game."""
    teams: tuple[str, ...]
    techs: tuple[str, ...]
    max_rounds: int
    gdp_weight_exponent: float
    pop_weight_exponent: float
    gdp_baseline: float
    init_by_team: Mapping[str, TeamInit]
    tp_threshold: Mapping[str, int]
    tech_info: Mapping[str, TierRules]
    min_requirements: Mapping[str, TierRequirement] = field(default_factory=dict)
    # Share of every other team's BR_total that leaks into a team's BR_effective
    br_spillover: float = 0.75
    # BR die succeeds when roll >= tech_info[br_success_tier].ar_thr
    br_success_tier: str = "M"
    k_scale: float = 1
    se_k_factor: float = 0.5
    te_gain: int = 1
    im_k_gain: float = 1.0
    # Minimum espionage roll to land undetected, keyed by the target's regime
    spy_success_min: Mapping[str, int] = field(default_factory=lambda: {"demo": 4, "auto": 5})
    spy_tk_gain: int = 1
    carry_fraction: float = 0.5
    require_all_submissions: bool = False
    ruleset_id: str = "custom"

    def __post_init__(self):
        # Lookup tables are exposed read-only
        for name in ("init_by_team", "tp_threshold", "tech_info", "min_requirements", "spy_success_min"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def requirement(self, tier: str) -> TierRequirement:
        return self.min_requirements.get(tier) or TierRequirement()

    def to_dict(self) -> dict[str, Any]:
        """Snapshot suitable for storing alongside a game (round-trips through from_dict)."""
        return {
            "ruleset_id": self.ruleset_id,
            "teams": list(self.teams),
            "techs": list(self.techs),
            "max_rounds": self.max_rounds,
            "gdp_weight_exponent": self.gdp_weight_exponent,
            "pop_weight_exponent": self.pop_weight_exponent,
            "gdp_baseline": self.gdp_baseline,
            "init_by_team": {t: ti.to_dict() for t, ti in self.init_by_team.items()},
            "tp_threshold": dict(self.tp_threshold),
            "min_requirements": {t: r.to_dict() for t, r in self.min_requirements.items()},
            "tech_info": {t: r.to_dict() for t, r in self.tech_info.items()},
            "br_spillover": self.br_spillover,
            "br_success_tier": self.br_success_tier,
            "k_scale": self.k_scale,
            "se_k_factor": self.se_k_factor,
            "te_gain": self.te_gain,
            "im_k_gain": self.im_k_gain,
            "spy_success_min": dict(self.spy_success_min),
            "spy_tk_gain": self.spy_tk_gain,
            "carry_fraction": self.carry_fraction,
            "require_all_submissions": self.require_all_submissions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], ruleset_id: str | None = None) -> "GameConfig":
        """
        Build a GameConfig from rules.json content or a stored snapshot.
        Raises ValueError when teams/tiers are inconsistent.
        """
        teams = tuple(str(t) for t in data["teams"])
        techs = tuple(str(t) for t in data["techs"])
        init_by_team = {str(t): TeamInit.from_dict(v) for t, v in data["init_by_team"].items()}
        tech_info = {str(t): TierRules.from_dict(v) for t, v in data["tech_info"].items()}
        missing_init = [t for t in teams if t not in init_by_team]
        if missing_init:
            raise ValueError(f"init_by_team missing teams: {missing_init}")
        missing_tiers = [t for t in techs if t not in tech_info or t not in data["tp_threshold"]]
        if missing_tiers:
            raise ValueError(f"tech_info/tp_threshold missing tiers: {missing_tiers}")
        br_success_tier = str(data.get("br_success_tier", techs[len(techs) // 2]))
        if br_success_tier not in tech_info:
            raise ValueError(f"br_success_tier {br_success_tier!r} is not a known tier")
        return cls(
            teams=teams,
            techs=techs,
            max_rounds=int(data["max_rounds"]),
            gdp_weight_exponent=float(data["gdp_weight_exponent"]),
            pop_weight_exponent=float(data["pop_weight_exponent"]),
            gdp_baseline=float(data["gdp_baseline"]),
            init_by_team=init_by_team,
            tp_threshold={str(t): int(v) for t, v in data["tp_threshold"].items()},
            tech_info=tech_info,
            min_requirements={
                str(t): TierRequirement.from_dict(v)
                for t, v in (data.get("min_requirements") or {}).items()
            },
            br_spillover=float(data.get("br_spillover", 0.75)),
            br_success_tier=br_success_tier,
            k_scale=data.get("k_scale", 1),
            se_k_factor=float(data.get("se_k_factor", 0.5)),
            te_gain=int(data.get("te_gain", 1)),
            im_k_gain=float(data.get("im_k_gain", 1.0)),
            spy_success_min={
                str(k): int(v)
                for k, v in (data.get("spy_success_min") or {"demo": 4, "auto": 5}).items()
            },
            spy_tk_gain=int(data.get("spy_tk_gain", 1)),
            carry_fraction=float(data.get("carry_fraction", 0.5)),
            require_all_submissions=bool(data.get("require_all_submissions", False)),
            ruleset_id=str(ruleset_id or data.get("ruleset_id") or "custom"),
        )


def list_rulesets() -> list[dict]:
    """Return [{ id, display_name }, ...] for all rulesets (subdirs of data/rulesets/ with rules.json)."""
    out = []
    if not RULESETS_DIR.exists():
        return out
    for d in sorted(RULESETS_DIR.iterdir()):
        if not d.is_dir() or not (d / "rules.json").exists():
            continue
        ruleset_id = d.name
        manifest_path = d / "manifest.json"
        if manifest_path.exists():
            try:
                with open(manifest_path, "r") as f:
                    m = json.load(f)
                out.append({
                    "id": m.get("id", ruleset_id),
                    "display_name": m.get("display_name", ruleset_id),
                })
            except (json.JSONDecodeError, OSError):
                logger.warning("Unreadable manifest for ruleset %s", ruleset_id)
                out.append({"id": ruleset_id, "display_name": ruleset_id})
        else:
            out.append({"id": ruleset_id, "display_name": ruleset_id})
    return out


def load_ruleset(ruleset_id: str | None = None, data_dir: Path | str | None = None) -> GameConfig:
    """
    Load a GameConfig.

    Args:
        ruleset_id: Use data/rulesets/<ruleset_id>/ (default: techrace.config.DEFAULT_RULESET_ID).
        data_dir: Directory containing rules.json (overrides ruleset_id).

    Returns: GameConfig
    """
    if data_dir is not None:
        rules_dir = Path(data_dir)
        ruleset_id = ruleset_id or rules_dir.name
    else:
        ruleset_id = ruleset_id or _default_ruleset_id()
        rules_dir = _ruleset_dir(ruleset_id)
    rules_path = rules_dir / "rules.json"
    if not rules_path.exists():
        raise FileNotFoundError(f"Ruleset not found: {ruleset_id}")
    with open(rules_path, "r") as f:
        data = json.load(f)
    logger.debug("Loaded ruleset %s from %s", ruleset_id, rules_path)
    return GameConfig.from_dict(data, ruleset_id=ruleset_id)


def config_from_snapshot(snapshot: dict) -> GameConfig:
    """
    Build a GameConfig from a snapshot (e.g. stored with a game).
    Used so a game always resolves with the rules it was created with.
    """
    return GameConfig.from_dict(snapshot)
