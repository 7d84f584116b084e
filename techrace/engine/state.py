"""
Game state representation.
Resolution works on copies; the snapshot handed in by a caller is never mutated.
Includes JSON serialization so a hosting service can store and reload snapshots.
Serialized keys keep the game's vocabulary (GDP, BR_total, pending_W_carryover, ...).
"""

import json
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

PUBLIC = "public"
PRIVATE = "private"

IM_STANCES = ("none", "open", "close")


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _num(v: Any, default: float) -> float:
    """Numeric field that may legitimately be fractional (K, GDP); keeps ints as ints."""
    if isinstance(v, bool):
        return default
    if isinstance(v, (int, float)):
        return v
    try:
        return float(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _dict(v: Any) -> dict:
    return v if isinstance(v, dict) else {}


def _list(v: Any) -> list:
    return list(v) if isinstance(v, list) else []


def _freeze(v: Any) -> Any:
    """Read-only deep copy of plain data: mappings become MappingProxyType, lists become tuples."""
    if isinstance(v, Mapping):
        return MappingProxyType({k: _freeze(x) for k, x in v.items()})
    if isinstance(v, (list, tuple)):
        return tuple(_freeze(x) for x in v)
    return v


def _thaw(v: Any) -> Any:
    """Mutable deep copy of frozen data."""
    if isinstance(v, Mapping):
        return {k: _thaw(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_thaw(x) for x in v]
    return v


@dataclass
class SpyAction:
    """One espionage attempt against a target team's technology tier."""
    target: str  # "" means abstain
    tech: str

    @property
    def active(self) -> bool:
        return bool(self.target)

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target, "tech": self.tech}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpyAction":
        if not isinstance(data, dict):
            data = {}
        return cls(target=str(data.get("target") or ""), tech=str(data.get("tech") or "L"))


@dataclass
class TeamAllocation:
    """A team's choices for one round. Consumed once by resolution, then cleared."""
    se: int = 0  # secondary education (0 or 1)
    te: int = 0  # tertiary education (0 or 1)
    im: str = "none"  # "none", "open" or "close"
    br: int = 0  # basic research dice
    ar: dict[str, int] = field(default_factory=dict)  # tier -> applied research dice
    sp: list[SpyAction | None] = field(default_factory=list)

    @classmethod
    def empty(cls, techs: tuple[str, ...] | list[str]) -> "TeamAllocation":
        """The all-zero allocation used for abstaining or rejected teams."""
        return cls(ar={t: 0 for t in techs})

    def active_spy_actions(self) -> list[SpyAction]:
        return [s for s in self.sp if s is not None and s.active]

    def ar_total(self) -> int:
        return sum(max(0, n) for n in self.ar.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "SE": self.se,
            "TE": self.te,
            "IM": self.im,
            "BR": self.br,
            "AR": dict(self.ar),
            "SP": [s.to_dict() if s is not None else None for s in self.sp],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamAllocation":
        if not isinstance(data, dict):
            data = {}
        im = data.get("IM")
        ar = _dict(data.get("AR"))
        return cls(
            se=_int(data.get("SE"), 0),
            te=_int(data.get("TE"), 0),
            im=str(im) if im is not None else "none",
            br=_int(data.get("BR"), 0),
            ar={str(t): _int(n, 0) for t, n in ar.items()},
            sp=[SpyAction.from_dict(s) if isinstance(s, dict) else None for s in _list(data.get("SP"))],
        )


@dataclass
class DiceLogEntry:
    """One structured row of a team's per-round dice log."""
    round: int
    phase: str  # "EDU", "BR", "AR", "DISC", "SP"
    tech: str = ""
    rolls: list[int] = field(default_factory=list)
    delta_tk: float = 0
    delta_tp: int = 0
    delta_im: int = 0
    sp_result: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "Phase": self.phase,
            "Tech": self.tech,
            "Rolls": list(self.rolls),
            "ΔTK": self.delta_tk,
            "ΔTP": self.delta_tp,
            "ΔIM": self.delta_im,
            "SP_Result": self.sp_result,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiceLogEntry":
        if not isinstance(data, dict):
            data = {}
        return cls(
            round=_int(data.get("round"), 0),
            phase=str(data.get("Phase") or ""),
            tech=str(data.get("Tech") or ""),
            rolls=[_int(r, 0) for r in _list(data.get("Rolls"))],
            delta_tk=_num(data.get("ΔTK"), 0),
            delta_tp=_int(data.get("ΔTP"), 0),
            delta_im=_int(data.get("ΔIM"), 0),
            sp_result=str(data.get("SP_Result") or ""),
        )


@dataclass
class LogEntry:
    """A log line with an explicit audience: everyone, or one team (plus the GM)."""
    round: int
    event: str
    audience: str = PUBLIC
    team: str | None = None  # set for private entries

    def to_dict(self) -> dict[str, Any]:
        out = {"round": self.round, "event": self.event, "audience": self.audience}
        if self.team is not None:
            out["team"] = self.team
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        if not isinstance(data, dict):
            data = {}
        audience = data.get("audience")
        return cls(
            round=_int(data.get("round"), 0),
            event=str(data.get("event") or ""),
            audience=audience if audience in (PUBLIC, PRIVATE) else PUBLIC,
            team=data.get("team"),
        )


def empty_rolls(techs: tuple[str, ...] | list[str]) -> dict[str, Any]:
    return {"BR": None, "AR": {t: None for t in techs}, "SP": None}


@dataclass
class TeamState:
    """Persistent per-team state. Owned by the round resolver between rounds."""
    # Economy & population
    gdp: float
    pop: float
    w: int  # budget weight
    # Education
    se: int
    te: int
    im: int  # 0 = closed, 1 = open
    regime: str
    # Capability (both non-decreasing)
    k: float = 0
    tk: float = 0
    # Basic research
    br_total: int = 0
    br_effective: float = 0
    br_succ: int = 0  # successes in the most recent round
    # Technology points
    tp: dict[str, int] = field(default_factory=dict)
    tp_last_round: dict[str, int] = field(default_factory=dict)
    discovered: dict[str, bool] = field(default_factory=dict)
    submitted: bool = False
    # Espionage: target -> tier -> value
    spy_revealed: dict[str, dict[str, bool]] = field(default_factory=dict)
    spy_caught_count: dict[str, dict[str, int]] = field(default_factory=dict)
    # Raw rolls of the most recent round (overwritten each round)
    rolls_saved: dict[str, Any] = field(default_factory=dict)
    dice_log: list[DiceLogEntry] = field(default_factory=list)
    # Carryover
    unspent_dice: int = 0
    carry_fraction: float = 0
    pending_w_carryover: int = 0
    last_carryover: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "GDP": self.gdp,
            "POP": self.pop,
            "W": self.w,
            "SE": self.se,
            "TE": self.te,
            "IM": self.im,
            "regime": self.regime,
            "K": self.k,
            "TK": self.tk,
            "BR_total": self.br_total,
            "BR_effective": self.br_effective,
            "BR_succ": self.br_succ,
            "TP": dict(self.tp),
            "TP_last_round": dict(self.tp_last_round),
            "discovered": dict(self.discovered),
            "submitted": self.submitted,
            "spy_revealed": deepcopy(self.spy_revealed),
            "spy_caught_count": deepcopy(self.spy_caught_count),
            "rolls_saved": deepcopy(self.rolls_saved),
            "dice_log": [d.to_dict() for d in self.dice_log],
            "unspent_dice": self.unspent_dice,
            "carry_fraction": self.carry_fraction,
            "pending_W_carryover": self.pending_w_carryover,
            "last_carryover": self.last_carryover,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeamState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            gdp=_num(data.get("GDP"), 1),
            pop=_num(data.get("POP"), 1),
            w=_int(data.get("W"), 0),
            se=_int(data.get("SE"), 0),
            te=_int(data.get("TE"), 0),
            im=1 if _int(data.get("IM"), 0) else 0,
            regime=str(data.get("regime") or "demo"),
            k=_num(data.get("K"), 0),
            tk=_num(data.get("TK"), 0),
            br_total=_int(data.get("BR_total"), 0),
            br_effective=_num(data.get("BR_effective"), 0),
            br_succ=_int(data.get("BR_succ"), 0),
            tp={str(t): _int(v, 0) for t, v in _dict(data.get("TP")).items()},
            tp_last_round={str(t): _int(v, 0) for t, v in _dict(data.get("TP_last_round")).items()},
            discovered={str(t): bool(v) for t, v in _dict(data.get("discovered")).items()},
            submitted=bool(data.get("submitted", False)),
            spy_revealed={
                str(target): {str(t): bool(v) for t, v in _dict(tiers).items()}
                for target, tiers in _dict(data.get("spy_revealed")).items()
            },
            spy_caught_count={
                str(target): {str(t): _int(v, 0) for t, v in _dict(tiers).items()}
                for target, tiers in _dict(data.get("spy_caught_count")).items()
            },
            rolls_saved=deepcopy(_dict(data.get("rolls_saved"))),
            dice_log=[DiceLogEntry.from_dict(d) for d in _list(data.get("dice_log")) if isinstance(d, dict)],
            unspent_dice=_int(data.get("unspent_dice"), 0),
            carry_fraction=_num(data.get("carry_fraction"), 0),
            pending_w_carryover=_int(data.get("pending_W_carryover"), 0),
            last_carryover=_int(data.get("last_carryover"), 0),
        )


@dataclass(frozen=True)
class RoundHistory:
    """
    Frozen record of one resolved round.
    Nested data is stored as read-only mappings and tuples, so neither later rounds
    nor callers can change an archived round. to_dict() hands out mutable copies.
    """
    round: int
    allocations: Mapping[str, Mapping[str, Any] | None]
    before: Mapping[str, Mapping[str, Any]]
    after: Mapping[str, Mapping[str, Any]]
    rolls: Mapping[str, Mapping[str, Any]]
    public_log: tuple[Mapping[str, Any], ...]
    private_logs: Mapping[str, tuple[Mapping[str, Any], ...]]

    def __post_init__(self):
        for name in ("allocations", "before", "after", "rolls", "public_log", "private_logs"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    def __deepcopy__(self, memo):
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "allocations": _thaw(self.allocations),
            "before": _thaw(self.before),
            "after": _thaw(self.after),
            "rolls": _thaw(self.rolls),
            "public_log": _thaw(self.public_log),
            "private_logs": _thaw(self.private_logs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoundHistory":
        if not isinstance(data, dict):
            data = {}
        return cls(
            round=_int(data.get("round"), 0),
            allocations=_dict(data.get("allocations")),
            before=_dict(data.get("before")),
            after=_dict(data.get("after")),
            rolls=_dict(data.get("rolls")),
            public_log=tuple(e for e in _list(data.get("public_log")) if isinstance(e, dict)),
            private_logs={
                str(t): tuple(e for e in _list(entries) if isinstance(e, dict))
                for t, entries in _dict(data.get("private_logs")).items()
            },
        )


@dataclass
class GameState:
    """Complete game state."""
    round: int
    teams: dict[str, TeamState]  # team -> TeamState
    # team -> allocation submitted for the current round (None = not yet submitted)
    submissions: dict[str, TeamAllocation | None] = field(default_factory=dict)
    # tier -> BR dice (all teams, all rounds) that cleared that tier's threshold
    global_br_pool: dict[str, int] = field(default_factory=dict)
    public_log: list[LogEntry] = field(default_factory=list)
    # team -> entries visible only to that team (and the GM)
    private_logs: dict[str, list[LogEntry]] = field(default_factory=dict)
    game_ready: bool = False
    history: list[RoundHistory] = field(default_factory=list)
    # True between a resolution and the start of the next allocation cycle
    round_resolved: bool = False
    # True once the final round has been resolved
    concluded: bool = False

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    # ===== Log emission =====

    def post_public(self, event: str) -> LogEntry:
        """Append an entry every team can read."""
        entry = LogEntry(round=self.round, event=event, audience=PUBLIC)
        self.public_log.append(entry)
        return entry

    def post_private(self, team: str, event: str) -> LogEntry:
        """Append an entry only `team` (and the GM) can read."""
        entry = LogEntry(round=self.round, event=event, audience=PRIVATE, team=team)
        self.private_logs.setdefault(team, []).append(entry)
        return entry

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "round": self.round,
            "teams": {t: ts.to_dict() for t, ts in self.teams.items()},
            "submissions": {
                t: alloc.to_dict() if alloc is not None else None
                for t, alloc in self.submissions.items()
            },
            "global_BR_pool": dict(self.global_br_pool),
            "public_log": [e.to_dict() for e in self.public_log],
            "private_logs": {t: [e.to_dict() for e in entries] for t, entries in self.private_logs.items()},
            "game_ready": self.game_ready,
            "history": [h.to_dict() for h in self.history],
            "round_resolved": self.round_resolved,
            "concluded": self.concluded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (handles missing/None fields)."""
        if not isinstance(data, dict):
            data = {}
        return cls(
            round=_int(data.get("round"), 1),
            teams={
                str(t): TeamState.from_dict(ts)
                for t, ts in _dict(data.get("teams")).items()
                if isinstance(ts, dict)
            },
            submissions={
                str(t): TeamAllocation.from_dict(a) if isinstance(a, dict) else None
                for t, a in _dict(data.get("submissions")).items()
            },
            global_br_pool={str(t): _int(v, 0) for t, v in _dict(data.get("global_BR_pool")).items()},
            public_log=[LogEntry.from_dict(e) for e in _list(data.get("public_log")) if isinstance(e, dict)],
            private_logs={
                str(t): [LogEntry.from_dict(e) for e in _list(entries) if isinstance(e, dict)]
                for t, entries in _dict(data.get("private_logs")).items()
            },
            game_ready=bool(data.get("game_ready", False)),
            history=[RoundHistory.from_dict(h) for h in _list(data.get("history")) if isinstance(h, dict)],
            round_resolved=bool(data.get("round_resolved", False)),
            concluded=bool(data.get("concluded", False)),
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))
