"""
Engine errors.
All are ValueError subclasses carrying a stable `code` so a hosting service can
report them as structured results. Raised before any state is touched.
"""

from typing import Any


class EngineError(ValueError):
    """Base class for rule violations reported to the caller."""
    code = "engine_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class InvalidAllocation(EngineError):
    """Allocation over budget or malformed. Inside resolution this only rejects that team's submission."""
    code = "invalid_allocation"


class IncompleteSubmissions(EngineError):
    """Ruleset requires every team to submit and some have not."""
    code = "incomplete_submissions"


class AlreadyResolved(EngineError):
    """The current round has already been resolved."""
    code = "already_resolved"


class PostMaxRounds(EngineError):
    """The game has concluded; no further rounds can be resolved."""
    code = "post_max_rounds"


class GameNotReady(EngineError):
    """The GM has not opened the game for submissions."""
    code = "game_not_ready"


class UnknownTeam(EngineError):
    code = "unknown_team"
