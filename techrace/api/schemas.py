"""
Pydantic request models for payloads arriving from a hosting service.
Field names match the serialized game vocabulary (SE, TE, IM, BR, AR, SP).
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from techrace.engine.state import SpyAction, TeamAllocation


class SpyActionRequest(BaseModel):
    target: str = ""  # empty = abstain
    tech: str = "L"


class AllocationRequest(BaseModel):
    SE: int = Field(0, ge=0, le=1)
    TE: int = Field(0, ge=0, le=1)
    IM: Literal["none", "open", "close"] = "none"
    BR: int = Field(0, ge=0)
    AR: dict[str, int] = Field(default_factory=dict)  # tier -> dice
    SP: list[SpyActionRequest | None] = Field(default_factory=list)

    @field_validator("AR")
    @classmethod
    def ar_counts_non_negative(cls, value: dict[str, int]) -> dict[str, int]:
        for tier, n in value.items():
            if n < 0:
                raise ValueError(f"AR[{tier}] cannot be negative")
        return value

    def to_allocation(self) -> TeamAllocation:
        return TeamAllocation(
            se=self.SE,
            te=self.TE,
            im=self.IM,
            br=self.BR,
            ar=dict(self.AR),
            sp=[SpyAction(target=s.target, tech=s.tech) if s is not None else None for s in self.SP],
        )


class SubmitAllocationRequest(BaseModel):
    team: str
    allocation: AllocationRequest


class ValidateAllocationRequest(BaseModel):
    team: str
    allocation: AllocationRequest


class ResolveRoundRequest(BaseModel):
    force: bool = False
    """Resolve even when the ruleset requires all teams and some are missing."""
    seed: int | None = None
