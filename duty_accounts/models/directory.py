"""
Bank Directory Models

The directory is the combined Bank + Branch reference data shared by
every personnel category. Entries are only ever added (by routing-code
resolution), never deleted or merged.

DESIGN DECISION: Natural keys are normalized in one place.
Bank names compare case-insensitively after trimming; routing codes
compare upper-cased after trimming. Every lookup goes through
normalize_bank_name / normalize_routing_code so the rule cannot drift.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_routing_code(code: Optional[str]) -> str:
    """Trim and upper-case a routing code. None becomes an empty string."""
    return (code or "").strip().upper()


def normalize_bank_name(name: Optional[str]) -> str:
    """Comparison key for bank names (trimmed, case-folded)."""
    return (name or "").strip().casefold()


def _empty_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class Bank(BaseModel):
    """A bank in the shared directory."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the form <prefix>_<integer>"
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Bank name (natural key, case-insensitive)"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def blank_timestamp_is_none(cls, v):
        """Imported rows often carry empty timestamp cells."""
        return _empty_to_none(v)

    @property
    def name_key(self) -> str:
        return normalize_bank_name(self.name)


class Branch(BaseModel):
    """
    A bank branch in the shared directory.

    The routing code is the deduplication key: at most one branch
    per routing code exists in the directory.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the form <prefix>_<integer>"
    )
    name: str = Field(
        default="",
        description="Branch name as reported by the lookup service"
    )
    routing_code: str = Field(
        ...,
        description="11-character routing (IFSC) code"
    )
    bank_id: str = Field(
        ...,
        min_length=1,
        description="Owning bank"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def blank_timestamp_is_none(cls, v):
        """Imported rows often carry empty timestamp cells."""
        return _empty_to_none(v)

    @field_validator('routing_code', mode='before')
    @classmethod
    def upper_routing_code(cls, v) -> str:
        """Routing codes are stored upper-cased."""
        return normalize_routing_code(v if v is None else str(v))
