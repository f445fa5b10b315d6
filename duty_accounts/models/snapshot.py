"""
Backend Snapshot and Write Result Models

The backend is request/response only: fetch_all() returns everything,
writes return a WriteResult. There is no push and no partial fetch,
so staleness is only ever resolved by calling fetch_all() again.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from duty_accounts.models.directory import Bank, Branch
from duty_accounts.models.personnel import (
    Department,
    Designation,
    PersonnelAccount,
    PersonnelCategory,
    User,
)


class WriteResult(BaseModel):
    """Outcome of a single backend write."""

    success: bool
    message: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None) -> "WriteResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, message: str) -> "WriteResult":
        return cls(success=False, message=message)


class DataSnapshot(BaseModel):
    """Full dataset as returned by fetch_all()."""

    accounts: dict[PersonnelCategory, list[PersonnelAccount]] = Field(
        default_factory=dict,
        description="Accounts keyed by personnel category"
    )
    banks: list[Bank] = Field(default_factory=list)
    branches: list[Branch] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    departments: list[Department] = Field(default_factory=list)
    designations: list[Designation] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    def all_accounts(self) -> list[PersonnelAccount]:
        """Accounts of every category, in category order."""
        records = []
        for category in PersonnelCategory:
            records.extend(self.accounts.get(category, []))
        return records
