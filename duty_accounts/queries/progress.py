"""
Progress Summary

DESIGN DECISION: Progress numbers are computed from the repository
snapshot, never estimated. The summary is data only; rendering it as
a table, PDF or spreadsheet is the caller's job.

Per tehsil and per category:
    target    - number of records
    entry     - records with an account number entered
    verified  - records with verified = yes
    remaining - target - entry

Scoping follows the repository: a regional user only sees the tehsils
of the records they own.
"""

from typing import Optional

from pydantic import BaseModel, Field

from duty_accounts.models.personnel import Actor, PersonnelAccount, PersonnelCategory
from duty_accounts.repository import SnapshotRepository


class ProgressCounts(BaseModel):
    target: int = 0
    entry: int = 0
    verified: int = 0

    @property
    def remaining(self) -> int:
        return self.target - self.entry

    @property
    def entry_percent(self) -> int:
        """Rounded share of records with an entry; 0 for an empty target."""
        if not self.target:
            return 0
        return round(self.entry * 100 / self.target)

    def add(self, account: PersonnelAccount) -> None:
        self.target += 1
        if account.has_account_entry:
            self.entry += 1
        if account.is_verified:
            self.verified += 1

    def __add__(self, other: "ProgressCounts") -> "ProgressCounts":
        return ProgressCounts(
            target=self.target + other.target,
            entry=self.entry + other.entry,
            verified=self.verified + other.verified,
        )


def _empty_counts() -> dict[PersonnelCategory, ProgressCounts]:
    return {category: ProgressCounts() for category in PersonnelCategory}


class TehsilProgress(BaseModel):
    tehsil: str
    counts: dict[PersonnelCategory, ProgressCounts] = Field(default_factory=_empty_counts)

    def for_category(self, category: PersonnelCategory) -> ProgressCounts:
        return self.counts[category]


class ProgressSummary(BaseModel):
    rows: list[TehsilProgress] = Field(default_factory=list)

    @property
    def totals(self) -> dict[PersonnelCategory, ProgressCounts]:
        totals = _empty_counts()
        for row in self.rows:
            for category, counts in row.counts.items():
                totals[category] = totals[category] + counts
        return totals

    def row(self, tehsil: str) -> Optional[TehsilProgress]:
        for row in self.rows:
            if row.tehsil == tehsil:
                return row
        return None


class ProgressQuery:
    """Builds the per-tehsil progress summary for an actor."""

    def __init__(self, repository: SnapshotRepository):
        self._repository = repository

    def summarize(self, actor: Actor) -> ProgressSummary:
        """
        Summarize every record the actor can see.

        Tehsils are listed in order of first appearance.
        """
        rows: dict[str, TehsilProgress] = {}
        for account in self._repository.accounts_for(actor):
            tehsil = account.tehsil
            if tehsil not in rows:
                rows[tehsil] = TehsilProgress(tehsil=tehsil)
            rows[tehsil].counts[account.category].add(account)
        return ProgressSummary(rows=list(rows.values()))
