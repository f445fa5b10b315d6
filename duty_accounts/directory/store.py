"""
Directory Store

In-memory snapshot of every known Bank and Branch.

DESIGN DECISION: The store has no mutation methods. After each
successful backend round-trip the repository builds a brand new
DirectoryStore from fetch_all(). Pull-based invalidation costs an
extra round trip per save but means client state can never drift
from the source of truth.
"""

from typing import Iterable, Optional

from duty_accounts.models.directory import (
    Bank,
    Branch,
    normalize_bank_name,
    normalize_routing_code,
)


class DirectoryStore:
    """Read-only view over a directory snapshot."""

    def __init__(
        self,
        banks: Iterable[Bank] = (),
        branches: Iterable[Branch] = (),
    ):
        self._banks: tuple[Bank, ...] = tuple(banks)
        self._branches: tuple[Branch, ...] = tuple(branches)
        self._banks_by_id = {bank.id: bank for bank in self._banks}
        self._branches_by_id = {branch.id: branch for branch in self._branches}

    @property
    def banks(self) -> tuple[Bank, ...]:
        return self._banks

    @property
    def branches(self) -> tuple[Branch, ...]:
        return self._branches

    def find_branch_by_routing_code(self, code: Optional[str]) -> Optional[Branch]:
        """Exact match on the routing code (trimmed, case-insensitive)."""
        key = normalize_routing_code(code)
        if not key:
            return None
        for branch in self._branches:
            if normalize_routing_code(branch.routing_code) == key:
                return branch
        return None

    def find_bank_by_name(self, name: Optional[str]) -> Optional[Bank]:
        """Exact match on the bank name (trimmed, case-insensitive)."""
        key = normalize_bank_name(name)
        if not key:
            return None
        for bank in self._banks:
            if bank.name_key == key:
                return bank
        return None

    def get_bank(self, bank_id: str) -> Optional[Bank]:
        return self._banks_by_id.get(bank_id)

    def get_branch(self, branch_id: str) -> Optional[Branch]:
        return self._branches_by_id.get(branch_id)

    def __len__(self) -> int:
        return len(self._banks) + len(self._branches)

    def __repr__(self) -> str:
        return f"DirectoryStore(banks={len(self._banks)}, branches={len(self._branches)})"
