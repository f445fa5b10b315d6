"""
Identifier Allocator

New directory entries get identifiers of the form <prefix>_<integer>,
numbered one past the highest suffix already in the collection.
Identifiers that do not match the pattern count as 0.

This is collision-free only because allocation always runs against
a full, freshly reloaded DirectoryStore.
"""

import re
from typing import Iterable, Optional

from duty_accounts.config import get_settings
from duty_accounts.directory.store import DirectoryStore


def identifier_suffix(identifier: str, prefix: str) -> int:
    """Numeric suffix of '<prefix>_<n>', or 0 when the id does not match."""
    match = re.fullmatch(rf"{re.escape(prefix)}_(\d+)", (identifier or "").strip())
    return int(match.group(1)) if match else 0


def next_identifier(prefix: str, existing_ids: Iterable[str]) -> str:
    """Allocate '<prefix>_<max+1>'; an empty collection yields '<prefix>_1'."""
    highest = max((identifier_suffix(i, prefix) for i in existing_ids), default=0)
    return f"{prefix}_{highest + 1}"


class IdentifierAllocator:
    """Allocates bank and branch ids from a directory snapshot."""

    def __init__(
        self,
        bank_prefix: Optional[str] = None,
        branch_prefix: Optional[str] = None,
    ):
        if bank_prefix is None or branch_prefix is None:
            app = get_settings().app
            bank_prefix = bank_prefix or app.bank_id_prefix
            branch_prefix = branch_prefix or app.branch_id_prefix
        if bank_prefix == branch_prefix:
            raise ValueError("Bank and branch identifiers need different prefixes")
        self.bank_prefix = bank_prefix
        self.branch_prefix = branch_prefix

    def next_bank_id(self, directory: DirectoryStore) -> str:
        return next_identifier(self.bank_prefix, (b.id for b in directory.banks))

    def next_branch_id(self, directory: DirectoryStore) -> str:
        return next_identifier(self.branch_prefix, (b.id for b in directory.branches))
