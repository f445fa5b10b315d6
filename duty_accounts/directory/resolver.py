"""
Routing-Code Resolver

Maps a routing code to a (bank_id, branch_id) pair:

1. Malformed code (length != 11)       -> InvalidCode, no lookup
2. Code already in the directory       -> Resolved, nothing staged
3. External lookup finds nothing, fails
   or raises                           -> Unresolved
4. External lookup finds the code      -> Discovered:
     - bank reused when its name matches a directory bank,
       otherwise a new Bank is allocated and staged
     - a new Branch is ALWAYS allocated and staged; the routing code,
       not the branch name, is the deduplication key and step 2 already
       covered a code match

Resolution has no side effects. Staged entities are only persisted
if the caller commits them with the account write.
"""

from datetime import datetime
from typing import Optional

import structlog

from duty_accounts.config import get_settings
from duty_accounts.directory.allocator import IdentifierAllocator
from duty_accounts.directory.store import DirectoryStore
from duty_accounts.models.directory import Bank, Branch, normalize_routing_code
from duty_accounts.models.resolution import (
    Discovered,
    InvalidCode,
    Resolution,
    Resolved,
    Unresolved,
)
from duty_accounts.services.lookup import RoutingCodeLookupInterface


logger = structlog.get_logger(__name__)


def routing_code_problem(code: str, length: int) -> Optional[str]:
    """Why a normalized routing code is malformed, or None when it is fine."""
    if len(code) != length or not code.isalnum():
        return f"Routing code '{code}' must be exactly {length} letters or digits"
    return None


class RoutingCodeResolver:
    """Resolves routing codes against the directory and the external lookup."""

    def __init__(
        self,
        lookup: RoutingCodeLookupInterface,
        allocator: Optional[IdentifierAllocator] = None,
        code_length: Optional[int] = None,
    ):
        self._lookup = lookup
        self._allocator = allocator or IdentifierAllocator()
        self._code_length = code_length or get_settings().app.routing_code_length

    def check_format(self, code: str) -> Optional[InvalidCode]:
        """InvalidCode when the (normalized) code is malformed, else None."""
        problem = routing_code_problem(code, self._code_length)
        if problem is not None:
            return InvalidCode(routing_code=code, reason=problem)
        return None

    async def resolve(self, code: str, directory: DirectoryStore) -> Resolution:
        """
        Resolve a routing code.

        Args:
            code: Routing code as typed by the user
            directory: Current directory snapshot (used for matching
                       and for identifier allocation)

        Returns:
            Resolved, Discovered, Unresolved or InvalidCode
        """
        code = normalize_routing_code(code)

        invalid = self.check_format(code)
        if invalid is not None:
            return invalid

        branch = directory.find_branch_by_routing_code(code)
        if branch is not None:
            return Resolved(
                routing_code=code,
                bank_id=branch.bank_id,
                branch_id=branch.id,
            )

        try:
            found = await self._lookup.lookup(code)
        except Exception as e:
            logger.error("routing_code_lookup_failed", routing_code=code, error=str(e))
            return Unresolved(
                routing_code=code,
                reason="Routing code lookup failed",
                lookup_error=str(e) or type(e).__name__,
            )
        if found is None:
            logger.info("routing_code_unresolved", routing_code=code)
            return Unresolved(routing_code=code)

        now = datetime.utcnow()
        bank_name = found.bank_name.strip().upper()
        branch_name = found.branch_name.strip()

        pending_bank = None
        bank = directory.find_bank_by_name(bank_name)
        if bank is not None:
            bank_id = bank.id
        else:
            bank_id = self._allocator.next_bank_id(directory)
            pending_bank = Bank(
                id=bank_id,
                name=bank_name,
                created_at=now,
                updated_at=now,
            )

        pending_branch = Branch(
            id=self._allocator.next_branch_id(directory),
            name=branch_name,
            routing_code=code,
            bank_id=bank_id,
            created_at=now,
            updated_at=now,
        )

        logger.info(
            "routing_code_discovered",
            routing_code=code,
            bank_id=bank_id,
            branch_id=pending_branch.id,
            new_bank=pending_bank is not None,
        )
        return Discovered(
            routing_code=code,
            bank_id=bank_id,
            branch_id=pending_branch.id,
            pending_bank=pending_bank,
            pending_branch=pending_branch,
        )
