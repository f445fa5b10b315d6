"""
Abstract Routing-Code Lookup Interface

The external lookup is a collaborator: it is idempotent and
side-effect-free, and it may fail or time out. Implementations report
"not found" and "could not ask" the same way, as None. The resolver
treats both as Unresolved.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, ConfigDict


class RoutingCodeLookupResult(BaseModel):
    """Bank/branch details for one routing code, as reported externally."""
    model_config = ConfigDict(str_strip_whitespace=True)

    bank_name: str
    branch_name: str
    routing_code: str


class RoutingCodeLookupInterface(ABC):
    """Abstract interface for routing-code (IFSC) directory lookups."""

    @abstractmethod
    async def lookup(self, code: str) -> Optional[RoutingCodeLookupResult]:
        """
        Look up a routing code.

        Args:
            code: Normalized (trimmed, upper-case) routing code

        Returns:
            The bank/branch details, or None when not found or on failure
        """
        pass
