"""Bank directory package: snapshot store, id allocation and routing-code resolution."""

from duty_accounts.directory.allocator import (
    IdentifierAllocator,
    identifier_suffix,
    next_identifier,
)
from duty_accounts.directory.resolver import RoutingCodeResolver, routing_code_problem
from duty_accounts.directory.store import DirectoryStore

__all__ = [
    "DirectoryStore",
    "IdentifierAllocator",
    "RoutingCodeResolver",
    "identifier_suffix",
    "next_identifier",
    "routing_code_problem",
]
