"""Routing-code lookup services package."""

from duty_accounts.services.lookup.interface import (
    RoutingCodeLookupInterface,
    RoutingCodeLookupResult,
)
from duty_accounts.services.lookup.razorpay_ifsc import RazorpayIFSCLookup

__all__ = [
    "RazorpayIFSCLookup",
    "RoutingCodeLookupInterface",
    "RoutingCodeLookupResult",
]
