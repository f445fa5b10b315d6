"""
Routing-Code Resolution Results

DESIGN DECISION: Resolution returns a discriminated union instead of
mutating shared staging state:

    Resolved     - code found in the local directory, nothing to create
    Discovered   - code found by the external lookup; a Branch (and
                   possibly a Bank) is staged and MUST be committed
                   together with the account write
    Unresolved   - lookup found nothing (or failed); a partial save
                   with empty bank/branch is still allowed
    InvalidCode  - malformed code, no lookup attempted

Staged entities live only inside a Discovered value, so "must commit
before use" is visible in the type.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from duty_accounts.models.directory import Bank, Branch
from duty_accounts.models.personnel import PersonnelAccount


class Resolved(BaseModel):
    """Routing code matched an existing directory branch."""

    kind: Literal["resolved"] = "resolved"
    routing_code: str
    bank_id: str
    branch_id: str

    @property
    def message(self) -> str:
        return "Branch found in directory"

    def apply_to(self, account: PersonnelAccount) -> PersonnelAccount:
        return account.model_copy(update={
            "routing_code": self.routing_code,
            "bank_id": self.bank_id,
            "branch_id": self.branch_id,
        })


class Discovered(BaseModel):
    """
    Routing code found by the external lookup.

    pending_branch is always present: a fresh lookup never reuses an
    existing branch. pending_bank is None when the bank name matched
    an existing directory bank.
    """

    kind: Literal["discovered"] = "discovered"
    routing_code: str
    bank_id: str
    branch_id: str
    pending_bank: Optional[Bank] = None
    pending_branch: Branch

    @property
    def message(self) -> str:
        if self.pending_bank is not None:
            return f"New bank and branch fetched: {self.pending_bank.name} / {self.pending_branch.name}"
        return f"New branch fetched: {self.pending_branch.name}"

    def apply_to(self, account: PersonnelAccount) -> PersonnelAccount:
        return account.model_copy(update={
            "routing_code": self.routing_code,
            "bank_id": self.bank_id,
            "branch_id": self.branch_id,
        })


class Unresolved(BaseModel):
    """Lookup found nothing; bank/branch stay empty."""

    kind: Literal["unresolved"] = "unresolved"
    routing_code: str
    reason: str = "Routing code not found"
    lookup_error: Optional[str] = Field(
        default=None,
        description="Set when the lookup service failed rather than found nothing"
    )

    @property
    def message(self) -> str:
        return f"{self.reason}: {self.routing_code}"

    def apply_to(self, account: PersonnelAccount) -> PersonnelAccount:
        return account.model_copy(update={
            "routing_code": self.routing_code,
            "bank_id": "",
            "branch_id": "",
        })


class InvalidCode(BaseModel):
    """Malformed routing code; nothing was looked up."""

    kind: Literal["invalid"] = "invalid"
    routing_code: str
    reason: str

    @property
    def message(self) -> str:
        return self.reason

    def apply_to(self, account: PersonnelAccount) -> PersonnelAccount:
        return account.model_copy(update={
            "routing_code": self.routing_code,
            "bank_id": "",
            "branch_id": "",
        })


Resolution = Annotated[
    Union[Resolved, Discovered, Unresolved, InvalidCode],
    Field(discriminator="kind"),
]
