"""Shared fixtures: a small district with banks, branches, users and records."""

import pytest

from duty_accounts.audit import AuditLogger
from duty_accounts.directory import DirectoryStore
from duty_accounts.models.directory import Bank, Branch
from duty_accounts.models.personnel import (
    Actor,
    ActorRole,
    PersonnelAccount,
    PersonnelCategory,
    User,
    UserRole,
)
from duty_accounts.repository import SnapshotRepository
from duty_accounts.services.storage import InMemoryAuditStorage, InMemoryBackend

from factories import make_account


@pytest.fixture
def banks() -> list[Bank]:
    return [
        Bank(id="B_1", name="PUNJAB NATIONAL BANK"),
        Bank(id="B_7", name="STATE BANK OF INDIA"),
    ]


@pytest.fixture
def branches() -> list[Branch]:
    return [
        Branch(id="BR_1", name="Rampur Main", routing_code="PUNB0112200", bank_id="B_1"),
        Branch(id="BR_4", name="Civil Lines", routing_code="SBIN0000691", bank_id="B_7"),
    ]


@pytest.fixture
def directory(banks, branches) -> DirectoryStore:
    return DirectoryStore(banks, branches)


@pytest.fixture
def users() -> list[User]:
    return [
        User(user_id="U_0", user_name="admin", role=UserRole.ADMIN, officer_name="District Admin"),
        User(user_id="U_1", user_name="rampur", role=UserRole.TEHSIL, officer_name="Rampur Tehsildar"),
        User(user_id="U_2", user_name="bilaspur", role=UserRole.TEHSIL, officer_name="Bilaspur Tehsildar"),
    ]


@pytest.fixture
def accounts() -> list[PersonnelAccount]:
    return [
        make_account("BLO_1", mobile="9876500001"),
        make_account("BLO_2", mobile="9876500002", unit_identifier="13"),
        make_account(
            "AV_1",
            PersonnelCategory.ASSISTANT_OFFICER,
            mobile="9876500003",
            owning_user_id="U_2",
            tehsil="Bilaspur",
        ),
        make_account(
            "SUP_1",
            PersonnelCategory.SUPERVISOR,
            mobile="9876500004",
            unit_identifier="3",
        ),
    ]


@pytest.fixture
def backend(accounts, banks, branches, users) -> InMemoryBackend:
    return InMemoryBackend(accounts=accounts, banks=banks, branches=branches, users=users)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
async def repository(backend, audit_logger) -> SnapshotRepository:
    repo = SnapshotRepository(backend, audit_logger=audit_logger)
    await repo.refresh()
    return repo


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id="U_0", role=ActorRole.ADMIN)


@pytest.fixture
def rampur_user() -> Actor:
    return Actor(actor_id="U_1", role=ActorRole.REGIONAL)


@pytest.fixture
def bilaspur_user() -> Actor:
    return Actor(actor_id="U_2", role=ActorRole.REGIONAL)

