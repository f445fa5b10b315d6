"""Tests for the progress summary query."""

import pytest

from duty_accounts.models.personnel import PersonnelCategory
from duty_accounts.queries import ProgressCounts, ProgressQuery

from factories import complete, make_account


@pytest.fixture
async def seeded_repository(repository, backend):
    blo = backend.accounts[PersonnelCategory.FIELD_OFFICER]
    blo[0] = complete(make_account("BLO_1", mobile="9876500001"), verified="yes")
    blo[1] = complete(make_account("BLO_2", mobile="9876500002"), account_number="30099999999")
    await repository.refresh()
    return repository


class TestProgressQuery:
    """Tests for per-tehsil progress counts."""

    @pytest.mark.asyncio
    async def test_admin_sees_every_tehsil(self, seeded_repository, admin):
        """Test counts per tehsil and category."""
        summary = ProgressQuery(seeded_repository).summarize(admin)

        assert [row.tehsil for row in summary.rows] == ["Rampur", "Bilaspur"]
        rampur = summary.row("Rampur")
        blo = rampur.for_category(PersonnelCategory.FIELD_OFFICER)
        assert (blo.target, blo.entry, blo.verified, blo.remaining) == (2, 2, 1, 0)
        supervisors = rampur.for_category(PersonnelCategory.SUPERVISOR)
        assert (supervisors.target, supervisors.entry, supervisors.remaining) == (1, 0, 1)
        assert rampur.for_category(PersonnelCategory.ASSISTANT_OFFICER).target == 0

    @pytest.mark.asyncio
    async def test_regional_user_is_scoped(self, seeded_repository, bilaspur_user):
        """Test that a regional user only sees their own tehsil."""
        summary = ProgressQuery(seeded_repository).summarize(bilaspur_user)
        assert [row.tehsil for row in summary.rows] == ["Bilaspur"]
        assert summary.totals[PersonnelCategory.FIELD_OFFICER].target == 0
        assert summary.totals[PersonnelCategory.ASSISTANT_OFFICER].remaining == 1

    @pytest.mark.asyncio
    async def test_totals(self, seeded_repository, admin):
        """Test column totals across tehsils."""
        totals = ProgressQuery(seeded_repository).summarize(admin).totals
        assert totals[PersonnelCategory.FIELD_OFFICER].entry == 2
        assert totals[PersonnelCategory.ASSISTANT_OFFICER].target == 1
        assert totals[PersonnelCategory.SUPERVISOR].verified == 0

    def test_entry_percent(self):
        """Test rounded entry percentage; empty target gives 0."""
        assert ProgressCounts(target=3, entry=2).entry_percent == 67
        assert ProgressCounts().entry_percent == 0
