"""
Integration tests for per-member opportunity checklists.
"""

import pytest
import pytest_asyncio

from licitadesk.core.exceptions import AuthorizationError, NotFoundError
from tests.factories import OpportunityFactory, ProfileFactory


@pytest_asyncio.fixture
async def opportunity(db_session, organization):
    row = OpportunityFactory.create(organization.id)
    db_session.add(row)
    await db_session.commit()
    return row


class TestChecklist:
    @pytest.mark.asyncio
    async def test_progress_is_tracked_per_member(self, db_session, services, admin, member, colleague, opportunity):
        checklists = services.checklists
        certidoes = await checklists.add_item(db_session, admin, opportunity.id, "Certidões negativas")
        await checklists.add_item(db_session, admin, opportunity.id, "Atestado de capacidade técnica")

        status = await checklists.toggle_item(db_session, member, certidoes.id)
        assert status.is_completed is True

        mine = await checklists.progress(db_session, member, opportunity.id)
        theirs = await checklists.progress(db_session, colleague, opportunity.id)
        assert (mine.completed, mine.total, mine.ratio) == (1, 2, 0.5)
        assert theirs.completed == 0
        assert [entry.item.label for entry in mine.entries] == [
            "Certidões negativas",
            "Atestado de capacidade técnica",
        ]

    @pytest.mark.asyncio
    async def test_toggle_flips_or_sets(self, db_session, services, admin, member, opportunity):
        item = await services.checklists.add_item(db_session, admin, opportunity.id, "Proposta assinada")

        await services.checklists.toggle_item(db_session, member, item.id)
        flipped = await services.checklists.toggle_item(db_session, member, item.id)
        assert flipped.is_completed is False

        forced = await services.checklists.toggle_item(db_session, member, item.id, completed=True)
        again = await services.checklists.toggle_item(db_session, member, item.id, completed=True)
        assert forced.is_completed is True
        assert again.is_completed is True

    @pytest.mark.asyncio
    async def test_removing_an_item(self, db_session, services, admin, member, opportunity):
        item = await services.checklists.add_item(db_session, admin, opportunity.id, "Garantia")
        await services.checklists.add_item(db_session, admin, opportunity.id, "Planilha de custos")
        await services.checklists.toggle_item(db_session, member, item.id)

        await services.checklists.remove_item(db_session, admin, item.id)

        progress = await services.checklists.progress(db_session, member, opportunity.id)
        assert (progress.completed, progress.total) == (0, 1)

    @pytest.mark.asyncio
    async def test_members_cannot_edit_items(self, db_session, services, member, opportunity):
        opportunity_id = opportunity.id
        with pytest.raises(AuthorizationError):
            await services.checklists.add_item(db_session, member, opportunity_id, "Item")

    @pytest.mark.asyncio
    async def test_other_organizations_cannot_see_it(
        self, db_session, services, admin, other_organization, load_actor, opportunity
    ):
        outsider_profile = ProfileFactory.create_subscriber(organization_id=other_organization.id)
        db_session.add(outsider_profile)
        await db_session.commit()
        outsider = await load_actor(outsider_profile)
        item = await services.checklists.add_item(db_session, admin, opportunity.id, "Garantia")
        item_id = item.id

        with pytest.raises(NotFoundError):
            await services.checklists.toggle_item(db_session, outsider, item_id)
