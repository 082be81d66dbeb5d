"""
Tests for candidate reads, writes and masked listings.
"""

import pytest

from api.services import applications, candidates, ownership
from api.services.listings import list_entities
from core.access.scoping import EntityKind, ListingFilters, Paging
from core.config import settings
from core.exceptions import Forbidden, NotFound
from database.models import ApplicationStage


class TestGetCandidate:
    async def test_admin_and_self_see_everything(self, marketplace, session):
        admin_view = await candidates.get_candidate(
            session, marketplace.ids["jane"], marketplace.caps["admin"]
        )
        assert admin_view["email"] == "jane@example.com"

        own_view = await candidates.get_candidate(
            session, marketplace.ids["sam"], marketplace.caps["candidate_user"]
        )
        assert own_view["full_name"] == "Sam Lee"

    async def test_sourcing_recruiter_sees_profile(self, marketplace, session, publisher):
        await ownership.establish_ownership(
            session, marketplace.ids["jane"], marketplace.ids["recruiter_1"], publisher=publisher
        )
        view = await candidates.get_candidate(
            session, marketplace.ids["jane"], marketplace.caps["recruiter_1"]
        )
        assert view["phone"] == "+1 555 0100"

        with pytest.raises(Forbidden):
            await candidates.get_candidate(
                session, marketplace.ids["jane"], marketplace.caps["recruiter_2"]
            )

    async def test_company_sees_masked_until_accepted(
        self, marketplace, session, publisher, make_application
    ):
        application_id = await make_application(stage=ApplicationStage.SUBMITTED)
        caps = marketplace.caps["hiring_manager"]

        masked = await candidates.get_candidate(session, marketplace.ids["jane"], caps)
        assert masked["full_name"] == "J.D."
        assert masked["email"] == settings.masked_email
        assert masked["linkedin_url"] is None
        assert masked["current_title"] == "Engineer"

        await applications.accept_application(session, application_id, caps, publisher=publisher)
        unmasked = await candidates.get_candidate(session, marketplace.ids["jane"], caps)
        assert unmasked["linkedin_url"] == "https://linkedin.com/in/janedoe"

    async def test_unrelated_company_forbidden(self, marketplace, session, make_application):
        await make_application()
        with pytest.raises(Forbidden):
            await candidates.get_candidate(
                session, marketplace.ids["jane"], marketplace.caps["other_company"]
            )

    async def test_unknown_candidate(self, marketplace, session):
        with pytest.raises(NotFound):
            await candidates.get_candidate(session, 777, marketplace.caps["admin"])


class TestUpdateCandidate:
    async def test_open_candidate_can_be_updated_by_recruiter(self, marketplace, session):
        updated = await candidates.update_candidate(
            session,
            marketplace.caps["recruiter_2"],
            marketplace.ids["jane"],
            {"location": "Lisbon"},
        )
        assert updated["location"] == "Lisbon"

    async def test_owned_candidate_blocks_other_recruiters(self, marketplace, session, publisher):
        await ownership.establish_ownership(
            session, marketplace.ids["jane"], marketplace.ids["recruiter_1"], publisher=publisher
        )

        with pytest.raises(Forbidden):
            await candidates.update_candidate(
                session,
                marketplace.caps["recruiter_2"],
                marketplace.ids["jane"],
                {"current_title": "Staff Engineer"},
            )

        updated = await candidates.update_candidate(
            session,
            marketplace.caps["recruiter_1"],
            marketplace.ids["jane"],
            {"current_title": "Staff Engineer"},
        )
        assert updated["current_title"] == "Staff Engineer"

    async def test_company_cannot_update(self, marketplace, session):
        with pytest.raises(Forbidden):
            await candidates.update_candidate(
                session,
                marketplace.caps["hiring_manager"],
                marketplace.ids["jane"],
                {"location": "Paris"},
            )

    async def test_unknown_field(self, marketplace, session):
        with pytest.raises(ValueError):
            await candidates.update_candidate(
                session, marketplace.caps["admin"], marketplace.ids["jane"], {"user_id": 1}
            )


class TestListEntities:
    async def test_company_listing_masks_unaccepted(
        self, marketplace, session, session_factory, publisher, make_application
    ):
        await make_application(stage=ApplicationStage.SUBMITTED)
        accepted_id = await make_application(stage=ApplicationStage.SUBMITTED, candidate="sam")
        await applications.accept_application(
            session, accepted_id, marketplace.caps["hiring_manager"], publisher=publisher
        )

        listing = await list_entities(
            session_factory,
            marketplace.caps["hiring_manager"],
            EntityKind.CANDIDATES,
            paging=Paging(sort_by="full_name", sort_order="asc"),
        )

        assert listing["total"] == 2
        names = [item["full_name"] for item in listing["items"]]
        assert names == ["J.D.", "Sam Lee"]

    async def test_listing_envelope(self, marketplace, session_factory):
        listing = await list_entities(
            session_factory,
            marketplace.caps["admin"],
            "jobs",
            ListingFilters(equals={"status": "active"}),
            Paging(page=1, limit=1),
        )
        assert listing["total"] == 2
        assert listing["limit"] == 1
        assert len(listing["items"]) == 1
        assert listing["items"][0]["status"] == "active"

    async def test_proposals_are_served_elsewhere(self, marketplace, session_factory):
        with pytest.raises(ValueError):
            await list_entities(session_factory, marketplace.caps["admin"], EntityKind.PROPOSALS)
