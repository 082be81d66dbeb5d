"""
Tests for the application workflow service.
"""

import asyncio

import pytest

from api.services import applications, ownership
from core.events import EventType
from core.exceptions import AlreadyOwned, Forbidden, InvalidTransition, NotFound
from database.models import ApplicationStage


class TestCreateApplication:
    async def test_recruiter_proposal(self, marketplace, session, publisher):
        created = await applications.create_application(
            session,
            marketplace.caps["recruiter_1"],
            job_id=marketplace.ids["acme_job"],
            candidate_id=marketplace.ids["jane"],
            notes="Strong backend background",
            publisher=publisher,
        )

        assert created["stage"] == "recruiter_proposed"
        assert created["recruiter_id"] == marketplace.ids["recruiter_1"]
        assert created["accepted_by_company"] is False

        history = await applications.get_application_history(
            session, created["id"], marketplace.caps["recruiter_1"]
        )
        assert [entry["action"] for entry in history] == ["created"]
        assert history[0]["performed_by_role"] == "recruiter"
        assert history[0]["company_id"] == marketplace.ids["acme"]
        assert len(publisher.of_type(EventType.APPLICATION_CREATED)) == 1

    async def test_candidate_starts_a_draft(self, marketplace, session, publisher):
        created = await applications.create_application(
            session,
            marketplace.caps["candidate_user"],
            job_id=marketplace.ids["acme_job"],
            candidate_id=marketplace.ids["sam"],
            publisher=publisher,
        )

        assert created["stage"] == "draft"
        assert created["recruiter_id"] is None

    async def test_company_cannot_create(self, marketplace, session, publisher):
        with pytest.raises(Forbidden):
            await applications.create_application(
                session,
                marketplace.caps["hiring_manager"],
                job_id=marketplace.ids["acme_job"],
                candidate_id=marketplace.ids["jane"],
                publisher=publisher,
            )

    async def test_recruiter_blocked_by_other_owner(self, marketplace, session, publisher):
        await ownership.establish_ownership(
            session, marketplace.ids["jane"], marketplace.ids["recruiter_1"], publisher=publisher
        )

        with pytest.raises(AlreadyOwned):
            await applications.create_application(
                session,
                marketplace.caps["recruiter_2"],
                job_id=marketplace.ids["acme_job"],
                candidate_id=marketplace.ids["jane"],
                publisher=publisher,
            )

    async def test_unknown_job(self, marketplace, session, publisher):
        with pytest.raises(NotFound):
            await applications.create_application(
                session,
                marketplace.caps["recruiter_1"],
                job_id=999_999,
                candidate_id=marketplace.ids["jane"],
                publisher=publisher,
            )


class TestTransition:
    async def test_transition_writes_audit_and_event(
        self, marketplace, session, publisher, make_application
    ):
        application_id = await make_application(stage=ApplicationStage.SUBMITTED)

        moved = await applications.transition(
            session,
            application_id,
            "interview",
            marketplace.caps["hiring_manager"],
            notes="Panel booked",
            publisher=publisher,
        )

        assert moved["stage"] == "interview"
        assert moved["notes"] == "Panel booked"

        history = await applications.get_application_history(
            session, application_id, marketplace.caps["hiring_manager"]
        )
        assert history[0]["action"] == "stage_changed"
        assert history[0]["old_value"] == {"stage": "submitted"}
        assert history[0]["new_value"] == {"stage": "interview"}
        assert history[0]["performed_by_role"] == "company"

        (event,) = publisher.of_type(EventType.APPLICATION_STAGE_CHANGED)
        assert event["old_stage"] == "submitted"
        assert event["new_stage"] == "interview"

    @pytest.mark.parametrize("stage", ["hired", "rejected", "withdrawn"])
    async def test_terminal_stages_do_not_move(
        self, marketplace, session, publisher, make_application, stage
    ):
        application_id = await make_application(stage=ApplicationStage(stage))

        with pytest.raises(InvalidTransition):
            await applications.transition(
                session, application_id, "submitted", marketplace.caps["admin"], publisher=publisher
            )
        assert publisher.events == []

    async def test_unknown_stage(self, marketplace, session, make_application):
        application_id = await make_application()
        with pytest.raises(ValueError):
            await applications.transition(
                session, application_id, "celebrating", marketplace.caps["admin"]
            )

    async def test_unrelated_caller_forbidden(self, marketplace, session, make_application):
        application_id = await make_application()
        with pytest.raises(Forbidden):
            await applications.transition(
                session, application_id, "submitted", marketplace.caps["other_company"]
            )

    async def test_unknown_application(self, marketplace, session):
        with pytest.raises(NotFound):
            await applications.transition(session, 31337, "submitted", marketplace.caps["admin"])


class TestTransitionPermissions:
    @pytest.mark.parametrize("actor", ["candidate_user", "recruiter_1"])
    async def test_only_company_or_admin_can_hire(
        self, marketplace, session, publisher, make_application, actor
    ):
        application_id = await make_application(stage=ApplicationStage.OFFER, candidate="sam")

        with pytest.raises(Forbidden):
            await applications.transition(
                session, application_id, "hired", marketplace.caps[actor], publisher=publisher
            )
        assert publisher.events == []

    async def test_company_hires(self, marketplace, session, publisher, make_application):
        application_id = await make_application(stage=ApplicationStage.OFFER, candidate="sam")
        moved = await applications.transition(
            session, application_id, "hired", marketplace.caps["hiring_manager"], publisher=publisher
        )
        assert moved["stage"] == "hired"

    async def test_candidate_can_withdraw(self, marketplace, session, publisher, make_application):
        application_id = await make_application(stage=ApplicationStage.INTERVIEW, candidate="sam")
        moved = await applications.transition(
            session, application_id, "withdrawn", marketplace.caps["candidate_user"], publisher=publisher
        )
        assert moved["stage"] == "withdrawn"

    async def test_candidate_responds_to_proposal(
        self, marketplace, session, publisher, make_application
    ):
        application_id = await make_application(candidate="sam")
        moved = await applications.transition(
            session, application_id, "draft", marketplace.caps["candidate_user"], publisher=publisher
        )
        assert moved["stage"] == "draft"

    async def test_candidate_cannot_drive_company_stages(
        self, marketplace, session, make_application
    ):
        application_id = await make_application(stage=ApplicationStage.SUBMITTED, candidate="sam")
        with pytest.raises(Forbidden):
            await applications.transition(
                session, application_id, "interview", marketplace.caps["candidate_user"]
            )

    async def test_recruiter_moves_own_proposal(
        self, marketplace, session, publisher, make_application
    ):
        application_id = await make_application()
        moved = await applications.transition(
            session, application_id, "submitted", marketplace.caps["recruiter_1"], publisher=publisher
        )
        assert moved["stage"] == "submitted"


class TestAcceptApplication:
    async def test_accept_is_idempotent(self, marketplace, session, publisher, make_application):
        application_id = await make_application(stage=ApplicationStage.SUBMITTED)
        caps = marketplace.caps["hiring_manager"]

        first = await applications.accept_application(
            session, application_id, caps, publisher=publisher
        )
        second = await applications.accept_application(
            session, application_id, caps, publisher=publisher
        )

        assert first["accepted_by_company"] is True
        assert second["accepted_at"] == first["accepted_at"]

        history = await applications.get_application_history(session, application_id, caps)
        assert [entry["action"] for entry in history] == ["accepted"]
        assert len(publisher.of_type(EventType.APPLICATION_ACCEPTED)) == 1

    async def test_concurrent_accepts_record_once(
        self, marketplace, session_factory, publisher, make_application
    ):
        application_id = await make_application(stage=ApplicationStage.SUBMITTED)

        async def accept(actor):
            async with session_factory() as session:
                return await applications.accept_application(
                    session, application_id, marketplace.caps[actor], publisher=publisher
                )

        results = await asyncio.gather(accept("hiring_manager"), accept("admin"))

        assert all(result["accepted_by_company"] for result in results)
        assert len(publisher.of_type(EventType.APPLICATION_ACCEPTED)) == 1
        async with session_factory() as session:
            history = await applications.get_application_history(
                session, application_id, marketplace.caps["admin"]
            )
        assert [entry["action"] for entry in history] == ["accepted"]

    async def test_other_company_forbidden(self, marketplace, session, make_application):
        application_id = await make_application()
        with pytest.raises(Forbidden):
            await applications.accept_application(
                session, application_id, marketplace.caps["other_company"]
            )

    async def test_recruiter_cannot_accept(self, marketplace, session, make_application):
        application_id = await make_application()
        with pytest.raises(Forbidden):
            await applications.accept_application(
                session, application_id, marketplace.caps["recruiter_1"]
            )

    async def test_admin_can_accept(self, marketplace, session, publisher, make_application):
        application_id = await make_application()
        accepted = await applications.accept_application(
            session, application_id, marketplace.caps["admin"], publisher=publisher
        )
        assert accepted["accepted_by_company"] is True


class TestHistory:
    async def test_history_is_newest_first(self, marketplace, session, publisher):
        created = await applications.create_application(
            session,
            marketplace.caps["recruiter_1"],
            job_id=marketplace.ids["acme_job"],
            candidate_id=marketplace.ids["jane"],
            publisher=publisher,
        )
        for stage in ("submitted", "interview", "offer"):
            await applications.transition(
                session, created["id"], stage, marketplace.caps["admin"], publisher=publisher
            )

        history = await applications.get_application_history(
            session, created["id"], marketplace.caps["admin"]
        )
        assert [entry["action"] for entry in history] == [
            "stage_changed",
            "stage_changed",
            "stage_changed",
            "created",
        ]
        assert history[0]["new_value"] == {"stage": "offer"}

    async def test_candidate_sees_own_history(self, marketplace, session, make_application):
        application_id = await make_application(candidate="sam")
        history = await applications.get_application_history(
            session, application_id, marketplace.caps["candidate_user"]
        )
        assert history == []
