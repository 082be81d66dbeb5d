"""
Tests for capability-scoped listings.
"""

from datetime import timedelta

import pytest

from core.access.capabilities import EMPTY_CAPABILITIES
from core.access.scoping import (
    ENTITY_CONFIG,
    EntityKind,
    ListingFilters,
    Paging,
    SCOPE_POLICY,
    access_predicate,
    scope,
)
from core.config import settings
from core.utils.datetime import add_days, now
from database.models import (
    Application,
    ApplicationStage,
    Candidate,
    CandidateSourcer,
    SourcerType,
)


async def _source(session_factory, candidate_ids, recruiter_id):
    async with session_factory() as session:
        for candidate_id in candidate_ids:
            sourced_at = now()
            session.add(
                CandidateSourcer(
                    candidate_id=candidate_id,
                    claim_sequence=1,
                    sourcer_actor_id=recruiter_id,
                    sourcer_type=SourcerType.RECRUITER,
                    sourced_at=sourced_at,
                    protection_window_days=365,
                    protection_expires_at=add_days(sourced_at, 365),
                )
            )
        await session.commit()


async def _add_candidates(session_factory, count, prefix="Candidate"):
    async with session_factory() as session:
        rows = [Candidate(full_name=f"{prefix} {i}", email=f"c{i}@example.com") for i in range(count)]
        session.add_all(rows)
        await session.commit()
        return [row.id for row in rows]


class TestPaging:
    def test_limit_is_capped(self):
        assert Paging(limit=10_000).effective_limit == settings.max_page_size

    def test_offset(self):
        assert Paging(page=3, limit=10).offset == 20

    def test_page_below_one(self):
        assert Paging(page=0, limit=10).offset == 0


class TestPolicyTable:
    def test_every_entity_has_a_rule_per_capability(self):
        for entity in EntityKind:
            for kind in ("recruiter", "company", "candidate"):
                assert any(
                    key[0] is entity and key[1].value == kind for key in SCOPE_POLICY
                ), (entity, kind)
            assert entity in ENTITY_CONFIG

    def test_no_capability_is_not_allowed(self):
        allowed, predicate = access_predicate(EMPTY_CAPABILITIES, EntityKind.JOBS)
        assert not allowed
        assert predicate is None


class TestScope:
    async def test_no_capability_returns_empty(self, marketplace, session_factory):
        rows, total = await scope(session_factory, EMPTY_CAPABILITIES, EntityKind.CANDIDATES)
        assert rows == []
        assert total == 0

    async def test_admin_sees_everything(self, marketplace, session_factory):
        rows, total = await scope(session_factory, marketplace.caps["admin"], EntityKind.COMPANIES)
        assert total == 2
        assert {row.name for row in rows} == {"Acme Corp", "Globex Inc"}

    async def test_admin_can_narrow_by_organization(self, marketplace, session_factory):
        filters = ListingFilters(organization_id=marketplace.ids["acme_org"])
        rows, total = await scope(
            session_factory, marketplace.caps["admin"], EntityKind.JOBS, filters
        )
        assert total == 1
        assert rows[0].id == marketplace.ids["acme_job"]

    async def test_recruiter_sees_assigned_jobs(self, marketplace, session_factory):
        rows, _ = await scope(session_factory, marketplace.caps["recruiter_1"], EntityKind.JOBS)
        assert [row.id for row in rows] == [marketplace.ids["acme_job"]]

        rows, total = await scope(session_factory, marketplace.caps["recruiter_2"], EntityKind.JOBS)
        assert total == 0

    async def test_company_sees_own_jobs(self, marketplace, session_factory):
        rows, _ = await scope(session_factory, marketplace.caps["other_company"], EntityKind.JOBS)
        assert [row.id for row in rows] == [marketplace.ids["globex_job"]]

    async def test_recruiter_candidates_are_the_sourced_set(self, marketplace, session_factory):
        recruiter_id = marketplace.ids["recruiter_1"]
        mine = await _add_candidates(session_factory, 7, prefix="Mine")
        theirs = await _add_candidates(session_factory, 3, prefix="Theirs")
        await _source(session_factory, mine, recruiter_id)
        await _source(session_factory, theirs, marketplace.ids["recruiter_2"])

        seen = []
        for page in (1, 2, 3):
            rows, total = await scope(
                session_factory,
                marketplace.caps["recruiter_1"],
                EntityKind.CANDIDATES,
                paging=Paging(page=page, limit=3),
            )
            assert total == 7
            seen.extend(row.id for row in rows)

        assert sorted(seen) == sorted(mine)

    async def test_company_candidates_come_from_applications(self, marketplace, session_factory):
        async with session_factory() as session:
            session.add(
                Application(
                    job_id=marketplace.ids["acme_job"],
                    candidate_id=marketplace.ids["jane"],
                    stage=ApplicationStage.SUBMITTED,
                )
            )
            await session.commit()

        rows, _ = await scope(
            session_factory, marketplace.caps["hiring_manager"], EntityKind.CANDIDATES
        )
        assert [row.id for row in rows] == [marketplace.ids["jane"]]

        rows, _ = await scope(
            session_factory, marketplace.caps["other_company"], EntityKind.CANDIDATES
        )
        assert rows == []

    async def test_candidate_sees_only_themselves(self, marketplace, session_factory):
        rows, total = await scope(
            session_factory, marketplace.caps["candidate_user"], EntityKind.CANDIDATES
        )
        assert total == 1
        assert rows[0].id == marketplace.ids["sam"]

    async def test_search_and_equality_filters(self, marketplace, session_factory):
        admin = marketplace.caps["admin"]
        rows, _ = await scope(
            session_factory, admin, EntityKind.JOBS, ListingFilters(search="backend")
        )
        assert [row.title for row in rows] == ["Backend Engineer"]

        rows, _ = await scope(
            session_factory,
            admin,
            EntityKind.JOBS,
            ListingFilters(equals={"company_id": marketplace.ids["globex"], "status": "active"}),
        )
        assert [row.title for row in rows] == ["Plant Operator"]

    @pytest.mark.parametrize("term,expected", [
        ("a_l", ["Anna_Lee"]),
        ("100%", ["Top 100% Closer"]),
        ("ANNA", ["Anna_Lee", "AnnaXLee"]),
    ])
    async def test_search_wildcards_match_literally(
        self, marketplace, session_factory, term, expected
    ):
        async with session_factory() as session:
            session.add_all(
                [
                    Candidate(full_name="Anna_Lee", email="anna.lee@example.com"),
                    Candidate(full_name="AnnaXLee", email="annax@example.com"),
                    Candidate(full_name="Top 100% Closer", email="top@example.com"),
                    Candidate(full_name="Top 1000 Closer", email="top1000@example.com"),
                ]
            )
            await session.commit()

        rows, total = await scope(
            session_factory,
            marketplace.caps["admin"],
            EntityKind.CANDIDATES,
            ListingFilters(search=term),
        )
        assert sorted(row.full_name for row in rows) == sorted(expected)
        assert total == len(expected)

    async def test_created_range(self, marketplace, session_factory):
        rows, total = await scope(
            session_factory,
            marketplace.caps["admin"],
            EntityKind.COMPANIES,
            ListingFilters(created_after=now() + timedelta(days=1)),
        )
        assert total == 0

    async def test_unknown_filter_is_rejected(self, marketplace, session_factory):
        with pytest.raises(ValueError):
            await scope(
                session_factory,
                marketplace.caps["admin"],
                EntityKind.JOBS,
                ListingFilters(equals={"salary": 10}),
            )

    async def test_invalid_enum_value_is_rejected(self, marketplace, session_factory):
        with pytest.raises(ValueError):
            await scope(
                session_factory,
                marketplace.caps["admin"],
                EntityKind.JOBS,
                ListingFilters(equals={"status": "sleeping"}),
            )

    async def test_sort_order(self, marketplace, session_factory):
        rows, _ = await scope(
            session_factory,
            marketplace.caps["admin"],
            EntityKind.COMPANIES,
            paging=Paging(sort_by="name", sort_order="asc"),
        )
        assert [row.name for row in rows] == ["Acme Corp", "Globex Inc"]
