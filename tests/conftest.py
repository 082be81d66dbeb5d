"""Shared fixtures and utilities for tests."""

import os

# Settings are read once at import time
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["JSON_LOGS"] = "false"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"

from dataclasses import dataclass, field
from typing import Dict

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.access.capabilities import CapabilitySet
from core.access.identity import SqlIdentityDirectory
from core.access.resolver import resolve_capabilities
from core.events import RecordingEventPublisher
from database.engine import Base, create_engine_from_url
from database.models import (
    Candidate,
    Company,
    Job,
    JobAssignment,
    MembershipRole,
    Organization,
    OrganizationMembership,
    Recruiter,
    RecruiterStatus,
    User,
)


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test."""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@dataclass
class Marketplace:
    """Seeded ids and resolved capabilities for each actor."""

    session_factory: async_sessionmaker[AsyncSession]
    ids: Dict[str, int] = field(default_factory=dict)
    caps: Dict[str, CapabilitySet] = field(default_factory=dict)

    async def capabilities(self, external_id: str, org_hint=None) -> CapabilitySet:
        directory = SqlIdentityDirectory(self.session_factory)
        return await resolve_capabilities(directory, external_id, org_hint)


# Caller tokens used by the gateway headers in API tests
ACTORS = ("admin", "hiring_manager", "other_company", "recruiter_1", "recruiter_2", "candidate_user")


@pytest.fixture
async def marketplace(session_factory) -> Marketplace:
    """
    Seed a small marketplace.

    - Acme (org + company) with an active job assigned to recruiter 1
    - Globex (org + company) with one job
    - Platform org holding the platform admin
    - Two active recruiters and a suspended one
    - Candidate "Jane Doe" with no account, candidate "Sam Lee" with an account
    """
    world = Marketplace(session_factory=session_factory)
    async with session_factory() as session:
        users = {
            name: User(external_id=f"ext-{name}", email=f"{name}@example.com", full_name=name)
            for name in ACTORS + ("suspended_recruiter",)
        }
        session.add_all(users.values())

        platform = Organization(name="Platform")
        acme_org = Organization(name="Acme")
        globex_org = Organization(name="Globex")
        session.add_all([platform, acme_org, globex_org])
        await session.flush()

        acme = Company(organization_id=acme_org.id, name="Acme Corp", industry="Software")
        globex = Company(organization_id=globex_org.id, name="Globex Inc", industry="Energy")
        session.add_all([acme, globex])

        session.add_all(
            [
                OrganizationMembership(
                    user_id=users["admin"].id,
                    organization_id=platform.id,
                    role=MembershipRole.PLATFORM_ADMIN,
                ),
                OrganizationMembership(
                    user_id=users["hiring_manager"].id,
                    organization_id=acme_org.id,
                    role=MembershipRole.HIRING_MANAGER,
                ),
                OrganizationMembership(
                    user_id=users["other_company"].id,
                    organization_id=globex_org.id,
                    role=MembershipRole.COMPANY_ADMIN,
                ),
            ]
        )

        recruiter_1 = Recruiter(user_id=users["recruiter_1"].id, status=RecruiterStatus.ACTIVE)
        recruiter_2 = Recruiter(user_id=users["recruiter_2"].id, status=RecruiterStatus.ACTIVE)
        suspended = Recruiter(
            user_id=users["suspended_recruiter"].id, status=RecruiterStatus.SUSPENDED
        )
        session.add_all([recruiter_1, recruiter_2, suspended])
        await session.flush()

        acme_job = Job(
            company_id=acme.id,
            title="Backend Engineer",
            location="Remote",
            fee_percentage=20.0,
            guarantee_days=90,
        )
        globex_job = Job(company_id=globex.id, title="Plant Operator", location="Springfield")
        session.add_all([acme_job, globex_job])
        await session.flush()
        session.add(JobAssignment(job_id=acme_job.id, recruiter_id=recruiter_1.id))

        jane = Candidate(
            full_name="Jane Doe",
            email="jane@example.com",
            phone="+1 555 0100",
            linkedin_url="https://linkedin.com/in/janedoe",
            current_title="Engineer",
        )
        sam = Candidate(
            user_id=users["candidate_user"].id,
            full_name="Sam Lee",
            email="sam@example.com",
            phone="+1 555 0199",
        )
        session.add_all([jane, sam])
        await session.commit()

        world.ids.update(
            {
                "platform_org": platform.id,
                "acme_org": acme_org.id,
                "globex_org": globex_org.id,
                "acme": acme.id,
                "globex": globex.id,
                "acme_job": acme_job.id,
                "globex_job": globex_job.id,
                "recruiter_1": recruiter_1.id,
                "recruiter_2": recruiter_2.id,
                "jane": jane.id,
                "sam": sam.id,
                **{f"user_{name}": user.id for name, user in users.items()},
            }
        )

    for name in ACTORS + ("suspended_recruiter",):
        world.caps[name] = await world.capabilities(f"ext-{name}")
    return world


@pytest.fixture
async def client(session_factory, publisher):
    """API client bound to the per-test database and recording publisher."""
    from api.dependencies import get_publisher
    from api.main import create_app
    from database.engine import get_db, get_session_factory

    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_publisher] = lambda: publisher

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
