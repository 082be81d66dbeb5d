"""Fixtures for service tests."""

import pytest

from database.models import Application, ApplicationStage


@pytest.fixture
def make_application(session_factory, marketplace):
    """Insert an application directly, bypassing the workflow."""

    async def _make(
        stage=ApplicationStage.RECRUITER_PROPOSED,
        candidate="jane",
        job="acme_job",
        recruiter="recruiter_1",
        **fields,
    ) -> int:
        async with session_factory() as session:
            application = Application(
                job_id=marketplace.ids[job],
                candidate_id=marketplace.ids[candidate],
                recruiter_id=marketplace.ids[recruiter] if recruiter else None,
                stage=stage,
                **fields,
            )
            session.add(application)
            await session.commit()
            return application.id

    return _make
