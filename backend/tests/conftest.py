"""Shared fixtures: a file-backed SQLite database per test, a fake roster,
and a workflow wired to a recording notification sink."""

import pytest
import pytest_asyncio

from boardreview.database import (
    create_engine_for_url,
    create_session_factory,
    init_models,
)
from boardreview.review_workflow import ReviewWorkflow
from boardreview.services.notifications import NotificationDispatcher
from boardreview.settings import QuorumPolicy, Settings

from factories import BOARD_IDS, FakeRoster, RecordingSink


@pytest_asyncio.fixture
async def engine(tmp_path):
    # A file database so that concurrent sessions use separate connections
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'review.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def roster():
    return FakeRoster(voters=BOARD_IDS, deciders={"admin-1"})


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        quorum=QuorumPolicy(fixed_count=3),
        enable_scheduler=False,
    )


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def workflow(session_factory, roster, settings, sink):
    return ReviewWorkflow(
        session_factory, roster, settings, NotificationDispatcher([sink])
    )
