"""
Shared fixtures: a temporary SQLite database per test, in-memory course and
progress collaborators, and a settable clock.
"""

import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from learnquest.assessments.collaborators import InMemoryCourseDirectory, InMemoryProgressTracker
from learnquest.assessments.services import build_services
from learnquest.common.config import AssessmentConfig
from learnquest.common.db.session import create_session_factory
from learnquest.database.init_db import create_schema
from learnquest.tests.helpers import (
    COURSE_ID,
    INSTRUCTOR_ID,
    LEVEL_ID,
    OTHER_COURSE_ID,
    OTHER_INSTRUCTOR_ID,
    OTHER_LEVEL_ID,
    STUDENT_ID,
    Clock,
)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'assessments.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    """Engine on a fresh database with the full schema."""
    test_engine = create_async_engine(database_url)
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def clock():
    return Clock(datetime.datetime(2026, 1, 5, 9, 0, 0))


@pytest.fixture
def courses():
    directory = InMemoryCourseDirectory()
    directory.add_course(COURSE_ID, INSTRUCTOR_ID, level_ids=[LEVEL_ID])
    directory.add_course(OTHER_COURSE_ID, OTHER_INSTRUCTOR_ID, level_ids=[OTHER_LEVEL_ID])
    directory.enroll(COURSE_ID, STUDENT_ID)
    return directory


@pytest.fixture
def progress():
    return InMemoryProgressTracker()


@pytest.fixture
def assessment_config():
    return AssessmentConfig()


@pytest.fixture
def services(session_factory, courses, progress, assessment_config, clock):
    return build_services(session_factory, courses, progress, config=assessment_config, clock=clock)
