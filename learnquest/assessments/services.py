"""
Wiring of the assessment services.

All services share one session factory and the same collaborators; the
HTTP layer and the tests build them through ``build_services``.
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from learnquest.assessments.access import AccessGate
from learnquest.assessments.attempts import AttemptManager
from learnquest.assessments.catalog import QuizCatalog
from learnquest.assessments.collaborators import CourseDirectory, ProgressTracker
from learnquest.assessments.exams import ExamAdapter
from learnquest.assessments.statistics import StatisticsAggregator
from learnquest.common.config import AssessmentConfig
from learnquest.common.utils import utc_now


@dataclass
class AssessmentServices:
    catalog: QuizCatalog
    attempts: AttemptManager
    gate: AccessGate
    statistics: StatisticsAggregator
    exams: ExamAdapter


def build_services(
    session_factory: async_sessionmaker,
    courses: CourseDirectory,
    progress: ProgressTracker,
    config: Optional[AssessmentConfig] = None,
    clock: Callable[[], datetime.datetime] = utc_now,
) -> AssessmentServices:
    catalog = QuizCatalog(session_factory, courses, config=config, clock=clock)
    attempts = AttemptManager(session_factory, clock=clock)
    gate = AccessGate(session_factory, courses, progress)
    statistics = StatisticsAggregator(session_factory, courses)
    return AssessmentServices(
        catalog=catalog,
        attempts=attempts,
        gate=gate,
        statistics=statistics,
        exams=ExamAdapter(catalog, attempts, gate, statistics),
    )
