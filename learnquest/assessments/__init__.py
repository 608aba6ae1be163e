"""
Quiz and exam assessment engine.

- ``catalog``: quiz and question definitions
- ``grading``: answer grading
- ``attempts``: the attempt lifecycle
- ``access``: eligibility checks
- ``statistics``: analytics over completed attempts
- ``exams``: exam views over quizzes
"""

from learnquest.assessments.services import AssessmentServices, build_services

__all__ = ["AssessmentServices", "build_services"]
