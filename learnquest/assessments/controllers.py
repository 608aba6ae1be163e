"""
Assessment Controllers

HTTP endpoints for quizzes, questions, attempts, exams and statistics.

Identity comes from the ``X-User-Id`` and ``X-Instructor-Id`` headers;
authentication happens in front of this service. Business failures are
unwrapped into ``AssessmentError`` exceptions and turned into responses by
the handlers registered in ``learnquest.main``.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from learnquest.assessments.models import QuizType, SubmittedAnswer
from learnquest.assessments.schemas import (
    AddQuestionsRequest,
    ExamCreate,
    ExamWithQuestionsCreate,
    QuestionCreate,
    QuestionUpdate,
    QuizCreate,
    QuizUpdate,
    QuizWithQuestionsCreate,
    ReorderRequest,
    SubmitRequest,
)
from learnquest.assessments.services import AssessmentServices
from learnquest.common.logger import app_logger
from learnquest.common.results import OperationResult
from learnquest.common.serialization import serialize

logger = app_logger.getChild("assessments.controllers")

router = APIRouter(tags=["Assessments"])


# --- dependencies -----------------------------------------------------------

def get_services(request: Request) -> AssessmentServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assessment services are not initialised"
        )
    return services


async def get_user_id(x_user_id: Optional[int] = Header(None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id


async def get_instructor_id(x_instructor_id: Optional[int] = Header(None)) -> int:
    if x_instructor_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Instructor-Id header")
    return x_instructor_id


async def get_optional_user_id(x_user_id: Optional[int] = Header(None)) -> Optional[int]:
    return x_user_id


def respond(result: OperationResult) -> Any:
    """Serialize the value of a successful result; raise the matching error otherwise."""
    return serialize(result.unwrap())


def _answers(request: SubmitRequest) -> List[SubmittedAnswer]:
    return [
        SubmittedAnswer(
            question_id=answer.question_id,
            selected_option_id=answer.selected_option_id,
            boolean_answer=answer.boolean_answer,
        )
        for answer in request.answers
    ]


# --- quizzes ------------------------------------------------------------------

@router.post("/quizzes", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    definition: QuizCreate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    quiz_id = respond(await services.catalog.create_quiz(definition, instructor_id))
    return {"quiz_id": quiz_id}


@router.post("/quizzes/with-questions", status_code=status.HTTP_201_CREATED)
async def create_quiz_with_questions(
    bundle: QuizWithQuestionsCreate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.catalog.create_quiz_with_questions(bundle, instructor_id))


@router.get("/quizzes/{quiz_id}")
async def get_quiz(
    quiz_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    """Quiz summary; annotated with the caller's attempts when ``X-User-Id`` is sent."""
    if user_id is None:
        return respond(await services.catalog.get_quiz(quiz_id))
    return respond(await services.gate.describe_quiz_for_user(quiz_id, user_id))


@router.patch("/quizzes/{quiz_id}")
async def update_quiz(
    quiz_id: int,
    changes: QuizUpdate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.catalog.update_quiz(quiz_id, changes, instructor_id))


@router.delete("/quizzes/{quiz_id}")
async def delete_quiz(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"deleted": respond(await services.catalog.delete_quiz(quiz_id, instructor_id))}


@router.post("/quizzes/{quiz_id}/toggle-status")
async def toggle_quiz_status(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"is_active": respond(await services.catalog.toggle_quiz_status(quiz_id, instructor_id))}


@router.get("/quizzes/{quiz_id}/questions")
async def get_quiz_questions(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.catalog.get_quiz_questions(quiz_id, instructor_id))


@router.post("/quizzes/{quiz_id}/questions")
async def add_questions_to_quiz(
    quiz_id: int,
    request: AddQuestionsRequest,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    added = respond(await services.catalog.add_questions_to_quiz(
        quiz_id, request.question_ids, instructor_id, request.custom_points
    ))
    return {"added": added}


@router.delete("/quizzes/{quiz_id}/questions/{question_id}")
async def remove_question_from_quiz(
    quiz_id: int,
    question_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"removed": respond(await services.catalog.remove_question_from_quiz(quiz_id, question_id, instructor_id))}


@router.put("/quizzes/{quiz_id}/questions/order")
async def reorder_quiz_questions(
    quiz_id: int,
    request: ReorderRequest,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"reordered": respond(await services.catalog.reorder_quiz_questions(quiz_id, request.orders, instructor_id))}


@router.get("/courses/{course_id}/quizzes")
async def list_course_quizzes(
    course_id: int,
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.catalog.list_quizzes_by_course(course_id))


@router.get("/quizzes")
async def list_quizzes_by_type(
    quiz_type: QuizType = Query(..., description="Quiz type to list"),
    entity_id: Optional[int] = Query(None, description="Content, section, level or course id for the type"),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.catalog.list_quizzes_by_type(quiz_type, entity_id))


@router.get("/required-quizzes")
async def get_required_quizzes(
    content_id: Optional[int] = Query(None),
    section_id: Optional[int] = Query(None),
    level_id: Optional[int] = Query(None),
    course_id: Optional[int] = Query(None),
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    quizzes = await services.gate.get_required_quizzes(user_id, content_id, section_id, level_id, course_id)
    return {
        "quizzes": serialize(quizzes),
        "all_passed": all(quiz.has_passed for quiz in quizzes),
    }


# --- questions ---------------------------------------------------------------------

@router.post("/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    definition: QuestionCreate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.catalog.create_question(definition, instructor_id))


@router.patch("/questions/{question_id}")
async def update_question(
    question_id: int,
    changes: QuestionUpdate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.catalog.update_question(question_id, changes, instructor_id))


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"deleted": respond(await services.catalog.delete_question(question_id, instructor_id))}


@router.get("/questions/{question_id}/statistics")
async def get_question_statistics(
    question_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.statistics.get_question_statistics(question_id, instructor_id))


@router.get("/courses/{course_id}/questions")
async def list_course_questions(
    course_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.catalog.list_questions_by_course(course_id, instructor_id))


@router.get("/courses/{course_id}/questions/available")
async def list_available_questions(
    course_id: int,
    quiz_id: Optional[int] = Query(None, description="Leave out questions already in this quiz"),
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.catalog.list_available_questions(course_id, instructor_id, quiz_id))


@router.get("/courses/{course_id}/questions/search")
async def search_questions(
    course_id: int,
    q: str = Query(..., description="Text to look for in question text and explanation"),
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.catalog.search_questions(course_id, q, instructor_id))


# --- attempts ------------------------------------------------------------------------

@router.post("/quizzes/{quiz_id}/attempts", status_code=status.HTTP_201_CREATED)
async def start_attempt(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.attempts.start_attempt(quiz_id, user_id))


@router.get("/quizzes/{quiz_id}/attempts/current")
async def get_current_attempt(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Optional[Dict[str, Any]]:
    return serialize(await services.attempts.get_active_attempt(quiz_id, user_id))


@router.get("/quizzes/{quiz_id}/attempts/current/questions")
async def get_attempt_questions(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.attempts.get_questions_for_attempt(quiz_id, user_id))


@router.post("/quizzes/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: int,
    request: SubmitRequest,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.attempts.submit(quiz_id, user_id, _answers(request)))


@router.get("/quizzes/{quiz_id}/attempts")
async def list_user_attempts(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.attempts.list_user_attempts(quiz_id, user_id))


@router.get("/attempts/{attempt_id}")
async def get_attempt(
    attempt_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.attempts.get_attempt(attempt_id, user_id))


@router.get("/instructor/quizzes/{quiz_id}/attempts")
async def list_quiz_attempts(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.attempts.list_quiz_attempts(quiz_id, instructor_id))


@router.get("/instructor/attempts/{attempt_id}")
async def get_attempt_details(
    attempt_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.attempts.get_attempt_details(attempt_id, instructor_id))


@router.get("/quizzes/{quiz_id}/remaining-attempts")
async def get_remaining_attempts(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"remaining_attempts": respond(await services.gate.remaining_attempts(quiz_id, user_id))}


@router.get("/quizzes/{quiz_id}/availability")
async def get_availability(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {
        "can_attempt": await services.gate.can_attempt(quiz_id, user_id),
        "can_access": await services.gate.can_access(quiz_id, user_id),
        "is_available": await services.gate.is_available(quiz_id, user_id),
    }


@router.get("/quizzes/{quiz_id}/passed")
async def get_has_passed(
    quiz_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"has_passed": await services.gate.has_passed(quiz_id, user_id)}


# --- statistics -----------------------------------------------------------------------

@router.get("/quizzes/{quiz_id}/statistics")
async def get_quiz_statistics(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.statistics.get_quiz_statistics(quiz_id, instructor_id))


@router.get("/quizzes/{quiz_id}/question-analytics")
async def get_question_analytics(
    quiz_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.statistics.get_question_analytics(quiz_id, instructor_id))


@router.get("/courses/{course_id}/performance")
async def get_course_performance(
    course_id: int,
    exams_only: bool = Query(True, description="Only count exam quizzes"),
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.statistics.get_course_performance(course_id, instructor_id, exams_only))


@router.get("/quizzes/{quiz_id}/recent-attempts")
async def get_recent_attempts(
    quiz_id: int,
    count: int = Query(10, ge=1, le=100),
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.statistics.get_recent_attempts(quiz_id, instructor_id, count))


@router.get("/instructor/recent-attempts")
async def get_instructor_recent_attempts(
    count: int = Query(10, ge=1, le=100),
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.statistics.get_instructor_recent_attempts(instructor_id, count))


# --- exams -------------------------------------------------------------------------------

@router.post("/exams", status_code=status.HTTP_201_CREATED)
async def create_exam(
    definition: ExamCreate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"exam_id": respond(await services.exams.create_exam(definition, instructor_id))}


@router.post("/exams/with-questions", status_code=status.HTTP_201_CREATED)
async def create_exam_with_questions(
    bundle: ExamWithQuestionsCreate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.create_exam_with_questions(bundle, instructor_id))


@router.get("/exams/{exam_id}")
async def get_exam(
    exam_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.get_exam(exam_id, user_id))


@router.patch("/exams/{exam_id}")
async def update_exam(
    exam_id: int,
    changes: QuizUpdate,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.update_exam(exam_id, changes, instructor_id))


@router.delete("/exams/{exam_id}")
async def delete_exam(
    exam_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"deleted": respond(await services.exams.delete_exam(exam_id, instructor_id))}


@router.post("/exams/{exam_id}/activate")
async def activate_exam(
    exam_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"changed": respond(await services.exams.activate_exam(exam_id, instructor_id))}


@router.post("/exams/{exam_id}/deactivate")
async def deactivate_exam(
    exam_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return {"changed": respond(await services.exams.deactivate_exam(exam_id, instructor_id))}


@router.get("/courses/{course_id}/exams")
async def list_course_exams(
    course_id: int,
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.exams.list_exams_by_course(course_id))


@router.get("/levels/{level_id}/exams")
async def list_level_exams(
    level_id: int,
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return serialize(await services.exams.list_exams_by_level(level_id))


@router.post("/exams/{exam_id}/start", status_code=status.HTTP_201_CREATED)
async def start_exam(
    exam_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.start_exam(exam_id, user_id))


@router.get("/exams/{exam_id}/current-attempt")
async def get_current_exam_attempt(
    exam_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Optional[Dict[str, Any]]:
    return respond(await services.exams.get_current_attempt(exam_id, user_id))


@router.post("/exams/{exam_id}/submit")
async def submit_exam(
    exam_id: int,
    request: SubmitRequest,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.submit_exam(exam_id, user_id, _answers(request)))


@router.get("/exams/{exam_id}/remaining-time")
async def get_exam_remaining_time(
    exam_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    remaining = await services.exams.get_remaining_time(exam_id, user_id)
    return {"remaining_seconds": int(remaining.total_seconds()) if remaining is not None else None}


@router.get("/exams/{exam_id}/history")
async def get_exam_history(
    exam_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> List[Dict[str, Any]]:
    return respond(await services.exams.get_user_exam_history(exam_id, user_id))


@router.get("/exams/{exam_id}/best-result")
async def get_best_exam_result(
    exam_id: int,
    user_id: int = Depends(get_user_id),
    services: AssessmentServices = Depends(get_services),
) -> Optional[Dict[str, Any]]:
    return respond(await services.exams.get_best_result(exam_id, user_id))


@router.get("/exams/{exam_id}/statistics")
async def get_exam_statistics(
    exam_id: int,
    instructor_id: int = Depends(get_instructor_id),
    services: AssessmentServices = Depends(get_services),
) -> Dict[str, Any]:
    return respond(await services.exams.get_exam_statistics(exam_id, instructor_id))


__all__ = ["router"]
