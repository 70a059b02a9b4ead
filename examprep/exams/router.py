"""
Exam API Router

Thin HTTP layer over ``ExamService``. Every endpoint resolves the caller's
identity, delegates to the service and wraps the result in the standard
response envelope; typed failures are mapped to HTTP statuses by the handlers
installed in ``examprep.api``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from examprep.api import APIResponse
from examprep.common.auth.dependencies import get_identity, require_user
from examprep.common.auth.identity import Identity, UserIdentity
from examprep.common.logger import app_logger
from examprep.exams.schemas import CreateExamRequest, FailedQuestionsExamRequest, SubmitAnswerRequest
from examprep.exams.service import ExamConfig, ExamService

logger = app_logger.getChild("exams.router")

router = APIRouter()


def get_exam_service(request: Request) -> ExamService:
    service = getattr(request.app.state, "exam_service", None)
    if service is None:
        raise RuntimeError("Exam service not initialized. Database connection may not be ready.")
    return service


def rate_limited(scope: str, limit_setting: str):
    """Dependency counting the request against the caller's ``scope`` limit."""
    async def dependency(request: Request, identity: Identity = Depends(get_identity)) -> Identity:
        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is not None:
            settings = request.app.state.settings
            check = limiter.rate_limit_dependency(
                getattr(settings, limit_setting),
                settings.RATE_LIMIT_PERIOD,
                key_func=lambda _: f"{scope}:{identity.key}",
            )
            await check(request)
        return identity

    return dependency


@router.post("", status_code=201)
async def create_exam(
    payload: CreateExamRequest,
    identity: Identity = Depends(rate_limited("create_exam", "CREATE_RATE_LIMIT")),
    service: ExamService = Depends(get_exam_service),
):
    """Create an exam from the question bank."""
    config = ExamConfig(
        provider=payload.provider,
        certification=payload.certification,
        category=payload.category,
        difficulty=payload.difficulty,
        question_count=payload.question_count,
        time_limit_minutes=payload.time_limit_minutes,
        passing_score=payload.passing_score,
        mode=payload.mode,
        title=payload.title,
        description=payload.description,
        settings=payload.settings.model_dump(exclude_none=True),
    )
    exam = await service.create_exam(identity, config)
    return APIResponse.success(exam.to_dict(service.now()), "Exam created successfully")


@router.post("/failed-questions", status_code=201)
async def create_failed_questions_exam(
    payload: FailedQuestionsExamRequest,
    user: UserIdentity = Depends(require_user),
    service: ExamService = Depends(get_exam_service),
):
    """Create a practice exam from questions the user previously got wrong."""
    exam = await service.create_failed_questions_exam(
        user,
        question_count=payload.question_count,
        provider=payload.provider,
        certification=payload.certification,
    )
    return APIResponse.success(exam.to_dict(service.now()), "Failed questions exam created successfully")


@router.get("")
async def list_exams(
    status: Optional[str] = Query(None),
    provider: Optional[str] = Query(None),
    limit: int = Query(20),
    offset: int = Query(0),
    identity: Identity = Depends(get_identity),
    service: ExamService = Depends(get_exam_service),
):
    exams, total = await service.list_exams(identity, status=status, provider=provider, limit=limit, offset=offset)
    now = service.now()
    return APIResponse.success({
        "exams": [exam.summary(now) for exam in exams],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(exams) < total,
        },
    })


@router.get("/{exam_id}")
async def get_exam(exam_id: str, identity: Identity = Depends(get_identity),
                   service: ExamService = Depends(get_exam_service)):
    exam = await service.get_exam(exam_id, identity)
    return APIResponse.success(exam.to_dict(service.now()))


@router.get("/{exam_id}/review")
async def get_exam_review(exam_id: str, identity: Identity = Depends(get_identity),
                          service: ExamService = Depends(get_exam_service)):
    exam, questions = await service.get_exam_for_review(exam_id, identity)
    return APIResponse.success({
        "exam": exam.summary(service.now()),
        "questions": questions,
    })


@router.post("/{exam_id}/start")
async def start_exam(exam_id: str, identity: Identity = Depends(get_identity),
                     service: ExamService = Depends(get_exam_service)):
    exam = await service.start_exam(exam_id, identity)
    return APIResponse.success(exam.to_dict(service.now()), "Exam started successfully")


@router.post("/{exam_id}/pause")
async def pause_exam(exam_id: str, identity: Identity = Depends(get_identity),
                     service: ExamService = Depends(get_exam_service)):
    exam = await service.pause_exam(exam_id, identity)
    return APIResponse.success(exam.summary(service.now()), "Exam paused successfully")


@router.post("/{exam_id}/resume")
async def resume_exam(exam_id: str, identity: Identity = Depends(get_identity),
                      service: ExamService = Depends(get_exam_service)):
    exam = await service.resume_exam(exam_id, identity)
    return APIResponse.success(exam.summary(service.now()), "Exam resumed successfully")


@router.post("/{exam_id}/cancel")
async def cancel_exam(exam_id: str, identity: Identity = Depends(get_identity),
                      service: ExamService = Depends(get_exam_service)):
    exam = await service.cancel_exam(exam_id, identity)
    return APIResponse.success(exam.summary(service.now()), "Exam cancelled")


@router.post("/{exam_id}/complete")
async def complete_exam(exam_id: str, identity: Identity = Depends(get_identity),
                        service: ExamService = Depends(get_exam_service)):
    exam, results = await service.complete_exam(exam_id, identity)
    return APIResponse.success({
        "exam": exam.summary(service.now()),
        "results": results.to_dict(include_questions=False),
    }, "Exam completed successfully")


@router.post("/{exam_id}/answer")
async def submit_answer(
    exam_id: str,
    payload: SubmitAnswerRequest,
    identity: Identity = Depends(rate_limited("submit_answer", "ANSWER_RATE_LIMIT")),
    service: ExamService = Depends(get_exam_service),
):
    """Record an answer; correctness is only revealed when explanations are shown."""
    exam, outcome = await service.submit_answer(exam_id, identity, payload.question_id, payload.answer)
    reveal = exam.settings.show_explanations
    data = outcome.to_dict(include_correctness=reveal)
    if reveal:
        question = exam.get_question(payload.question_id)
        data["correct_answers"] = sorted(question.correct_answers)
        data["explanation"] = question.explanation
    data["progress"] = exam.progress()
    return APIResponse.success(data, "Answer submitted successfully")


@router.post("/{exam_id}/validate-answer")
async def validate_answer(exam_id: str, payload: SubmitAnswerRequest,
                          identity: Identity = Depends(get_identity),
                          service: ExamService = Depends(get_exam_service)):
    result = await service.validate_answer(exam_id, identity, payload.question_id, payload.answer)
    return APIResponse.success(result, "Answer is valid" if result["valid"] else "Answer is invalid")


@router.get("/{exam_id}/progress")
async def get_exam_progress(exam_id: str, identity: Identity = Depends(get_identity),
                            service: ExamService = Depends(get_exam_service)):
    return APIResponse.success(await service.get_exam_progress(exam_id, identity))


@router.get("/{exam_id}/results")
async def get_exam_results(exam_id: str, identity: Identity = Depends(get_identity),
                           service: ExamService = Depends(get_exam_service)):
    results = await service.get_exam_results(exam_id, identity)
    return APIResponse.success(results.to_dict())


@router.get("/{exam_id}/analysis")
async def get_exam_analysis(exam_id: str, identity: Identity = Depends(get_identity),
                            service: ExamService = Depends(get_exam_service)):
    analysis = await service.get_exam_analysis(exam_id, identity)
    return APIResponse.success(analysis.to_dict())


@router.get("/{exam_id}/statistics")
async def get_exam_statistics(exam_id: str, identity: Identity = Depends(get_identity),
                              service: ExamService = Depends(get_exam_service)):
    return APIResponse.success(await service.get_exam_statistics(exam_id, identity))


@router.delete("/{exam_id}")
async def delete_exam(exam_id: str, identity: Identity = Depends(get_identity),
                      service: ExamService = Depends(get_exam_service)):
    await service.delete_exam(exam_id, identity)
    return APIResponse.success({"id": exam_id}, "Exam deleted successfully")
