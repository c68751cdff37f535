#Assessments feature - diagnostic quiz grading, gap analysis, learning path
from fastapi import APIRouter, HTTPException, Depends
from cbse_tutor.common.deps import get_current_user, CurrentUser
from cbse_tutor.features.progression.service import ProgressionConflictError, ProgressionWriteError
from .schemas import (
    GradeRequest, GradeResponse,
    AssessmentSubmitRequest, AssessmentSubmissionResponse,
    QuestionSetResponse,
)
from .service import assessment_service, QuestionSetNotFoundError, SubjectNotFoundError

router = APIRouter(prefix="/assessments", tags=["assessments"])

def _err(status: int, code: str, message: str):
    return HTTPException(status_code=status, detail={"error_code": code, "message": message})

#Grade only, nothing is saved (results preview)
@router.post("/grade", response_model=GradeResponse)
async def grade_assessment(req: GradeRequest, current_user: CurrentUser = Depends(get_current_user)):
    return assessment_service.grade(req)

#Question set for a subject's getting-to-know-you quiz
@router.get("/subjects/{subject_id}/questions", response_model=QuestionSetResponse)
async def get_questions(subject_id: str, current_user: CurrentUser = Depends(get_current_user)):
    try:
        questions = await assessment_service.get_question_set(subject_id)
    except QuestionSetNotFoundError as e:
        raise _err(404, "E_NOT_FOUND", str(e))
    return QuestionSetResponse(subject_id=subject_id, questions=questions)

#Central endpoint: grade, update subject status/mastery, award XP + streak
@router.post("/subjects/{subject_id}/submit", response_model=AssessmentSubmissionResponse)
async def submit_assessment(subject_id: str, req: AssessmentSubmitRequest, current_user: CurrentUser = Depends(get_current_user)):
    try:
        return await assessment_service.submit_request(current_user.id, subject_id, req)
    except (QuestionSetNotFoundError, SubjectNotFoundError) as e:
        raise _err(404, "E_NOT_FOUND", str(e))
    except ProgressionConflictError as e:
        raise _err(409, "E_CONFLICT", str(e))
    except ProgressionWriteError as e:
        raise _err(503, "E_UNKNOWN", str(e))
