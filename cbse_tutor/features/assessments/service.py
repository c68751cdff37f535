from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Mapping, Optional, Union, Iterable

from cbse_tutor.features.progression.badges import badge_rules
from cbse_tutor.features.progression.leveling import completion_event_for
from cbse_tutor.features.progression.service import progression_service
from .grading import encouraging_message, grade, index_answers
from .lifecycle import next_status
from .repository import assessment_repository
from .schemas import (
    Answer,
    AssessmentSubmissionResponse,
    AssessmentSubmitRequest,
    GradeRequest,
    GradeResponse,
    Question,
)

logger = logging.getLogger("assessments.service")


class QuestionSetNotFoundError(LookupError):
    pass


class SubjectNotFoundError(LookupError):
    pass


class AssessmentService:
    def __init__(self):
        self.repo = assessment_repository
        self.progression = progression_service
        self.log = logger

    def grade(self, req: GradeRequest) -> GradeResponse:
        result = grade(req.questions, req.answers)
        return GradeResponse(result=result, message=encouraging_message(result.score_percent))

    async def get_question_set(self, subject_id: str) -> List[Question]:
        questions = await self.repo.read_question_set(subject_id)
        if not questions:
            raise QuestionSetNotFoundError(f"no questions for subject {subject_id}")
        return questions

    async def submit(
        self,
        user_id: str,
        subject_id: str,
        answers: Union[Mapping[str, Answer], Iterable[Answer]],
        questions: Optional[List[Question]] = None,
        subject_name: Optional[str] = None,
        activity_date: Optional[date] = None,
    ) -> AssessmentSubmissionResponse:
        """Grade a finished assessment, move the subject on and award progression.

        Every submission is its own XP-earning event; retaking an assessment
        earns XP again.
        """
        if questions is None:
            questions = await self.get_question_set(subject_id)
        by_id: Dict[str, Answer] = index_answers(answers)

        result = grade(questions, by_id)
        self.log.info(
            "assessment_graded user_id=%s subject_id=%s score=%d correct=%d/%d skipped=%d gaps=%d",
            user_id,
            subject_id,
            result.score_percent,
            result.correct_answers,
            result.total_questions,
            result.skipped_answers,
            len(result.critical_gaps),
        )

        subject_row = await self.repo.get_subject(user_id, subject_id, subject_name)
        if subject_row is None:
            raise SubjectNotFoundError(f"subject {subject_id} not found")
        status = next_status(subject_row.get("status"))

        # progression first: a rejected completion must leave no assessment record behind
        owned = await self.progression.repo.list_badge_codes(user_id)
        event = completion_event_for(result, activity_date or self.progression.today())
        outcome = await self.progression.complete(
            user_id,
            event,
            badge_check=badge_rules.quiz_check(owned, mastery_percent=result.score_percent),
            reason="assessment_completed",
            source="assessment",
            subject=subject_row.get("subject") or subject_name,
        )

        saved = await self.repo.persist_grading_outcome(user_id, subject_row, result, status, questions, by_id)
        if not saved:
            self.log.warning("assessment_outcome_not_persisted user_id=%s subject_id=%s", user_id, subject_id)

        return AssessmentSubmissionResponse(
            subject_id=str(subject_row["id"]),
            result=result,
            message=encouraging_message(result.score_percent),
            status=status,
            saved=saved,
            progression=outcome,
        )

    async def submit_request(self, user_id: str, subject_id: str, req: AssessmentSubmitRequest) -> AssessmentSubmissionResponse:
        return await self.submit(
            user_id,
            subject_id,
            req.answers,
            questions=req.questions,
            subject_name=req.subject_name,
            activity_date=req.activity_date,
        )


assessment_service = AssessmentService()
