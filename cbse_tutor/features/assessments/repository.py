from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from cbse_tutor.common.utils import current_timestamp
from cbse_tutor.db.supabase import get_supabase
from .schemas import Answer, GradingResult, Question, SubjectStatus

logger = logging.getLogger("assessments.repository")


def _row_to_question(row: Dict[str, Any]) -> Optional[Question]:
    """Normalise the column aliases the question bank has used over time."""
    correct = row.get("correct_option_index")
    if correct is None:
        correct = row.get("correct_answer")
    if correct is None:
        correct = row.get("correctAnswer")
    try:
        return Question(
            id=str(row["id"]),
            concept_tag=row.get("concept_tag") or row.get("concept"),
            correct_option_index=int(correct),
        )
    except (KeyError, TypeError, ValueError, ValidationError):
        logger.warning("assessment_question_row_invalid id=%s", row.get("id"))
        return None


class AssessmentRepository:
    """Supabase access for question sets, ``subject_progress`` and ``assessments``."""

    async def _execute(self, query, op: str) -> Any:
        """Execute a Supabase query and log failures without exploding."""

        try:
            return await query
        except Exception as exc:  # pragma: no cover - Supabase client failure
            logger.warning("supabase_%s_failed error=%s", op, exc)
            return None

    async def _client(self):
        return await get_supabase()

    async def read_question_set(self, subject_id: str) -> List[Question]:
        client = await self._client()
        query = (
            client.table("assessment_questions")
            .select("*")
            .eq("subject_id", subject_id)
            .order("order_index")
        )
        resp = await self._execute(query.execute(), op="assessment_questions.by_subject")
        rows = getattr(resp, "data", None) or []
        questions = [_row_to_question(row) for row in rows]
        return [q for q in questions if q is not None]

    async def get_subject(
        self,
        user_id: str,
        subject_id: str,
        subject_name: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find the ``subject_progress`` row by id, falling back to (user, subject name)."""
        client = await self._client()
        query = client.table("subject_progress").select("*").eq("id", subject_id).limit(1)
        resp = await self._execute(query.execute(), op="subject_progress.by_id")
        data = getattr(resp, "data", None) or []
        if data:
            return data[0]
        if not subject_name:
            return None
        logger.info("subject_progress_lookup_by_name user_id=%s subject=%s", user_id, subject_name)
        query = (
            client.table("subject_progress")
            .select("*")
            .eq("user_id", user_id)
            .eq("subject", subject_name)
            .limit(1)
        )
        resp = await self._execute(query.execute(), op="subject_progress.by_name")
        data = getattr(resp, "data", None) or []
        return data[0] if data else None

    async def persist_grading_outcome(
        self,
        user_id: str,
        subject_row: Dict[str, Any],
        result: GradingResult,
        status: SubjectStatus,
        questions: List[Question],
        answers: Mapping[str, Answer],
    ) -> bool:
        client = await self._client()
        now = current_timestamp().isoformat()
        subject_row_id = subject_row["id"]

        update = (
            client.table("subject_progress")
            .update(
                {
                    "status": status.value,
                    "mastery_percentage": result.score_percent,
                    "last_updated": now,
                }
            )
            .eq("id", subject_row_id)
        )
        resp = await self._execute(update.execute(), op="subject_progress.update")
        if resp is None:
            return False
        if not getattr(resp, "data", None):
            logger.warning("subject_progress_update_no_rows id=%s", subject_row_id)

        record = {
            "user_id": user_id,
            "subject_id": subject_row_id,
            "subject_name": subject_row.get("subject"),
            "score": result.score_percent,
            "total_questions": result.total_questions,
            "correct_answers": result.correct_answers,
            "skipped_questions": result.skipped_answers,
            "assessment_data": {
                "questions": [q.model_dump(mode="json", by_alias=True) for q in questions],
                "answers": {qid: a.model_dump(mode="json", by_alias=True) for qid, a in answers.items()},
                "gap_analysis": result.model_dump(
                    mode="json",
                    by_alias=True,
                    include={"strong_concepts", "needs_review", "critical_gaps", "learning_path"},
                ),
            },
            "completed_at": now,
        }
        resp = await self._execute(client.table("assessments").insert(record).execute(), op="assessments.insert")
        if resp is None:
            logger.warning("assessment_record_not_saved user_id=%s subject_id=%s", user_id, subject_row_id)
            return False
        return True


assessment_repository = AssessmentRepository()
