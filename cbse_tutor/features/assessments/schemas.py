from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cbse_tutor.features.progression.schemas import CompletionOutcome

DEFAULT_CONCEPT_TAG = "General Concepts"


class ConceptTier(str, Enum):
    """Priority tier; ``high`` needs the most attention."""

    low = "low"
    medium = "medium"
    high = "high"


class SubjectStatus(str, Enum):
    getting_to_know_you = "getting_to_know_you"
    lets_bridge_gaps = "lets_bridge_gaps"


class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    concept_tag: str = Field(default=DEFAULT_CONCEPT_TAG, alias="conceptTag")
    correct_option_index: int = Field(alias="correctOptionIndex")

    @field_validator("concept_tag", mode="before")
    @classmethod
    def _default_concept(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_CONCEPT_TAG
        return str(value).strip()


class Answer(BaseModel):
    """One recorded response; ``selected_option_index is None`` exactly when skipped."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question_id: str = Field(alias="questionId")
    selected_option_index: Optional[int] = Field(default=None, alias="selectedOptionIndex")
    time_spent_seconds: float = Field(default=0.0, ge=0, alias="timeSpentSeconds")
    skipped: bool = False

    @model_validator(mode="before")
    @classmethod
    def _align_skipped(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        selected_key = "selectedOptionIndex" if "selectedOptionIndex" in data else "selected_option_index"
        if data.get("skipped"):
            data[selected_key] = None
        elif data.get(selected_key) is None:
            data["skipped"] = True
        for key in ("timeSpentSeconds", "time_spent_seconds"):
            if key in data and data[key] is None:
                data[key] = 0.0
        return data

    def is_correct_for(self, question: Question) -> bool:
        return not self.skipped and self.selected_option_index == question.correct_option_index


class ConceptPerformance(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    concept_tag: str = Field(alias="conceptTag")
    total_questions: int = Field(alias="totalQuestions")
    correct_count: int = Field(alias="correctCount")
    average_time_seconds: float = Field(alias="averageTimeSeconds")
    accuracy_percent: int = Field(alias="accuracyPercent")
    tier: ConceptTier


class GradingResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score_percent: int = Field(default=0, alias="scorePercent")
    total_questions: int = Field(default=0, alias="totalQuestions")
    correct_answers: int = Field(default=0, alias="correctAnswers")
    skipped_answers: int = Field(default=0, alias="skippedAnswers")
    strong_concepts: List[ConceptPerformance] = Field(default_factory=list, alias="strongConcepts")
    needs_review: List[ConceptPerformance] = Field(default_factory=list, alias="needsReview")
    critical_gaps: List[ConceptPerformance] = Field(default_factory=list, alias="criticalGaps")
    learning_path: List[str] = Field(default_factory=list, alias="learningPath")

    @property
    def is_perfect(self) -> bool:
        return self.total_questions > 0 and self.correct_answers == self.total_questions


def concept_tags(bucket: List[ConceptPerformance]) -> List[str]:
    return [c.concept_tag for c in bucket]


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

AnswersPayload = Union[Dict[str, Answer], List[Answer]]


class GradeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    questions: List[Question] = Field(default_factory=list)
    answers: AnswersPayload = Field(default_factory=dict)


class GradeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    result: GradingResult
    message: str


class AssessmentSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_name: Optional[str] = Field(default=None, alias="subjectName")
    questions: Optional[List[Question]] = None
    answers: AnswersPayload = Field(default_factory=dict)
    activity_date: Optional[date] = Field(default=None, alias="activityDate")


class QuestionSetResponse(BaseModel):
    subject_id: str = Field(alias="subjectId")
    questions: List[Question]

    model_config = ConfigDict(populate_by_name=True)


class AssessmentSubmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(alias="subjectId")
    result: GradingResult
    message: str
    status: SubjectStatus
    saved: bool
    progression: CompletionOutcome
