from __future__ import annotations

"""
Assessment gap analysis.

Rules:
	- A question with no answer counts as skipped (and wrong).
	- Answers for question ids outside the question set are ignored.
	- Concept accuracy >= 75  -> low priority (strong)
	- 40 <= accuracy < 75     -> medium priority (needs review)
	- accuracy < 40           -> high priority (critical gap)
	- Learning path = critical gaps, then needs review, then strong concepts,
	  each bucket in the order its concept first appears in the question set.

Everything here is pure: same inputs, same GradingResult.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from cbse_tutor.common.utils import percent
from cbse_tutor.core.config import get_settings
from .schemas import Answer, ConceptPerformance, ConceptTier, GradingResult, Question

logger = logging.getLogger("assessments.grading")


@dataclass(frozen=True)
class TierThresholds:
    strong: int = 75
    review: int = 40

    @classmethod
    def from_settings(cls) -> "TierThresholds":
        s = get_settings()
        return cls(strong=s.strong_concept_threshold, review=s.review_concept_threshold)

    def tier_for(self, accuracy_percent: int) -> ConceptTier:
        if accuracy_percent >= self.strong:
            return ConceptTier.low
        if accuracy_percent >= self.review:
            return ConceptTier.medium
        return ConceptTier.high


@dataclass
class _ConceptTally:
    total: int = 0
    correct: int = 0
    answered: int = 0
    answered_time: float = 0.0

    def average_time(self) -> float:
        if self.answered == 0:
            return 0.0
        return self.answered_time / self.answered


def index_answers(answers: Union[Mapping[str, Answer], Iterable[Answer], None]) -> Dict[str, Answer]:
    """Key answers by question id. For a sequence the last answer per question wins."""
    if answers is None:
        return {}
    if isinstance(answers, Mapping):
        return {str(qid): ans for qid, ans in answers.items()}
    return {ans.question_id: ans for ans in answers}


def grade(
    questions: List[Question],
    answers: Union[Mapping[str, Answer], Iterable[Answer], None],
    thresholds: Optional[TierThresholds] = None,
) -> GradingResult:
    thresholds = thresholds or TierThresholds.from_settings()
    by_id = index_answers(answers)

    known_ids = {q.id for q in questions}
    unknown = [qid for qid in by_id if qid not in known_ids]
    if unknown:
        logger.debug("grade_ignoring_unknown_answers count=%d ids=%s", len(unknown), unknown[:5])

    total = correct = skipped = 0
    tallies: Dict[str, _ConceptTally] = {}  # insertion order = first occurrence

    for question in questions:
        answer = by_id.get(question.id)
        tally = tallies.setdefault(question.concept_tag, _ConceptTally())
        total += 1
        tally.total += 1
        if answer is None or answer.skipped:
            skipped += 1
            continue
        tally.answered += 1
        tally.answered_time += answer.time_spent_seconds
        if answer.is_correct_for(question):
            correct += 1
            tally.correct += 1

    buckets: Dict[ConceptTier, List[ConceptPerformance]] = {tier: [] for tier in ConceptTier}
    for tag, tally in tallies.items():
        accuracy = percent(tally.correct, tally.total)
        tier = thresholds.tier_for(accuracy)
        buckets[tier].append(
            ConceptPerformance(
                concept_tag=tag,
                total_questions=tally.total,
                correct_count=tally.correct,
                average_time_seconds=tally.average_time(),
                accuracy_percent=accuracy,
                tier=tier,
            )
        )

    critical = buckets[ConceptTier.high]
    review = buckets[ConceptTier.medium]
    strong = buckets[ConceptTier.low]
    return GradingResult(
        score_percent=percent(correct, total),
        total_questions=total,
        correct_answers=correct,
        skipped_answers=skipped,
        strong_concepts=strong,
        needs_review=review,
        critical_gaps=critical,
        learning_path=[c.concept_tag for c in (*critical, *review, *strong)],
    )


def encouraging_message(score_percent: int) -> str:
    if score_percent >= 80:
        return "Wow! You're doing great! Let's make you even stronger in the areas where you can improve."
    if score_percent >= 60:
        return "Good work! You have a solid foundation. Let's build on it together."
    if score_percent >= 40:
        return "Great effort! I can see where you need help. Don't worry, we'll bridge these gaps together!"
    return (
        "Thank you for being honest! This shows me exactly where to start. "
        "We'll take it step by step, and you'll be amazed at your progress!"
    )


__all__ = ["TierThresholds", "encouraging_message", "grade", "index_answers"]
