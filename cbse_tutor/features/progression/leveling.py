from __future__ import annotations

"""
XP, level and streak bookkeeping for a completed activity.

apply_completion() only computes the prospective counters. The caller reads
the counters, applies this, and commits the result in one serialized
read-modify-write (see ProgressionService); nothing here touches storage.

	- xp_earned = base_xp + 50 when the score is perfect
	- level(xp) = floor(xp / LEVEL_XP_STEP) + 1
	- streak: same day unchanged, next day +1, any bigger gap back to 1
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Union

from cbse_tutor.core.config import get_settings
from cbse_tutor.features.assessments.schemas import GradingResult
from .schemas import CompletionEvent, CompletionOutcome, ProgressionCounters

# (prospective counters, event) -> badge code(s) or None
BadgeCheck = Callable[[ProgressionCounters, CompletionEvent], Union[str, List[str], None]]


@dataclass(frozen=True)
class ProgressionRules:
    level_xp_step: int = 100
    perfect_score_bonus_xp: int = 50
    xp_per_correct_answer: int = 10

    @classmethod
    def from_settings(cls) -> "ProgressionRules":
        s = get_settings()
        return cls(
            level_xp_step=s.level_xp_step,
            perfect_score_bonus_xp=s.perfect_score_bonus_xp,
            xp_per_correct_answer=s.xp_per_correct_answer,
        )


def level_for_xp(xp: int, step: Optional[int] = None) -> int:
    step = step or ProgressionRules.from_settings().level_xp_step
    if step <= 0:
        raise ValueError("level_xp_step must be positive")
    return max(0, xp) // step + 1


def level_progress(xp: int, step: Optional[int] = None) -> tuple[int, int]:
    """Return (xp earned inside the current level, xp still needed for the next)."""
    step = step or ProgressionRules.from_settings().level_xp_step
    into = max(0, xp) % step
    return into, step - into


@dataclass(frozen=True)
class StreakUpdate:
    streak_day: int
    broken: bool
    new_day: bool
    last_activity_date: Optional[date]


def advance_streak(streak_count: int, last_activity: Optional[date], activity: date) -> StreakUpdate:
    if last_activity is None:
        return StreakUpdate(streak_day=1, broken=False, new_day=True, last_activity_date=activity)
    gap = (activity - last_activity).days
    if gap == 0:
        return StreakUpdate(streak_day=streak_count, broken=False, new_day=False, last_activity_date=last_activity)
    if gap < 0:
        # late-arriving event for a day already counted
        return StreakUpdate(streak_day=streak_count, broken=False, new_day=False, last_activity_date=last_activity)
    if gap == 1:
        return StreakUpdate(streak_day=streak_count + 1, broken=False, new_day=True, last_activity_date=activity)
    return StreakUpdate(streak_day=1, broken=streak_count > 0, new_day=True, last_activity_date=activity)


def apply_completion(
    counters: ProgressionCounters,
    event: CompletionEvent,
    badge_check: Optional[BadgeCheck] = None,
    rules: Optional[ProgressionRules] = None,
) -> CompletionOutcome:
    rules = rules or ProgressionRules.from_settings()

    bonus = rules.perfect_score_bonus_xp if event.is_perfect_score else 0
    xp_earned = event.base_xp + bonus
    new_total_xp = counters.total_xp + xp_earned

    old_level = level_for_xp(counters.total_xp, rules.level_xp_step)
    new_level = level_for_xp(new_total_xp, rules.level_xp_step)
    leveled_up = new_level > old_level

    streak = advance_streak(counters.streak_count, counters.last_activity_date, event.activity_date)

    new_counters = counters.model_copy(
        update={
            "total_xp": new_total_xp,
            "current_level": max(counters.current_level, new_level),
            "streak_count": streak.streak_day,
            "last_activity_date": streak.last_activity_date,
            "total_quizzes": counters.total_quizzes + 1,
            "perfect_quizzes": counters.perfect_quizzes + (1 if event.is_perfect_score else 0),
            "longest_streak": max(counters.longest_streak, streak.streak_day),
            "total_active_days": counters.total_active_days + (1 if streak.new_day else 0),
        }
    )

    found = badge_check(new_counters, event) if badge_check else None
    badges = [found] if isinstance(found, str) else list(found or [])

    return CompletionOutcome(
        new_counters=new_counters,
        xp_earned=xp_earned,
        leveled_up=leveled_up,
        new_level=new_level if leveled_up else None,
        streak_day=streak.streak_day,
        streak_broken=streak.broken,
        badge_earned=badges[0] if badges else None,
        badges_earned=badges,
    )


def xp_for_result(result: GradingResult, rules: Optional[ProgressionRules] = None) -> int:
    """Base XP for a graded assessment (before the perfect-score bonus)."""
    rules = rules or ProgressionRules.from_settings()
    return result.correct_answers * rules.xp_per_correct_answer


def completion_event_for(result: GradingResult, activity_date: date, rules: Optional[ProgressionRules] = None) -> CompletionEvent:
    return CompletionEvent(
        base_xp=xp_for_result(result, rules),
        is_perfect_score=result.is_perfect,
        activity_date=activity_date,
    )


__all__ = [
    "BadgeCheck",
    "ProgressionRules",
    "StreakUpdate",
    "advance_streak",
    "apply_completion",
    "completion_event_for",
    "level_for_xp",
    "level_progress",
    "xp_for_result",
]
