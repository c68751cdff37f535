from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgressionCounters(BaseModel):
    """Persisted gamification counters for one user (``user_stats`` + ``learning_streaks``)."""

    model_config = ConfigDict(populate_by_name=True)

    total_xp: int = Field(default=0, ge=0, alias="totalXP")
    current_level: int = Field(default=1, ge=1, alias="currentLevel")
    streak_count: int = Field(default=0, ge=0, alias="streakCount")
    last_activity_date: Optional[date] = Field(default=None, alias="lastActivityDate")
    total_quizzes: int = Field(default=0, ge=0, alias="totalQuizzes")
    perfect_quizzes: int = Field(default=0, ge=0, alias="perfectQuizzes")
    longest_streak: int = Field(default=0, ge=0, alias="longestStreak")
    total_active_days: int = Field(default=0, ge=0, alias="totalActiveDays")
    # optimistic concurrency token, bumped on every successful write
    revision: int = Field(default=0, ge=0)


class CompletionEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_xp: int = Field(ge=0, alias="baseXP")
    is_perfect_score: bool = Field(default=False, alias="isPerfectScore")
    activity_date: date = Field(alias="activityDate")


class CompletionOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_counters: ProgressionCounters = Field(alias="newCounters")
    xp_earned: int = Field(alias="xpEarned")
    leveled_up: bool = Field(alias="leveledUp")
    new_level: Optional[int] = Field(default=None, alias="newLevel")
    streak_day: int = Field(alias="streakDay")
    streak_broken: bool = Field(default=False, alias="streakBroken")
    badge_earned: Optional[str] = Field(default=None, alias="badgeEarned")
    badges_earned: List[str] = Field(default_factory=list, alias="badgesEarned")


class CompletionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_xp: int = Field(ge=0, alias="baseXP")
    is_perfect_score: bool = Field(default=False, alias="isPerfectScore")
    activity_date: Optional[date] = Field(default=None, alias="activityDate")


class ProgressionSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    counters: ProgressionCounters
    level: int
    xp_into_level: int = Field(alias="xpIntoLevel")
    xp_to_next_level: int = Field(alias="xpToNextLevel")


class StreakInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_streak: int = Field(default=0, alias="currentStreak")
    longest_streak: int = Field(default=0, alias="longestStreak")
    total_active_days: int = Field(default=0, alias="totalActiveDays")
    last_activity_date: Optional[date] = Field(default=None, alias="lastActivityDate")
    active_today: bool = Field(default=False, alias="activeToday")


class BadgeDefinition(BaseModel):
    """A row of the ``badges`` catalog."""

    model_config = ConfigDict(populate_by_name=True)

    badge_code: str = Field(alias="badgeCode")
    badge_name: Optional[str] = Field(default=None, alias="badgeName")
    badge_description: Optional[str] = Field(default=None, alias="badgeDescription")
    badge_emoji: Optional[str] = Field(default=None, alias="badgeEmoji")
    badge_category: Optional[str] = Field(default=None, alias="badgeCategory")
    difficulty: Optional[str] = None
    display_order: Optional[int] = Field(default=None, alias="displayOrder")


class EarnedBadge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    badge_code: str = Field(alias="badgeCode")
    earned_at: Optional[datetime] = Field(default=None, alias="earnedAt")
    subject: Optional[str] = None
    badge_name: Optional[str] = Field(default=None, alias="badgeName")
    badge_description: Optional[str] = Field(default=None, alias="badgeDescription")
    badge_emoji: Optional[str] = Field(default=None, alias="badgeEmoji")
    badge_category: Optional[str] = Field(default=None, alias="badgeCategory")
    difficulty: Optional[str] = None


class XPTransaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    xp_amount: int = Field(alias="xpAmount")
    reason: Optional[str] = None
    source: Optional[str] = None
    subject: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
