from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Dict, List, Optional, Tuple

from cbse_tutor.common.utils import local_today
from cbse_tutor.core.config import get_settings
from .leveling import BadgeCheck, ProgressionRules, apply_completion, level_for_xp, level_progress
from .repository import CounterWriteError, progression_repository
from .schemas import (
    BadgeDefinition,
    CompletionEvent,
    CompletionOutcome,
    CompletionRequest,
    EarnedBadge,
    ProgressionSummary,
    StreakInfo,
    XPTransaction,
)

logger = logging.getLogger("progression.service")


class ProgressionConflictError(RuntimeError):
    """Counters kept changing underneath us; nothing was committed."""


class ProgressionWriteError(RuntimeError):
    """The counters write went out but was never confirmed.

    It may have landed, so it is not recomputed or retried here.
    """


class ProgressionService:
    """Serialized read-modify-write of a user's counters.

    Completions for one user are queued on a per-user lock inside this
    process; the revision check in the repository covers writers in other
    processes. A conflicting write is retried from a fresh read so XP is
    committed exactly once. A write that failed in flight is not retried.
    """

    def __init__(self):
        self.repo = progression_repository
        self.log = logger
        # user_id -> (lock, holders + waiters)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def today(self) -> date:
        return local_today(get_settings().activity_tz)

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(user_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[user_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[user_id]
            if users <= 1:
                del self._locks[user_id]
            else:
                self._locks[user_id] = (lock, users - 1)

    async def get_summary(self, user_id: str) -> ProgressionSummary:
        counters = await self.repo.read_counters(user_id)
        step = ProgressionRules.from_settings().level_xp_step
        into, remaining = level_progress(counters.total_xp, step)
        return ProgressionSummary(
            counters=counters,
            level=max(counters.current_level, level_for_xp(counters.total_xp, step)),
            xp_into_level=into,
            xp_to_next_level=remaining,
        )

    async def get_streak(self, user_id: str) -> StreakInfo:
        counters = await self.repo.read_counters(user_id)
        return StreakInfo(
            current_streak=counters.streak_count,
            longest_streak=counters.longest_streak,
            total_active_days=counters.total_active_days,
            last_activity_date=counters.last_activity_date,
            active_today=counters.last_activity_date == self.today(),
        )

    async def list_badges(self, user_id: str) -> List[EarnedBadge]:
        badges = []
        for row in await self.repo.list_user_badges(user_id):
            if not row.get("badge_code"):
                continue
            meta = row.get("badges") or {}
            badges.append(
                EarnedBadge(
                    badge_code=row["badge_code"],
                    earned_at=row.get("earned_at"),
                    subject=row.get("subject"),
                    badge_name=meta.get("badge_name"),
                    badge_description=meta.get("badge_description"),
                    badge_emoji=meta.get("badge_emoji"),
                    badge_category=meta.get("badge_category"),
                    difficulty=meta.get("difficulty"),
                )
            )
        return badges

    async def list_badge_catalog(self) -> List[BadgeDefinition]:
        rows = await self.repo.list_badge_catalog()
        return [BadgeDefinition.model_validate(row) for row in rows if row.get("badge_code")]

    async def recent_xp(self, user_id: str, limit: int = 10) -> List[XPTransaction]:
        rows = await self.repo.recent_xp_transactions(user_id, limit)
        return [XPTransaction.model_validate(row) for row in rows]

    async def complete(
        self,
        user_id: str,
        event: CompletionEvent,
        badge_check: Optional[BadgeCheck] = None,
        reason: str = "activity_completed",
        source: str = "quiz",
        subject: Optional[str] = None,
    ) -> CompletionOutcome:
        attempts = get_settings().progression_write_retries
        async with self._user_lock(user_id):
            for attempt in range(1, attempts + 1):
                counters = await self.repo.read_counters(user_id)
                outcome = apply_completion(counters, event, badge_check=badge_check)
                try:
                    committed = await self.repo.write_counters(user_id, outcome.new_counters, counters.revision)
                except CounterWriteError as exc:
                    raise ProgressionWriteError(f"progression write for user {user_id} was not confirmed") from exc
                if committed:
                    break
                self.log.warning(
                    "progression_write_retry user_id=%s attempt=%d/%d revision=%s",
                    user_id,
                    attempt,
                    attempts,
                    counters.revision,
                )
            else:
                raise ProgressionConflictError(f"could not commit progression for user {user_id}")

        outcome.new_counters.revision = counters.revision + 1
        self.log.info(
            "progression_committed user_id=%s xp_earned=%d total_xp=%d level=%d streak=%d",
            user_id,
            outcome.xp_earned,
            outcome.new_counters.total_xp,
            outcome.new_counters.current_level,
            outcome.streak_day,
        )
        if outcome.xp_earned:
            await self.repo.log_xp_transaction(user_id, outcome.xp_earned, reason, source, subject)
        if outcome.leveled_up:
            self.log.info("level_up user_id=%s new_level=%s", user_id, outcome.new_level)
        if outcome.badges_earned:
            awarded = []
            for code in outcome.badges_earned:
                if await self.repo.award_badge(user_id, code, subject):
                    awarded.append(code)
                else:
                    self.log.info("badge_not_awarded user_id=%s badge=%s", user_id, code)
            outcome.badges_earned = awarded
            outcome.badge_earned = awarded[0] if awarded else None
        return outcome

    async def complete_request(self, user_id: str, req: CompletionRequest) -> CompletionOutcome:
        event = CompletionEvent(
            base_xp=req.base_xp,
            is_perfect_score=req.is_perfect_score,
            activity_date=req.activity_date or self.today(),
        )
        return await self.complete(user_id, event, source="activity")


progression_service = ProgressionService()
