from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from cbse_tutor.common.utils import coerce_date, current_timestamp, safe_int
from cbse_tutor.db.supabase import get_supabase
from .schemas import ProgressionCounters

logger = logging.getLogger("progression.repository")


class CounterWriteError(RuntimeError):
    """The counters write reached Supabase but no answer came back.

    The row may or may not have been committed, so the caller must not
    recompute and write again.
    """


def _first(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None


class ProgressionRepository:
    """Supabase access for ``user_stats`` and ``learning_streaks``.

    ``user_stats`` is the source of truth and carries a ``revision`` column;
    writes only land when the stored revision still matches the one the
    counters were read at. ``learning_streaks`` is mirrored after a successful
    write for the parent portal and streak widgets.
    """

    async def _execute(self, query, op: str) -> Any:
        """Execute a Supabase query and log failures without exploding."""

        try:
            return await query
        except Exception as exc:  # pragma: no cover - Supabase client failure
            logger.warning("supabase_%s_failed error=%s", op, exc)
            return None

    async def _client(self):
        return await get_supabase()

    async def _fetch_stats_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        client = await self._client()
        query = client.table("user_stats").select("*").eq("user_id", user_id).limit(1)
        resp = await self._execute(query.execute(), op="user_stats.select")
        return _first(getattr(resp, "data", None))

    async def _fetch_streak_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        client = await self._client()
        query = client.table("learning_streaks").select("*").eq("user_id", user_id).limit(1)
        resp = await self._execute(query.execute(), op="learning_streaks.select")
        return _first(getattr(resp, "data", None))

    async def read_counters(self, user_id: str) -> ProgressionCounters:
        stats = await self._fetch_stats_row(user_id) or {}
        streak = await self._fetch_streak_row(user_id) or {}

        def pick(key: str, *fallbacks: Dict[str, Any]) -> Any:
            for row in fallbacks:
                if row.get(key) is not None:
                    return row[key]
            return None

        return ProgressionCounters(
            total_xp=max(0, safe_int(stats.get("total_xp"))),
            current_level=max(1, safe_int(stats.get("current_level"), default=1)),
            streak_count=max(0, safe_int(pick("current_streak", stats, streak))),
            last_activity_date=coerce_date(pick("last_activity_date", stats, streak)),
            total_quizzes=max(0, safe_int(stats.get("total_quizzes"))),
            perfect_quizzes=max(0, safe_int(stats.get("perfect_quizzes"))),
            longest_streak=max(0, safe_int(pick("longest_streak", stats, streak))),
            total_active_days=max(0, safe_int(pick("total_active_days", stats, streak))),
            revision=max(0, safe_int(stats.get("revision"))),
        )

    @staticmethod
    def _stats_payload(counters: ProgressionCounters, revision: int) -> Dict[str, Any]:
        return {
            "total_xp": counters.total_xp,
            "current_level": counters.current_level,
            "current_streak": counters.streak_count,
            "longest_streak": counters.longest_streak,
            "total_active_days": counters.total_active_days,
            "last_activity_date": counters.last_activity_date.isoformat() if counters.last_activity_date else None,
            "total_quizzes": counters.total_quizzes,
            "perfect_quizzes": counters.perfect_quizzes,
            "revision": revision,
            "updated_at": current_timestamp().isoformat(),
        }

    async def write_counters(self, user_id: str, counters: ProgressionCounters, expected_revision: int) -> bool:
        """Commit counters read at ``expected_revision``.

        Returns False when nothing was written (the stored revision moved on,
        or the pre-write lookup failed), so reading again and retrying is safe.
        Raises CounterWriteError when the write itself failed in flight.
        """
        client = await self._client()
        payload = self._stats_payload(counters, expected_revision + 1)

        try:
            lookup = await client.table("user_stats").select("revision").eq("user_id", user_id).limit(1).execute()
        except Exception as exc:
            logger.warning("supabase_user_stats.lookup_failed user_id=%s error=%s", user_id, exc)
            return False
        existing = _first(getattr(lookup, "data", None))

        if existing is None:
            if expected_revision != 0:
                logger.info("user_stats_missing_on_write user_id=%s expected_revision=%s", user_id, expected_revision)
                return False
            query = client.table("user_stats").insert({"user_id": user_id, **payload})
            op = "user_stats.insert"
        else:
            query = (
                client.table("user_stats")
                .update(payload)
                .eq("user_id", user_id)
                .eq("revision", expected_revision)
            )
            op = "user_stats.update"

        try:
            resp = await query.execute()
        except Exception as exc:
            logger.error("supabase_%s_unconfirmed user_id=%s expected_revision=%s error=%s", op, user_id, expected_revision, exc)
            raise CounterWriteError(f"{op} for user {user_id} was not confirmed") from exc

        if not getattr(resp, "data", None):
            logger.info("user_stats_write_conflict user_id=%s expected_revision=%s", user_id, expected_revision)
            return False

        await self._mirror_streak(user_id, counters)
        return True

    async def _mirror_streak(self, user_id: str, counters: ProgressionCounters) -> None:
        client = await self._client()
        payload = {
            "user_id": user_id,
            "current_streak": counters.streak_count,
            "longest_streak": counters.longest_streak,
            "total_active_days": counters.total_active_days,
            "last_activity_date": counters.last_activity_date.isoformat() if counters.last_activity_date else None,
            "updated_at": current_timestamp().isoformat(),
        }
        await self._execute(
            client.table("learning_streaks").upsert(payload, on_conflict="user_id").execute(),
            op="learning_streaks.upsert",
        )

    async def log_xp_transaction(
        self,
        user_id: str,
        xp_amount: int,
        reason: str,
        source: str,
        subject: Optional[str] = None,
    ) -> None:
        client = await self._client()
        payload: Dict[str, Any] = {
            "user_id": user_id,
            "xp_amount": xp_amount,
            "reason": reason,
            "source": source,
            "created_at": current_timestamp().isoformat(),
        }
        if subject:
            payload["subject"] = subject
        await self._execute(client.table("xp_transactions").insert(payload).execute(), op="xp_transactions.insert")

    async def list_badge_codes(self, user_id: str) -> list[str]:
        client = await self._client()
        query = client.table("user_badges").select("badge_code").eq("user_id", user_id)
        resp = await self._execute(query.execute(), op="user_badges.select")
        rows = getattr(resp, "data", None) or []
        return [row["badge_code"] for row in rows if row.get("badge_code")]

    async def list_user_badges(self, user_id: str) -> List[Dict[str, Any]]:
        """Earned badges joined with their ``badges`` definition, newest first."""
        client = await self._client()
        query = (
            client.table("user_badges")
            .select("*, badges(badge_name, badge_description, badge_emoji, badge_category, difficulty)")
            .eq("user_id", user_id)
            .order("earned_at", desc=True)
        )
        resp = await self._execute(query.execute(), op="user_badges.select_joined")
        return list(getattr(resp, "data", None) or [])

    async def list_badge_catalog(self) -> List[Dict[str, Any]]:
        client = await self._client()
        query = client.table("badges").select("*").eq("is_secret", False).order("display_order")
        resp = await self._execute(query.execute(), op="badges.select")
        return list(getattr(resp, "data", None) or [])

    async def recent_xp_transactions(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        client = await self._client()
        query = (
            client.table("xp_transactions")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
        )
        resp = await self._execute(query.execute(), op="xp_transactions.select")
        return list(getattr(resp, "data", None) or [])

    async def award_badge(self, user_id: str, badge_code: str, subject: Optional[str] = None) -> bool:
        client = await self._client()
        params = {"p_user_id": user_id, "p_badge_code": badge_code, "p_subject": subject, "p_concept": None}
        resp = await self._execute(client.rpc("award_badge_to_user", params).execute(), op="award_badge_to_user")
        return bool(getattr(resp, "data", None))


progression_repository = ProgressionRepository()
