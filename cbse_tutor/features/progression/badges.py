from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Set

from .leveling import BadgeCheck
from .schemas import CompletionEvent, ProgressionCounters

logger = logging.getLogger("progression.badges")

QUIZ_MASTER_AT = 10
SHARPSHOOTER_PERFECT_QUIZZES = 5
SUBJECT_CHAMPION_MASTERY = 80


class BadgeRules:
    """Decides which badge codes an action unlocks.

    Actions: ``quiz_completed`` (value = score percent, ``stats`` carries the
    quiz counters) and ``subject_mastery`` (value = subject mastery percent).
    Every newly eligible code is returned; granting them through the
    ``award_badge_to_user`` RPC is the caller's job.
    """

    def evaluate(
        self,
        action: str,
        value: float,
        stats: Mapping[str, Any],
        owned: Iterable[str] = (),
    ) -> List[str]:
        owned_set: Set[str] = set(owned)
        eligible: List[str] = []

        if action == "quiz_completed":
            if value == 100:
                eligible.append("perfect_score")
            if int(stats.get("total_quizzes") or 0) == QUIZ_MASTER_AT:
                eligible.append("quiz_master")
            if int(stats.get("perfect_quizzes") or 0) >= SHARPSHOOTER_PERFECT_QUIZZES:
                eligible.append("sharpshooter")
        elif action == "subject_mastery":
            if value >= SUBJECT_CHAMPION_MASTERY:
                eligible.append("subject_champion")
        else:
            logger.debug("badge_rules_unknown_action action=%s", action)

        return [code for code in eligible if code not in owned_set]

    def quiz_check(self, owned: Iterable[str] = (), mastery_percent: Optional[int] = None) -> BadgeCheck:
        """Adapt the rules to the ``badge_check`` hook of apply_completion.

        With ``mastery_percent`` the subject mastery rule is checked as well.
        """
        owned_set = set(owned)

        def _check(counters: ProgressionCounters, event: CompletionEvent) -> List[str]:
            stats = {
                "total_quizzes": counters.total_quizzes,
                "perfect_quizzes": counters.perfect_quizzes,
            }
            score = 100 if event.is_perfect_score else 0
            codes = self.evaluate("quiz_completed", score, stats, owned_set)
            if mastery_percent is not None:
                codes += self.evaluate("subject_mastery", mastery_percent, stats, owned_set)
            return codes

        return _check


badge_rules = BadgeRules()
