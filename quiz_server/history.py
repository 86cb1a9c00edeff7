"""
Per-user question history so returning users don't see repeats
"""
import asyncio
import logging
import random
from collections import OrderedDict
from typing import Dict, List, Optional, Set

from . import config
from .fallback import fallback_questions
from .questions import QuestionSourceError, shuffled
from .state import Question

logger = logging.getLogger("quiz_server")


class QuestionHistory:
    """Serves question sets that avoid questions a user has already seen.

    History is kept per user and category. Users are ordered by last use so
    that cleanup() can drop the least recently touched ones.
    """

    def __init__(
        self,
        source,
        rng: Optional[random.Random] = None,
        max_users: int = config.HISTORY_MAX_USERS,
        keep_users: int = config.HISTORY_KEEP_USERS,
    ):
        self._source = source
        self._rng = rng or random.Random()
        self._max_users = max_users
        self._keep_users = keep_users
        self._history: "OrderedDict[str, Dict[str, Set[str]]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._history)

    def seen(self, user_id: str, category: str) -> Set[str]:
        """Question keys already served to a user for a category (live view)"""
        categories = self._history.get(user_id)
        if categories is None:
            categories = self._history[user_id] = {}
        else:
            self._history.move_to_end(user_id)
        return categories.setdefault(category, set())

    async def get_unique(self, user_id: str, category: str, count: int) -> List[Question]:
        """Up to `count` questions the user hasn't seen; never raises on source failure"""
        try:
            candidates = await self._source.fetch(category, count)
            if not candidates:
                raise QuestionSourceError("No questions received from API")
        except QuestionSourceError as e:
            logger.error("Error fetching questions for user %s: %s", user_id, e)
            logger.info("Falling back to local questions...")
            candidates = fallback_questions(category, rng=self._rng)

        candidates = shuffled(candidates, self._rng)
        seen = self.seen(user_id, category)
        unused = [q for q in candidates if q.key not in seen]

        if len(unused) < min(count, len(candidates)):
            logger.info(
                "Question pool exhausted for user %s in %s, resetting history",
                user_id, category,
            )
            seen.clear()
            unused = candidates

        selected = unused[:count]
        seen.update(q.key for q in selected)
        return selected

    def cleanup(self) -> int:
        """Drop the least recently used histories once too many users are tracked"""
        if len(self._history) <= self._max_users:
            return 0
        logger.info("Cleaning up old question histories. Current size: %d", len(self._history))
        removed = 0
        while len(self._history) > self._keep_users:
            self._history.popitem(last=False)
            removed += 1
        logger.info("Cleaned up. New size: %d", len(self._history))
        return removed

    async def run_periodic_cleanup(self, interval: float = config.HISTORY_CLEANUP_SEC):
        while True:
            await asyncio.sleep(interval)
            self.cleanup()
