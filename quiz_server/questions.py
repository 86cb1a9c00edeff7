"""
Question source backed by an Open Trivia DB compatible HTTP API
"""
import asyncio
import html
import logging
import math
import random
from typing import Any, Dict, List, Optional

import aiohttp

from . import config
from .state import DIFFICULTIES, Question

logger = logging.getLogger("quiz_server")

# Internal category name -> provider category id
CATEGORY_IDS: Dict[str, int] = {
    "general_knowledge": 9,
    "technology": 18,
    "sports": 21,
    "geography": 22,
    "indian_history": 23,
}

# General Knowledge, Computers, History, Sports, Geography
RANDOM_CATEGORY_IDS = (9, 18, 23, 21, 22)

RESPONSE_ERRORS = {
    1: "Not enough questions available for the specified parameters",
    2: "Invalid parameter",
    3: "Token not found",
    4: "Token empty",
}


class QuestionSourceError(Exception):
    """Raised when the provider cannot supply questions"""


def error_message(code: Any) -> str:
    return RESPONSE_ERRORS.get(code, "Unknown error")


def shuffled(items: List[Any], rng: random.Random) -> List[Any]:
    """Return a uniformly shuffled copy (Fisher-Yates)"""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def format_question(raw: Dict[str, Any], rng: random.Random) -> Question:
    """Decode a raw provider question and shuffle its options"""
    correct_answer = html.unescape(raw["correct_answer"])
    options = [html.unescape(answer) for answer in raw["incorrect_answers"]]
    options.append(correct_answer)
    options = shuffled(options, rng)

    difficulty = raw.get("difficulty")
    if difficulty not in DIFFICULTIES:
        difficulty = "medium"

    return Question(
        text=html.unescape(raw["question"]),
        options=tuple(options),
        correct=options.index(correct_answer),
        difficulty=difficulty,
    )


class QuestionSource:
    """Fetches and formats question sets from the remote provider"""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        rng: Optional[random.Random] = None,
        api_url: str = config.QUIZ_API_URL,
        categories_url: str = config.QUIZ_API_CATEGORIES_URL,
        timeout: float = config.QUIZ_API_TIMEOUT,
    ):
        self._session = session
        self._rng = rng or random.Random()
        self._api_url = api_url
        self._categories_url = categories_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, category: str, count: int) -> List[Question]:
        return await self.fetch_questions_by_category(category, count)

    async def fetch_questions(
        self,
        amount: int = 10,
        category: Optional[int] = None,
        difficulty: Optional[str] = None,
    ) -> List[Question]:
        """Single provider request; every failure surfaces as QuestionSourceError"""
        params = {"amount": str(amount), "type": "multiple"}
        if category is not None:
            params["category"] = str(category)
        if difficulty:
            params["difficulty"] = difficulty

        logger.info("Fetching %d questions (category=%s)", amount, category)
        try:
            async with self._session.get(
                self._api_url, params=params, timeout=self._timeout
            ) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise QuestionSourceError(f"Fetch failed: {e}") from e

        if not isinstance(data, dict):
            raise QuestionSourceError("Malformed provider response")
        code = data.get("response_code")
        if code != 0:
            raise QuestionSourceError(f"API Error: {error_message(code)}")

        try:
            questions = [format_question(raw, self._rng) for raw in data["results"]]
        except (KeyError, TypeError, ValueError) as e:
            raise QuestionSourceError(f"Malformed question in response: {e}") from e

        logger.info("Successfully fetched %d questions", len(questions))
        return questions

    async def fetch_questions_by_category(
        self, category: str, amount: int = 10, difficulty: Optional[str] = None
    ) -> List[Question]:
        category_id = CATEGORY_IDS.get(category)
        if category_id is None:
            return await self.fetch_random_questions(amount, difficulty)
        return await self.fetch_questions(amount, category_id, difficulty)

    async def fetch_random_questions(
        self, amount: int = 10, difficulty: Optional[str] = None
    ) -> List[Question]:
        """Spread the request over several categories, topping up from any category"""
        per_category = math.ceil(amount / len(RANDOM_CATEGORY_IDS))
        collected: List[Question] = []
        last_error: Optional[QuestionSourceError] = None

        for category_id in RANDOM_CATEGORY_IDS:
            try:
                collected.extend(
                    await self.fetch_questions(
                        min(per_category, amount - len(collected)), category_id, difficulty
                    )
                )
            except QuestionSourceError as e:
                logger.warning("Failed to fetch from category %s: %s", category_id, e)
                last_error = e
            if len(collected) >= amount:
                break

        if len(collected) < amount:
            try:
                collected.extend(
                    await self.fetch_questions(amount - len(collected), None, difficulty)
                )
            except QuestionSourceError as e:
                logger.warning("Failed to fetch additional questions: %s", e)
                last_error = e

        if not collected and last_error is not None:
            raise last_error
        return shuffled(collected, self._rng)[:amount]

    async def get_categories(self) -> List[Dict[str, Any]]:
        """Provider category list; empty when the provider is unavailable"""
        try:
            async with self._session.get(self._categories_url, timeout=self._timeout) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error("Error fetching categories: %s", e)
            return []
        if not isinstance(data, dict):
            return []
        return data.get("trivia_categories") or []
