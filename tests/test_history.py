import asyncio
import random

import pytest

from quiz_server.fallback import FALLBACK_QUESTIONS, fallback_questions
from quiz_server.history import QuestionHistory
from quiz_server.questions import QuestionSourceError

from conftest import FakeSource, make_questions


class TestFallback:
    def test_category_pool(self):
        questions = fallback_questions("cricket", 10, random.Random(0))
        texts = {entry[0] for entry in FALLBACK_QUESTIONS["cricket"]}
        assert len(questions) == len(texts)
        assert {q.text for q in questions} == texts

    def test_unknown_category_pools_everything(self):
        total = sum(len(entries) for entries in FALLBACK_QUESTIONS.values())
        assert len(fallback_questions("random", None, random.Random(0))) == total

    def test_truncated_to_count(self):
        assert len(fallback_questions("random", 3, random.Random(0))) == 3

    def test_correct_index_survives_option_shuffle(self):
        answers = {entry[0]: entry[1][entry[2]] for entry in FALLBACK_QUESTIONS["technology"]}
        for seed in range(10):
            for q in fallback_questions("technology", None, random.Random(seed)):
                assert q.options[q.correct] == answers[q.text]


class TestGetUnique:
    @pytest.mark.asyncio
    async def test_returns_at_most_count(self):
        history = QuestionHistory(FakeSource(make_questions(10)), random.Random(0))
        assert len(await history.get_unique("u1", "technology", 4)) == 4

    @pytest.mark.asyncio
    async def test_falls_back_when_source_fails(self):
        source = FakeSource(error=QuestionSourceError("API Error: Invalid parameter"))
        history = QuestionHistory(source, random.Random(0))
        questions = await history.get_unique("u1", "indian_history", 2)
        local = {entry[0] for entry in FALLBACK_QUESTIONS["indian_history"]}
        assert len(questions) == 2
        assert {q.text for q in questions} <= local

    @pytest.mark.asyncio
    async def test_falls_back_on_empty_result(self):
        history = QuestionHistory(FakeSource([]), random.Random(0))
        assert len(await history.get_unique("u1", "cricket", 2)) == 2

    @pytest.mark.asyncio
    async def test_short_fallback_is_not_an_error(self):
        history = QuestionHistory(FakeSource(error=QuestionSourceError("down")), random.Random(0))
        questions = await history.get_unique("u1", "bollywood", 50)
        assert len(questions) == len(FALLBACK_QUESTIONS["bollywood"])

    @pytest.mark.asyncio
    async def test_disjoint_until_pool_exhausted(self):
        history = QuestionHistory(FakeSource(error=QuestionSourceError("down")), random.Random(0))
        pool = {entry[0] for entry in FALLBACK_QUESTIONS["general_knowledge"]}
        assert len(pool) == 4

        first = {q.text for q in await history.get_unique("u1", "general_knowledge", 2)}
        second = {q.text for q in await history.get_unique("u1", "general_knowledge", 2)}
        assert first.isdisjoint(second)
        assert first | second == pool

        # Pool exhausted: history resets and repeats are allowed again
        third = await history.get_unique("u1", "general_knowledge", 2)
        assert len(third) == 2
        assert history.seen("u1", "general_knowledge") == {q.text for q in third}

    @pytest.mark.asyncio
    async def test_history_is_per_user_and_category(self):
        history = QuestionHistory(FakeSource(error=QuestionSourceError("down")), random.Random(0))
        await history.get_unique("u1", "cricket", 2)
        assert history.seen("u2", "cricket") == set()
        assert history.seen("u1", "bollywood") == set()
        assert len(history.seen("u1", "cricket")) == 2

    @pytest.mark.asyncio
    async def test_repeated_provider_questions_are_filtered(self):
        history = QuestionHistory(FakeSource(make_questions(6)), random.Random(0))
        first = {q.key for q in await history.get_unique("u1", "technology", 3)}
        second = {q.key for q in await history.get_unique("u1", "technology", 3)}
        assert first.isdisjoint(second)
        assert len(first | second) == 6


class TestCleanup:
    def _fill(self, history, users):
        for i in range(users):
            history.seen(f"user{i}", "random")

    def test_no_cleanup_below_threshold(self):
        history = QuestionHistory(FakeSource())
        self._fill(history, 1000)
        assert history.cleanup() == 0
        assert len(history) == 1000

    def test_evicts_down_to_retained_count(self):
        history = QuestionHistory(FakeSource())
        self._fill(history, 1001)
        assert history.cleanup() == 501
        assert len(history) == 500

    def test_keeps_most_recently_touched(self):
        history = QuestionHistory(FakeSource(), max_users=4, keep_users=2)
        self._fill(history, 5)
        history.seen("user0", "random")
        history.cleanup()
        assert list(history._history) == ["user4", "user0"]

    @pytest.mark.asyncio
    async def test_periodic_task_runs_cleanup(self):
        history = QuestionHistory(FakeSource(), max_users=2, keep_users=1)
        self._fill(history, 3)
        task = asyncio.create_task(history.run_periodic_cleanup(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(history) == 1
