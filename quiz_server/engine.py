"""
Quiz session engine: question flow, answers, lifelines and final standings
"""
import asyncio
import logging
import math
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from . import config
from .history import QuestionHistory
from .rooms import RoomRegistry
from .state import Question, QuizSettings, Room, RoomStatus

logger = logging.getLogger("quiz_server")

Send = Callable[[str, Dict[str, Any]], Awaitable[None]]
Step = Callable[[Room], Awaitable[None]]

BASE_POINTS = {"easy": 10, "medium": 20, "hard": 30}
POLL_VOTES = 100
POLL_CORRECT_BIAS = 0.7


def score_for(difficulty: str, time_limit: float, elapsed: float) -> int:
    """Points for a correct answer: difficulty base plus half the unused seconds"""
    time_bonus = max(0, math.floor((time_limit - elapsed) / 2))
    return BASE_POINTS.get(difficulty, 10) + time_bonus


def fifty_fifty(question: Question, rng: random.Random) -> List[int]:
    """Indices of two incorrect options to hide, always keeping one incorrect"""
    wrong = [i for i in range(len(question.options)) if i != question.correct]
    return sorted(rng.sample(wrong, min(2, max(len(wrong) - 1, 0))))


def audience_poll(question: Question, rng: random.Random, votes: int = POLL_VOTES) -> List[int]:
    """Simulated vote counts over the first four options, biased to the answer"""
    size = min(4, len(question.options))
    poll = [0] * size
    for _ in range(votes):
        if rng.random() < POLL_CORRECT_BIAS and question.correct < size:
            poll[question.correct] += 1
        else:
            poll[rng.randrange(size)] += 1
    return poll


class QuizEngine:
    """Drives the question state machine of every room.

    Outbound events go through the `send(conn_id, payload)` coroutine supplied
    by the dispatcher. Timed steps run as tasks on the event loop and are
    skipped when their room has been torn down in the meantime.
    """

    def __init__(
        self,
        rooms: RoomRegistry,
        history: QuestionHistory,
        send: Send,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        answer_delay: float = config.ANSWER_DELAY_SEC,
        skip_delay: float = config.SKIP_DELAY_SEC,
        start_delay: float = config.START_DELAY_SEC,
    ):
        self._rooms = rooms
        self._history = history
        self._send = send
        self._rng = rng or random.Random()
        self._clock = clock
        self.answer_delay = answer_delay
        self.skip_delay = skip_delay
        self.start_delay = start_delay
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------

    def schedule(self, room: Room, delay: float, step: Step) -> asyncio.Task:
        """Run `step(room)` after `delay` if the room still exists by then"""
        async def continuation():
            await asyncio.sleep(delay)
            if not self._rooms.is_live(room):
                logger.debug("Room %s gone, dropping scheduled step", room.id)
                return
            await step(room)

        task = asyncio.create_task(continuation())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled step failed", exc_info=task.exception())

    async def shutdown(self):
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    def _advance_when_all_answered(self, room: Room, delay: float):
        if not room.all_answered():
            return
        index = room.current_index

        async def advance(room: Room):
            if room.status is not RoomStatus.IN_PROGRESS or room.current_index != index:
                return
            room.current_index += 1
            await self.send_question(room)

        self.schedule(room, delay, advance)

    async def broadcast(self, room: Room, payload: Dict[str, Any]):
        for player in list(room.players):
            await self._send(player.conn_id, payload)

    # ------------------------------------------------------------
    # Question flow
    # ------------------------------------------------------------

    async def start_quiz(self, room: Room, settings: Optional[QuizSettings] = None) -> bool:
        """Load a question set for a new run; False if the run could not start"""
        host = room.host
        if host is None or room.loading or room.status is RoomStatus.IN_PROGRESS:
            logger.warning("Ignoring start for room %s (status=%s)", room.id, room.status.value)
            return False
        if settings is not None:
            room.settings = settings

        room.loading = True
        try:
            questions = await self._history.get_unique(
                host.user_id, room.settings.category, room.settings.question_count
            )
        finally:
            room.loading = False

        if not self._rooms.is_live(room):
            logger.info("Room %s closed while loading questions, discarding", room.id)
            return False
        if not questions:
            logger.error("No questions available for room %s", room.id)
            return False

        room.questions = list(questions)
        room.current_index = 0
        room.question_started_at = None
        room.status = RoomStatus.IN_PROGRESS
        for player in room.players:
            player.reset_for_run()

        logger.info("Quiz started in room %s with %d questions", room.id, len(room.questions))
        return True

    async def send_question(self, room: Room):
        if room.current_index >= len(room.questions):
            await self.end_quiz(room)
            return

        question = room.questions[room.current_index]
        room.question_started_at = self._clock()
        for player in room.players:
            player.answered = False

        for player in list(room.players):
            await self._send(player.conn_id, {
                "type": "new_question",
                "questionNumber": room.current_index + 1,
                "totalQuestions": len(room.questions),
                "question": question.text,
                "options": list(question.options),
                "difficulty": question.difficulty,
                "lifelines": dict(player.lifelines),
            })

    async def submit_answer(self, room: Room, conn_id: str, answer: Any):
        player = room.get_player(conn_id)
        question = room.current_question
        if player is None or question is None or room.status is not RoomStatus.IN_PROGRESS:
            return
        # Nothing is open until send_question stamps the start time
        if room.question_started_at is None or player.answered:
            return

        player.answered = True
        is_correct = (
            isinstance(answer, int) and not isinstance(answer, bool) and answer == question.correct
        )
        if is_correct:
            elapsed = self._clock() - room.question_started_at
            player.score += score_for(question.difficulty, room.settings.time_limit, elapsed)
            player.correct += 1
        else:
            player.wrong += 1

        self._advance_when_all_answered(room, self.answer_delay)
        await self._send(conn_id, {
            "type": "answer_result",
            "correct": is_correct,
            "correctAnswer": question.correct,
            "score": player.score,
        })

    async def use_lifeline(self, room: Room, conn_id: str, kind: Any):
        player = room.get_player(conn_id)
        question = room.current_question
        if player is None or question is None or room.status is not RoomStatus.IN_PROGRESS:
            return
        if room.question_started_at is None:
            return
        if not isinstance(kind, str) or not player.lifelines.get(kind) or player.answered:
            return

        player.lifelines[kind] = False
        result: Dict[str, Any] = {"type": "lifeline_result", "lifeline": kind}
        if kind == "fiftyFifty":
            result["removeOptions"] = fifty_fifty(question, self._rng)
        elif kind == "audiencePoll":
            result["poll"] = audience_poll(question, self._rng)
        else:
            # skipQuestion: counts as answered, no score change
            player.answered = True
            self._advance_when_all_answered(room, self.skip_delay)

        logger.debug("%s used %s in room %s", player.name, kind, room.id)
        await self._send(conn_id, result)

    async def end_quiz(self, room: Room):
        room.status = RoomStatus.ENDED
        results = sorted(
            (player.result() for player in room.players),
            key=lambda r: r["score"],
            reverse=True,
        )
        logger.info("Quiz ended in room %s", room.id)
        await self.broadcast(room, {"type": "quiz_ended", "results": results})

    def player_left(self, room: Room):
        """Keep a running quiz moving after a player disconnects"""
        if room.status is RoomStatus.IN_PROGRESS and room.players:
            self._advance_when_all_answered(room, self.answer_delay)
