import itertools
import random

import aiohttp
import pytest
from aiohttp import web

from quiz_server.engine import QuizEngine
from quiz_server.history import QuestionHistory
from quiz_server.questions import QuestionSource, QuestionSourceError
from quiz_server.rooms import RoomRegistry
from quiz_server.state import Question

_question_ids = itertools.count(1)


def make_raw(amount, difficulty="medium"):
    """Provider-shaped questions with unique text"""
    results = []
    for _ in range(amount):
        n = next(_question_ids)
        results.append({
            "question": f"Question {n} &quot;quoted&quot;?",
            "correct_answer": f"Right {n}",
            "incorrect_answers": [f"Wrong {n}a", f"Wrong {n}b", f"Wrong {n}c"],
            "difficulty": difficulty,
        })
    return results


def make_questions(count, difficulty="medium", prefix="Q"):
    return [
        Question(f"{prefix}{i}", ("A", "B", "C", "D"), 0, difficulty)
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeProvider:
    """In-process stand-in for the trivia HTTP API"""

    def __init__(self):
        self.calls = []
        self.categories = [{"id": 9, "name": "General Knowledge"}]
        self.respond = lambda params: {
            "response_code": 0,
            "results": make_raw(int(params["amount"])),
        }

    async def api(self, request):
        params = dict(request.query)
        self.calls.append(params)
        result = self.respond(params)
        if isinstance(result, web.StreamResponse):
            return result
        return web.json_response(result)

    async def api_categories(self, request):
        return web.json_response({"trivia_categories": self.categories})


class FakeSource:
    """Question source returning canned questions or raising"""

    def __init__(self, questions=None, error=None):
        self.questions = questions or []
        self.error = error
        self.calls = []

    async def fetch(self, category, count):
        self.calls.append((category, count))
        if self.error is not None:
            raise self.error
        return list(self.questions)


class Outbox:
    """Collects (conn_id, payload) pairs the engine sends"""

    def __init__(self):
        self.sent = []

    async def __call__(self, conn_id, payload):
        self.sent.append((conn_id, payload))

    def to(self, conn_id, msg_type=None):
        return [
            payload for cid, payload in self.sent
            if cid == conn_id and (msg_type is None or payload["type"] == msg_type)
        ]

    def last(self, conn_id, msg_type):
        messages = self.to(conn_id, msg_type)
        return messages[-1] if messages else None


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class MockWebSocket:
    """Minimal aiohttp WebSocketResponse replacement"""

    def __init__(self):
        self.sent_messages = []
        self.closed = False

    async def send_json(self, data):
        if self.closed:
            raise ConnectionResetError("closed")
        self.sent_messages.append(data)

    def all(self, msg_type):
        return [m for m in self.sent_messages if m.get("type") == msg_type]

    def last(self, msg_type):
        found = self.all(msg_type)
        return found[-1] if found else None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def provider(aiohttp_server):
    fake = FakeProvider()
    app = web.Application()
    app.router.add_get("/api.php", fake.api)
    app.router.add_get("/api_category.php", fake.api_categories)
    server = await aiohttp_server(app)
    fake.url = str(server.make_url("/api.php"))
    fake.categories_url = str(server.make_url("/api_category.php"))
    return fake


@pytest.fixture
async def http_session():
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def source(provider, http_session):
    return QuestionSource(
        http_session,
        random.Random(1),
        api_url=provider.url,
        categories_url=provider.categories_url,
        timeout=5,
    )


@pytest.fixture
def rooms():
    return RoomRegistry()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_source():
    return FakeSource(make_questions(3))


@pytest.fixture
def engine(rooms, fake_source, outbox, clock):
    history = QuestionHistory(fake_source, random.Random(3))
    return QuizEngine(
        rooms,
        history,
        outbox,
        rng=random.Random(7),
        clock=clock,
        answer_delay=0,
        skip_delay=0,
        start_delay=0,
    )


@pytest.fixture
def unreachable():
    return QuestionSourceError("Fetch failed: connection refused")
