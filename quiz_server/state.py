"""
In-memory state for quiz rooms, players and questions
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

DIFFICULTIES = ("easy", "medium", "hard")
LIFELINES = ("fiftyFifty", "audiencePoll", "skipQuestion")

MAX_PLAYERS = 2
MAX_NAME_LENGTH = 20
DEFAULT_PLAYER_NAME = "Player"

DEFAULT_CATEGORY = "random"
DEFAULT_QUESTION_COUNT = 10
DEFAULT_TIME_LIMIT = 30
QUESTION_COUNT_RANGE = (1, 50)
TIME_LIMIT_RANGE = (5, 300)


class RoomStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


def _clamp_int(value: Any, default: int, bounds: Tuple[int, int]) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    low, high = bounds
    return max(low, min(high, number))


def clean_player_name(name: Any) -> str:
    """Trim a client supplied display name, falling back to a default"""
    if not isinstance(name, str):
        return DEFAULT_PLAYER_NAME
    return name.strip()[:MAX_NAME_LENGTH] or DEFAULT_PLAYER_NAME


@dataclass(frozen=True)
class QuizSettings:
    category: str = DEFAULT_CATEGORY
    question_count: int = DEFAULT_QUESTION_COUNT
    time_limit: int = DEFAULT_TIME_LIMIT

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "QuizSettings":
        """Build settings from a client message, normalising missing or bad values"""
        if not isinstance(data, dict):
            return cls()
        category = data.get("category")
        if not isinstance(category, str) or not category.strip():
            category = DEFAULT_CATEGORY
        return cls(
            category=category.strip(),
            question_count=_clamp_int(
                data.get("questionCount"), DEFAULT_QUESTION_COUNT, QUESTION_COUNT_RANGE
            ),
            time_limit=_clamp_int(data.get("timeLimit"), DEFAULT_TIME_LIMIT, TIME_LIMIT_RANGE),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "questionCount": self.question_count,
            "timeLimit": self.time_limit,
        }


@dataclass(frozen=True)
class Question:
    text: str
    options: Tuple[str, ...]
    correct: int
    difficulty: str = "medium"

    @property
    def key(self) -> str:
        """Identifier used to recognise a question across deliveries"""
        return self.text


def fresh_lifelines() -> Dict[str, bool]:
    return {name: True for name in LIFELINES}


@dataclass
class Player:
    conn_id: str
    user_id: str
    name: str
    score: int = 0
    correct: int = 0
    wrong: int = 0
    answered: bool = False
    lifelines: Dict[str, bool] = field(default_factory=fresh_lifelines)

    def reset_for_run(self) -> None:
        self.score = 0
        self.correct = 0
        self.wrong = 0
        self.answered = False
        self.lifelines = fresh_lifelines()

    def result(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "correct": self.correct,
            "wrong": self.wrong,
        }


@dataclass
class Room:
    id: str
    players: List[Player] = field(default_factory=list)
    settings: QuizSettings = field(default_factory=QuizSettings)
    questions: List[Question] = field(default_factory=list)
    current_index: int = 0
    question_started_at: Optional[float] = None
    is_solo: bool = False
    status: RoomStatus = RoomStatus.IDLE
    loading: bool = False

    @property
    def host(self) -> Optional[Player]:
        return self.players[0] if self.players else None

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def get_player(self, conn_id: str) -> Optional[Player]:
        for player in self.players:
            if player.conn_id == conn_id:
                return player
        return None

    def all_answered(self) -> bool:
        return bool(self.players) and all(p.answered for p in self.players)

    def roster(self, with_score: bool = True) -> List[Dict[str, Any]]:
        if with_score:
            return [{"name": p.name, "score": p.score} for p in self.players]
        return [{"name": p.name} for p in self.players]
