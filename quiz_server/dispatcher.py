"""
Routes client messages to the room registry and quiz engine
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import config
from .engine import QuizEngine
from .history import QuestionHistory
from .rooms import RoomError, RoomRegistry
from .state import QuizSettings, Room, RoomStatus
from .utils import generate_client_id, generate_user_id

logger = logging.getLogger("quiz_server")

LOAD_FAILED = "Failed to load questions. Please try again."


@dataclass
class Connection:
    ws: Any
    user_id: str
    room_id: Optional[str] = None


class Dispatcher:
    """Owns the connection -> (user, room) mapping and relays engine output"""

    def __init__(
        self,
        rooms: RoomRegistry,
        history: QuestionHistory,
        solo_start_delay: float = config.SOLO_START_DELAY_SEC,
        **engine_options,
    ):
        self.rooms = rooms
        self.engine = QuizEngine(rooms, history, self.relay, **engine_options)
        self.solo_start_delay = solo_start_delay
        self._connections: Dict[str, Connection] = {}
        self._handlers = {
            "create_room": self.on_create_room,
            "play_solo": self.on_play_solo,
            "join_room": self.on_join_room,
            "start_quiz": self.on_start_quiz,
            "submit_answer": self.on_submit_answer,
            "use_lifeline": self.on_use_lifeline,
        }

    def connect(self, ws) -> str:
        conn_id = generate_client_id()
        while conn_id in self._connections:
            conn_id = generate_client_id()
        self._connections[conn_id] = Connection(ws=ws, user_id=generate_user_id())
        return conn_id

    def connection(self, conn_id: str) -> Optional[Connection]:
        return self._connections.get(conn_id)

    async def disconnect(self, conn_id: str):
        conn = self._connections.pop(conn_id, None)
        if conn is not None and conn.room_id:
            await self._leave_room(conn_id, conn.room_id)

    async def relay(self, conn_id: str, payload: Dict[str, Any]):
        conn = self._connections.get(conn_id)
        if conn is None or conn.ws.closed:
            logger.debug("Dropping %s for closed connection %s", payload.get("type"), conn_id)
            return
        try:
            await conn.ws.send_json(payload)
        except (ConnectionResetError, RuntimeError) as e:
            logger.debug("Failed to send to %s: %s", conn_id, e)

    async def error(self, conn_id: str, message: str):
        await self.relay(conn_id, {"type": "error", "message": message})

    async def handle_message(self, conn_id: str, raw: str):
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("Error parsing message from %s: %s", conn_id, e)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object message from %s", conn_id)
            return

        msg_type = data.get("type")
        handler = self._handlers.get(msg_type) if isinstance(msg_type, str) else None
        if handler is None:
            logger.warning("Unknown message type %r from %s", msg_type, conn_id)
            return
        if conn_id not in self._connections:
            return
        await handler(conn_id, data)

    # ============================================================
    # ROOMS
    # ============================================================

    def _current_room(self, conn_id: str) -> Optional[Room]:
        conn = self._connections.get(conn_id)
        room = self.rooms.get_room(conn.room_id) if conn else None
        if room is None or room.get_player(conn_id) is None:
            return None
        return room

    async def _leave_room(self, conn_id: str, room_id: str):
        room = self.rooms.get_room(room_id)
        player = room.get_player(conn_id) if room else None
        room = self.rooms.remove_player(conn_id, room_id)
        if room is None or not room.players or player is None:
            return

        logger.info("%s left room %s", player.name, room.id)
        await self.engine.broadcast(room, {
            "type": "player_left",
            "name": player.name,
            "players": room.roster(),
        })
        self.engine.player_left(room)

    async def _switch_room(self, conn_id: str, room: Room):
        conn = self._connections[conn_id]
        previous, conn.room_id = conn.room_id, room.id
        if previous and previous != room.id:
            await self._leave_room(conn_id, previous)

    async def on_create_room(self, conn_id: str, data: Dict[str, Any]):
        conn = self._connections[conn_id]
        room = self.rooms.create_room(conn_id, conn.user_id, data.get("playerName"))
        await self._switch_room(conn_id, room)
        await self.relay(conn_id, {"type": "room_created", "roomId": room.id})

    async def on_play_solo(self, conn_id: str, data: Dict[str, Any]):
        conn = self._connections[conn_id]
        settings = QuizSettings.from_payload(data.get("settings"))
        room = self.rooms.create_solo_room(conn_id, conn.user_id, data.get("playerName"), settings)
        await self._switch_room(conn_id, room)
        await self.relay(conn_id, {"type": "player_joined", "players": room.roster(with_score=False)})
        self.engine.schedule(room, self.solo_start_delay, self._start_solo)

    async def _start_solo(self, room: Room):
        host = room.host
        if room.loading or room.status is RoomStatus.IN_PROGRESS:
            logger.debug("Solo room %s already started, skipping auto-start", room.id)
            return
        if await self.engine.start_quiz(room):
            await self.engine.send_question(room)
        elif host is not None and self.rooms.is_live(room):
            await self.error(host.conn_id, LOAD_FAILED)

    async def on_join_room(self, conn_id: str, data: Dict[str, Any]):
        conn = self._connections[conn_id]
        try:
            room = self.rooms.join_room(
                conn_id, conn.user_id, data.get("roomId"), data.get("playerName")
            )
        except RoomError as e:
            logger.info("Join failed for %s: %s (%s)", conn_id, e.message, e.room_id)
            await self.error(conn_id, e.message)
            return

        await self._switch_room(conn_id, room)
        await self.engine.broadcast(room, {"type": "player_joined", "players": room.roster()})

    # ============================================================
    # QUIZ
    # ============================================================

    async def on_start_quiz(self, conn_id: str, data: Dict[str, Any]):
        room = self._current_room(conn_id)
        if room is None:
            await self.error(conn_id, "Room not found")
            return
        if room.host.conn_id != conn_id:
            await self.error(conn_id, "Only the host can start the quiz")
            return
        if room.loading or room.status is RoomStatus.IN_PROGRESS:
            await self.error(conn_id, "Quiz already in progress")
            return

        settings = None
        if "settings" in data:
            settings = QuizSettings.from_payload(data.get("settings"))

        if not await self.engine.start_quiz(room, settings):
            if self.rooms.is_live(room):
                await self.error(conn_id, LOAD_FAILED)
            return

        await self.engine.broadcast(room, {
            "type": "quiz_started",
            "settings": room.settings.to_payload(),
            "totalQuestions": len(room.questions),
        })
        self.engine.schedule(room, self.engine.start_delay, self.engine.send_question)

    async def on_submit_answer(self, conn_id: str, data: Dict[str, Any]):
        room = self._current_room(conn_id)
        if room is None:
            logger.debug("Answer from %s without a room, ignoring", conn_id)
            return
        await self.engine.submit_answer(room, conn_id, data.get("answer"))

    async def on_use_lifeline(self, conn_id: str, data: Dict[str, Any]):
        room = self._current_room(conn_id)
        if room is None:
            logger.debug("Lifeline from %s without a room, ignoring", conn_id)
            return
        await self.engine.use_lifeline(room, conn_id, data.get("lifeline"))
