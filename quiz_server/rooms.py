"""
Room registry: creation, lookup, membership and teardown
"""
import logging
from typing import Dict, Iterator, Optional

from .state import MAX_PLAYERS, Player, QuizSettings, Room, RoomStatus, clean_player_name
from .utils import generate_room_id

logger = logging.getLogger("quiz_server")


class RoomError(Exception):
    """Base class for join failures reported back to the client"""

    message = "Room error"

    def __init__(self, room_id: str):
        super().__init__(self.message)
        self.room_id = room_id


class RoomNotFound(RoomError):
    message = "Room not found"


class RoomFull(RoomError):
    message = "Room is full"


class RoomBusy(RoomError):
    message = "Quiz already in progress"


class RoomRegistry:
    def __init__(self, max_players: int = MAX_PLAYERS):
        self._rooms: Dict[str, Room] = {}
        self.max_players = max_players

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def _new_room(self, conn_id: str, user_id: str, player_name, **fields) -> Room:
        room = Room(id=generate_room_id(taken=self._rooms), **fields)
        room.players.append(Player(conn_id, user_id, clean_player_name(player_name)))
        self._rooms[room.id] = room
        return room

    def create_room(self, conn_id: str, user_id: str, player_name) -> Room:
        room = self._new_room(conn_id, user_id, player_name)
        logger.info("🎪 Room created: %s by %s", room.id, room.host.name)
        return room

    def create_solo_room(
        self,
        conn_id: str,
        user_id: str,
        player_name,
        settings: Optional[QuizSettings] = None,
    ) -> Room:
        room = self._new_room(
            conn_id, user_id, player_name, settings=settings or QuizSettings(), is_solo=True
        )
        logger.info("🎪 Solo room created: %s by %s", room.id, room.host.name)
        return room

    def get_room(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        return self._rooms.get(room_id)

    def is_live(self, room: Room) -> bool:
        """True while `room` is still the registered room for its id"""
        return self._rooms.get(room.id) is room

    def join_room(self, conn_id: str, user_id: str, room_id, player_name) -> Room:
        room = self.get_room(room_id.strip().upper() if isinstance(room_id, str) else None)
        if room is None:
            raise RoomNotFound(str(room_id))
        if room.get_player(conn_id) is not None:
            return room
        if len(room.players) >= self.max_players or room.is_solo:
            raise RoomFull(room.id)
        if room.loading or room.status is RoomStatus.IN_PROGRESS:
            raise RoomBusy(room.id)

        room.players.append(Player(conn_id, user_id, clean_player_name(player_name)))
        logger.info("✅ %s joined %s (%d players)", room.players[-1].name, room.id, len(room.players))
        return room

    def remove_player(self, conn_id: str, room_id: Optional[str]) -> Optional[Room]:
        """Remove a connection's player; deletes the room once it is empty"""
        room = self.get_room(room_id)
        if room is None:
            return None

        room.players = [p for p in room.players if p.conn_id != conn_id]
        if not room.players:
            del self._rooms[room.id]
            logger.info("🛑 Room closed: %s", room.id)
        return room
