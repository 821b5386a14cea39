"""RoomRegistry: process-wide map of room code to GameRoom.

One instance is created by the app factory and handed to the socket layer.
The registry lock only guards its own maps; it is never held while calling
into a room, so the lock order is always room -> registry.
"""

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from relay.exceptions import InvalidInput, RoomNotFound
from relay.models import Color, generate_room_code, normalize_room_code
from .room import GameRoom, RoomSettings


logger = logging.getLogger(__name__)


class RoomRegistry:
    def __init__(self, transport, scheduler, settings=None, code_length=5, clock=time.time, rng=None):
        self.transport = transport
        self.scheduler = scheduler
        self.settings = settings or RoomSettings()
        self.code_length = code_length
        self._clock = clock
        self._rng = rng
        self._lock = threading.Lock()
        self._rooms: Dict[str, GameRoom] = {}
        self._sid_rooms: Dict[str, str] = {}

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, code):
        return normalize_room_code(code) in self._rooms

    def codes(self) -> List[str]:
        with self._lock:
            return sorted(self._rooms)

    def create_room(self) -> GameRoom:
        with self._lock:
            code = generate_room_code(self._rooms.keys(), length=self.code_length, rng=self._rng)
            room = GameRoom(
                code,
                self.transport,
                self.scheduler,
                settings=self.settings,
                on_close=self.discard,
                clock=self._clock,
                rng=self._rng,
            )
            self._rooms[code] = room
        logger.info(f"[room-create] code={code}")
        return room

    def get(self, code) -> Optional[GameRoom]:
        with self._lock:
            return self._rooms.get(normalize_room_code(code))

    def require(self, code) -> GameRoom:
        normalized = normalize_room_code(code)
        if not normalized:
            raise InvalidInput('gameId is required')
        room = self.get(normalized)
        if room is None:
            raise RoomNotFound(normalized)
        return room

    def room_for_sid(self, sid: str) -> Optional[GameRoom]:
        with self._lock:
            code = self._sid_rooms.get(sid)
            return self._rooms.get(code) if code else None

    def create_and_admit(self, sid: str, display_name) -> Tuple[GameRoom, Color]:
        if not str(display_name or '').strip():
            raise InvalidInput('playerName is required')
        room = self.create_room()
        return room, self._admit(room, sid, display_name)

    def admit(self, code, sid: str, display_name) -> Tuple[GameRoom, Color]:
        room = self.require(code)
        return room, self._admit(room, sid, display_name)

    def _admit(self, room: GameRoom, sid: str, display_name) -> Color:
        previous = self.room_for_sid(sid)
        color = room.join(sid, display_name)
        if previous is not None and previous is not room:
            previous.disconnect(sid)
        seated = room.seated_sids()
        with self._lock:
            # Connections superseded by a same-name join no longer sit here
            for stale in [s for s, c in self._sid_rooms.items() if c == room.code and s not in seated]:
                del self._sid_rooms[stale]
            if room.code in self._rooms:
                self._sid_rooms[sid] = room.code
        return color

    def release_sid(self, sid: str) -> Optional[GameRoom]:
        """Transport disconnect: leave whatever room this connection sat in."""
        room = self.room_for_sid(sid)
        with self._lock:
            self._sid_rooms.pop(sid, None)
        if room is not None:
            room.disconnect(sid)
        return room

    def leave(self, code, sid: str) -> GameRoom:
        """Explicit leave from one room, keeping the connection itself open."""
        room = self.require(code)
        with self._lock:
            if self._sid_rooms.get(sid) == room.code:
                del self._sid_rooms[sid]
        room.disconnect(sid)
        return room

    def discard(self, code: str) -> bool:
        with self._lock:
            room = self._rooms.pop(code, None)
            for sid in [s for s, c in self._sid_rooms.items() if c == code]:
                del self._sid_rooms[sid]
        if room is not None:
            logger.info(f"[room-discard] code={code}")
        return room is not None

    def reap(self, now: Optional[float] = None) -> int:
        """Remove finished or idle rooms, dropping any connections still seated."""
        now = self._clock() if now is None else now
        with self._lock:
            rooms = list(self._rooms.values())
        reaped = 0
        for room in rooms:
            sids = room.close_if_stale(now)
            if sids is None:
                continue
            self.discard(room.code)
            for sid in sids:
                self.transport.disconnect(sid)
            reaped += 1
            logger.info(f"[reap] code={room.code} dropped={len(sids)}")
        if reaped:
            logger.info(f"[reap-sweep] removed={reaped} remaining={len(self)}")
        return reaped

    def start_reaper(self, interval: float) -> None:
        logger.info(f"[reaper-start] interval={interval}s idle_timeout={self.settings.idle_timeout_sec}s")
        self.scheduler.every(interval, self.reap)
