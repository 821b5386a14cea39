"""Lobby presence and direct challenges between registered connections."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class LobbyPlayer:
    socket_id: str
    username: str
    in_game: bool = False

    def to_dict(self):
        return {'socketId': self.socket_id, 'username': self.username, 'inGame': self.in_game}


class Lobby:
    def __init__(self):
        self._lock = threading.Lock()
        self._players: Dict[str, LobbyPlayer] = {}
        # challenger sid -> target sid, one outstanding challenge per challenger
        self._challenges: Dict[str, str] = {}

    def register(self, sid: str, username: str) -> LobbyPlayer:
        with self._lock:
            player = LobbyPlayer(socket_id=sid, username=username)
            self._players[sid] = player
        logger.info(f"[lobby-register] sid={sid} name={username}")
        return player

    def unregister(self, sid: str) -> bool:
        with self._lock:
            self._challenges = {c: t for c, t in self._challenges.items() if sid not in (c, t)}
            return self._players.pop(sid, None) is not None

    def get(self, sid: str) -> Optional[LobbyPlayer]:
        with self._lock:
            return self._players.get(sid)

    def can_challenge(self, challenger_sid: str, target_sid: str) -> bool:
        with self._lock:
            challenger = self._players.get(challenger_sid)
            target = self._players.get(target_sid)
            return bool(challenger and target and challenger_sid != target_sid
                        and not challenger.in_game and not target.in_game)

    def mark_in_game(self, *sids: str) -> None:
        with self._lock:
            for sid in sids:
                if sid in self._players:
                    self._players[sid].in_game = True

    def snapshot(self) -> List[dict]:
        with self._lock:
            return [p.to_dict() for p in self._players.values()]

    def record_challenge(self, challenger_sid: str, target_sid: str) -> None:
        with self._lock:
            self._challenges[challenger_sid] = target_sid
        logger.info(f"[lobby-challenge] from={challenger_sid} to={target_sid}")

    def take_challenge(self, challenger_sid: str, target_sid: str) -> bool:
        """Consume the challenge ``challenger_sid`` sent to ``target_sid``; False if there is none."""
        with self._lock:
            if target_sid is None or self._challenges.get(challenger_sid) != target_sid:
                return False
            del self._challenges[challenger_sid]
            return True
