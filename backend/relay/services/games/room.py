"""GameRoom: the per-room state machine.

Every public method runs under the room's lock, so admission, updates,
negotiation, disconnects and delayed teardown for one room never interleave.
Rooms share nothing with each other.
"""

import logging
import threading
import time
from dataclasses import dataclass
from functools import wraps
from typing import Dict, List, Optional, Set

from relay.exceptions import InvalidInput, RoomFinished, RoomFull, SessionNotInRoom
from relay.models import Color, RoomStatus, Session, SharedGameState
from .negotiation import RestartNegotiation
from .state import initial_state, is_terminal, merge_state, validate_snapshot


logger = logging.getLogger(__name__)

MAX_SESSIONS = 2


@dataclass
class RoomSettings:
    board_size: int = 8
    forfeit_grace_sec: float = 3.0
    win_grace_sec: float = 30.0
    idle_timeout_sec: float = 1800.0

    @classmethod
    def from_config(cls, config):
        return cls(
            board_size=int(config.get('BOARD_SIZE', 8)),
            forfeit_grace_sec=float(config.get('FORFEIT_GRACE_SEC', 3)),
            win_grace_sec=float(config.get('WIN_GRACE_SEC', 30)),
            idle_timeout_sec=float(config.get('ROOM_IDLE_TIMEOUT_SEC', 1800)),
        )


def _serialized(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class GameRoom:
    def __init__(self, code, transport, scheduler, settings=None, on_close=None, clock=time.time, rng=None):
        self.code = code
        self.transport = transport
        self.scheduler = scheduler
        self.settings = settings or RoomSettings()
        self._on_close = on_close
        self._clock = clock
        self._rng = rng
        self._lock = threading.RLock()

        self.sessions: Dict[str, Session] = {}
        self.state: SharedGameState = initial_state(self.settings.board_size, rng)
        self.negotiation = RestartNegotiation()
        self.finished = False
        self.closed = False
        # Bumped on restart so teardown scheduled for an earlier game no-ops
        self.epoch = 0
        self.created_at = clock()
        self.last_activity = self.created_at

    # ---- queries ----

    def connected_sessions(self) -> List[Session]:
        return [s for s in self.sessions.values() if s.connected]

    def roster(self):
        return [s.to_dict() for s in self.connected_sessions()]

    def opponents_of(self, sid: str) -> List[Session]:
        return [s for s in self.connected_sessions() if s.id != sid]

    @_serialized
    def seated_sids(self) -> Set[str]:
        return set(self.sessions)

    @_serialized
    def summary(self):
        return {
            'gameId': self.code,
            'status': self.state.status.value,
            'finished': self.finished,
            'players': [s.to_dict() for s in self.sessions.values()],
            'lastActivity': self.last_activity,
        }

    @_serialized
    def is_stale(self, now: float) -> bool:
        return self.finished or (now - self.last_activity) > self.settings.idle_timeout_sec

    # ---- admission ----

    @_serialized
    def join(self, sid: str, display_name) -> Color:
        """Checked admission used by the transport layer."""
        name = str(display_name or '').strip()
        if not name:
            raise InvalidInput('playerName is required')
        if self.finished or self.closed:
            raise RoomFinished(self.code)
        others = [s for s in self.connected_sessions() if s.display_name != name]
        if len(others) >= MAX_SESSIONS:
            raise RoomFull(self.code)
        return self.add_player(sid, name)

    @_serialized
    def add_player(self, sid: str, display_name: str) -> Color:
        """Seat a connection; callers have already validated the preconditions."""
        for existing in list(self.sessions.values()):
            if existing.display_name == display_name or existing.id == sid:
                logger.info(f"[room-evict] code={self.code} name={existing.display_name} old_sid={existing.id}")
                del self.sessions[existing.id]
                if existing.connected and existing.id != sid:
                    self.transport.send(existing.id, 'error', {
                        'gameId': self.code,
                        'message': f'{display_name} joined room {self.code} from another connection',
                    })
        # A different player taking a free seat displaces any stale disconnected one
        while len(self.sessions) >= MAX_SESSIONS:
            stale = min((s for s in self.sessions.values() if not s.connected),
                        key=lambda s: s.disconnected_at or 0, default=None)
            if stale is None:
                raise RoomFull(self.code)
            logger.info(f"[room-evict] code={self.code} name={stale.display_name} reason=seat-reused")
            del self.sessions[stale.id]

        taken = {s.color for s in self.sessions.values()}
        color = Color.WHITE if Color.WHITE not in taken else Color.BLACK
        self.sessions[sid] = Session(id=sid, display_name=display_name, color=color, joined_at=self._clock())
        self._recompute_status()
        self.last_activity = self._clock()
        logger.info(f"[room-join] code={self.code} sid={sid} name={display_name} color={color.value}")
        self.broadcast_state()
        return color

    # ---- reconciliation ----

    @_serialized
    def handle_game_update(self, sid: str, candidate) -> bool:
        """Validate and merge a snapshot; returns False when the update is dropped."""
        session = self.sessions.get(sid)
        if session is None or not session.connected:
            logger.warning(f"[update-drop] code={self.code} sid={sid} reason=not-in-room")
            return False
        # A finished room only takes the snapshot that carries the terminal board
        late_terminal = self.finished and isinstance(candidate, dict) and is_terminal(candidate)
        if self.closed or (self.finished and not late_terminal):
            logger.info(f"[update-drop] code={self.code} sid={sid} reason=finished")
            return False
        ok, problem = validate_snapshot(candidate)
        if not ok:
            logger.warning(f"[update-drop] code={self.code} sid={sid} reason=invalid detail={problem}")
            return False
        if session.color != self.state.turn_color:
            logger.info(
                f"[update-drop] code={self.code} sid={sid} reason=turn color={session.color.value} "
                f"turn={self.state.turn_color.value}"
            )
            return False

        self.state = merge_state(self.state, candidate)
        self._recompute_status()
        self.last_activity = self._clock()

        winner = candidate.get('winner')
        if late_terminal:
            # Grace teardown is already scheduled for this game
            if self.state.winner is None:
                self.state.winner = Color(winner) if winner else session.color
            logger.info(f"[update-late-terminal] code={self.code} sid={sid} winner={self.state.winner.value}")
            self.broadcast_state()
        elif is_terminal(candidate):
            self._finish_with_winner(Color(winner) if winner else session.color)
        else:
            self.broadcast_state()
        return True

    # ---- restart negotiation ----

    def _require_session(self, sid: str) -> Session:
        session = self.sessions.get(sid)
        if session is None or not session.connected:
            raise SessionNotInRoom(self.code, sid)
        return session

    def _notify_opponents(self, sid: str, event: str, payload) -> None:
        for other in self.opponents_of(sid):
            self.transport.send(other.id, event, payload)

    @_serialized
    def request_restart(self, sid: str) -> None:
        session = self._require_session(sid)
        self.negotiation.request(sid)
        logger.info(f"[restart-request] code={self.code} by={session.display_name}")
        self._notify_opponents(sid, 'restart-request', {
            'gameId': self.code,
            'requester': session.display_name,
            'playerColor': session.color.value,
        })

    @_serialized
    def accept_restart(self, sid: str) -> bool:
        """Returns True when this consent completed the negotiation and reset the room."""
        session = self._require_session(sid)
        if self.negotiation.accept(sid):
            self._restart()
            return True
        self._notify_opponents(sid, 'restart-accepted', {
            'gameId': self.code,
            'accepter': session.display_name,
            'playerColor': session.color.value,
        })
        return False

    @_serialized
    def reject_restart(self, sid: str) -> None:
        session = self._require_session(sid)
        self.negotiation.reject()
        self._notify_opponents(sid, 'restart-rejected', {
            'gameId': self.code,
            'rejecter': session.display_name,
        })

    @_serialized
    def cancel_restart(self, sid: str) -> None:
        session = self._require_session(sid)
        self._notify_opponents(sid, 'restart-cancelled', {
            'gameId': self.code,
            'playerName': session.display_name,
        })

    def _restart(self) -> None:
        self.state = initial_state(self.settings.board_size, self._rng)
        self.finished = False
        self.epoch += 1
        self.negotiation.reset()
        self._recompute_status()
        self.last_activity = self._clock()
        logger.info(f"[restart] code={self.code} epoch={self.epoch}")
        self.broadcast_state('game-restarted')

    # ---- termination ----

    @_serialized
    def forfeit(self, sid: str) -> bool:
        session = self._require_session(sid)
        if self.finished:
            logger.info(f"[forfeit-skip] code={self.code} sid={sid} already finished")
            return False
        self.finished = True
        self.state.status = RoomStatus.FINISHED
        payload = {
            'gameId': self.code,
            'forfeitingPlayer': session.display_name,
            'forfeitingColor': session.color.value,
            'winningColor': session.color.opposite.value,
        }
        logger.info(f"[forfeit] code={self.code} by={session.display_name} color={session.color.value}")
        for s in self.connected_sessions():
            self.transport.send(s.id, 'game-forfeited' if s.id == sid else 'opponent-forfeit', payload)
        self._schedule_teardown(self.settings.forfeit_grace_sec, return_to_menu=False)
        return True

    @_serialized
    def declare_winner(self, sid: str, winner) -> bool:
        self._require_session(sid)
        try:
            color = Color(winner)
        except ValueError:
            raise InvalidInput(f'Unknown winner color {winner!r}')
        if self.finished:
            logger.info(f"[win-skip] code={self.code} already finished")
            return False
        self._finish_with_winner(color)
        return True

    def _finish_with_winner(self, color: Color) -> None:
        self.finished = True
        self.state.winner = color
        self.state.status = RoomStatus.FINISHED
        winner_name = next((s.display_name for s in self.sessions.values() if s.color == color), None)
        logger.info(f"[win] code={self.code} winner={color.value} name={winner_name}")
        self.broadcast_state()
        for s in self.connected_sessions():
            self.transport.send(s.id, 'game-won', {
                'gameId': self.code,
                'winner': color.value,
                'winnerName': winner_name,
                'youWon': s.color == color,
            })
        self._schedule_teardown(self.settings.win_grace_sec, return_to_menu=True)

    def _schedule_teardown(self, delay: float, return_to_menu: bool) -> None:
        logger.info(f"[teardown-set] code={self.code} epoch={self.epoch} delay={delay}s")
        self.scheduler.call_later(delay, self.expire, self.epoch, return_to_menu)

    @_serialized
    def expire(self, epoch: int, return_to_menu: bool = False) -> bool:
        """Scheduled teardown; no-ops unless the room is still in the game it was set for."""
        if self.closed or not self.finished or epoch != self.epoch:
            logger.info(
                f"[teardown-abort] code={self.code} epoch={epoch} current={self.epoch} "
                f"finished={self.finished} closed={self.closed}"
            )
            return False
        if return_to_menu:
            for s in self.connected_sessions():
                self.transport.send(s.id, 'return-to-menu', {'gameId': self.code})
        self._close('grace-expired')
        return True

    # ---- disconnects ----

    @_serialized
    def disconnect(self, sid: str) -> bool:
        """Mark a seat disconnected; returns True when the room emptied and closed."""
        session = self.sessions.get(sid)
        if session is None or not session.connected:
            return False
        session.mark_disconnected(self._clock())
        self.negotiation.reset()
        self._recompute_status()
        logger.info(f"[room-leave] code={self.code} sid={sid} name={session.display_name}")
        self._notify_opponents(sid, 'opponent-disconnected', {
            'gameId': self.code,
            'playerName': session.display_name,
            'playerColor': session.color.value,
            'status': self.state.status.value,
        })
        if not self.connected_sessions():
            self.finished = True
            self.state.status = RoomStatus.FINISHED
            self._close('empty')
            return True
        return False

    @_serialized
    def close_if_stale(self, now: float) -> Optional[List[str]]:
        """Reaper entry point: force-close a finished or idle room.

        Returns the sids that were still connected, or None when the room is live.
        """
        if not self.is_stale(now):
            return None
        sids = [s.id for s in self.connected_sessions()]
        for s in self.connected_sessions():
            s.mark_disconnected(now)
        self.finished = True
        self.closed = True
        self.state.status = RoomStatus.FINISHED
        return sids

    def _close(self, reason: str) -> None:
        self.closed = True
        logger.info(f"[room-close] code={self.code} reason={reason}")
        if self._on_close is not None:
            self._on_close(self.code)

    # ---- broadcast ----

    def _recompute_status(self) -> None:
        if self.finished:
            self.state.status = RoomStatus.FINISHED
        elif len(self.connected_sessions()) == MAX_SESSIONS:
            self.state.status = RoomStatus.PLAYING
        else:
            self.state.status = RoomStatus.WAITING

    def personalized_payload(self, session: Session, roster=None):
        return {
            'gameId': self.code,
            'gameState': self.state.to_dict(),
            'finished': self.finished,
            'players': roster if roster is not None else self.roster(),
            'color': session.color.value,
            'playerName': session.display_name,
        }

    @_serialized
    def notify_all(self, event: str, extra=None) -> None:
        """Shared (non-personalized) event to every connected seat."""
        payload = {'gameId': self.code, 'players': self.roster()}
        payload.update(extra or {})
        for s in self.connected_sessions():
            self.transport.send(s.id, event, payload)

    def broadcast_state(self, event: str = 'game-state') -> None:
        roster = self.roster()
        for s in self.connected_sessions():
            self.transport.send(s.id, event, self.personalized_payload(s, roster))
