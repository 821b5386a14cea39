from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import string
import random
import time


class Color(str, Enum):
    WHITE = 'white'
    BLACK = 'black'

    @property
    def opposite(self) -> 'Color':
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    PLAYING = 'playing'
    FINISHED = 'finished'


Position = Tuple[int, int]


def position_to_dict(pos: Position) -> Dict[str, int]:
    return {'row': pos[0], 'col': pos[1]}


def position_from_dict(data: Dict[str, Any]) -> Position:
    return int(data['row']), int(data['col'])


@dataclass
class Piece:
    value: int
    color: Color
    position: Position

    @property
    def key(self) -> Tuple[int, Color]:
        return self.value, self.color

    def to_dict(self):
        return {
            'value': self.value,
            'color': self.color.value,
            'position': position_to_dict(self.position),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            value=int(data['value']),
            color=Color(data['color']),
            position=position_from_dict(data['position']),
        )


@dataclass
class Move:
    piece_value: int
    piece_color: Color
    from_pos: Position
    to_pos: Position

    def to_dict(self):
        return {
            'pieceValue': self.piece_value,
            'pieceColor': self.piece_color.value,
            'from': position_to_dict(self.from_pos),
            'to': position_to_dict(self.to_pos),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            piece_value=int(data['pieceValue']),
            piece_color=Color(data['pieceColor']),
            from_pos=position_from_dict(data['from']),
            to_pos=position_from_dict(data['to']),
        )


@dataclass
class SharedGameState:
    """The authoritative snapshot a room holds and rebroadcasts."""

    board_pieces: List[Piece] = field(default_factory=list)
    is_white_turn: bool = True
    status: RoomStatus = RoomStatus.WAITING
    white_storage: List[int] = field(default_factory=list)
    black_storage: List[int] = field(default_factory=list)
    last_move: Optional[Move] = None
    winner: Optional[Color] = None
    vibration: Optional[Dict[str, Any]] = None

    @property
    def turn_color(self) -> Color:
        return Color.WHITE if self.is_white_turn else Color.BLACK

    def to_dict(self):
        return {
            'boardPieces': [p.to_dict() for p in self.board_pieces],
            'isWhiteTurn': self.is_white_turn,
            'status': self.status.value,
            'whiteStorage': list(self.white_storage),
            'blackStorage': list(self.black_storage),
            'lastMove': self.last_move.to_dict() if self.last_move else None,
            'winner': self.winner.value if self.winner else None,
            'vibration': self.vibration,
        }

    @classmethod
    def from_dict(cls, data):
        last_move = data.get('lastMove')
        winner = data.get('winner')
        return cls(
            board_pieces=[Piece.from_dict(p) for p in data.get('boardPieces') or []],
            is_white_turn=bool(data.get('isWhiteTurn', True)),
            status=RoomStatus(data.get('status') or RoomStatus.WAITING.value),
            white_storage=[int(v) for v in data.get('whiteStorage') or []],
            black_storage=[int(v) for v in data.get('blackStorage') or []],
            last_move=Move.from_dict(last_move) if last_move else None,
            winner=Color(winner) if winner else None,
            vibration=data.get('vibration'),
        )


@dataclass
class Session:
    """A connected player's seat within one room."""

    id: str
    display_name: str
    color: Color
    connected: bool = True
    joined_at: float = field(default_factory=time.time)
    disconnected_at: Optional[float] = None

    def mark_disconnected(self, now: Optional[float] = None) -> None:
        self.connected = False
        self.disconnected_at = now if now is not None else time.time()

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.display_name,
            'color': self.color.value,
            'connected': self.connected,
        }


ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(existing_codes, length=5, rng=None):
    """Generate a room code not present in ``existing_codes``.

    36**5 codes against a handful of live rooms, so the loop ends quickly.
    """
    rng = rng or random
    while True:
        code = ''.join(rng.choices(ROOM_CODE_ALPHABET, k=length))
        if code not in existing_codes:
            return code


def normalize_room_code(code) -> str:
    return str(code or '').strip().upper()
