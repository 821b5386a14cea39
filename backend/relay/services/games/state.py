"""Shared game state: shape validation, move detection and the merge reducer.

The relay never judges whether a move is legal. It only checks that a
candidate snapshot has the expected structure and folds it into the
authoritative copy according to ``FIELD_OWNERSHIP``.
"""

import random
from typing import Any, Dict, List, Optional, Tuple

from relay.models import Color, Move, Piece, RoomStatus, SharedGameState

CLIENT = 'client'
SERVER = 'server'

# Which side may write each wire field. Client-owned fields are overwritten
# when present in a candidate and kept otherwise; server-owned fields are
# never read from a candidate.
FIELD_OWNERSHIP = {
    'boardPieces': CLIENT,
    'isWhiteTurn': CLIENT,
    'whiteStorage': CLIENT,
    'blackStorage': CLIENT,
    'vibration': CLIENT,
    'status': SERVER,
    'lastMove': SERVER,
    'winner': SERVER,
}

_COLOR_VALUES = {c.value for c in Color}
_STATUS_VALUES = {s.value for s in RoomStatus}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_piece(piece) -> Optional[str]:
    if not isinstance(piece, dict):
        return 'piece must be an object'
    for key in ('value', 'color', 'position'):
        if key not in piece:
            return f'piece is missing {key}'
    if not _is_int(piece['value']):
        return 'piece value must be an integer'
    if piece['color'] not in _COLOR_VALUES:
        return f"unknown piece color {piece['color']!r}"
    position = piece['position']
    if not isinstance(position, dict) or not _is_int(position.get('row')) or not _is_int(position.get('col')):
        return 'piece position must be {row, col} integers'
    return None


def validate_snapshot(raw) -> Tuple[bool, str]:
    """Check the structural contract of a candidate snapshot.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(raw, dict):
        return False, 'game state must be an object'
    pieces = raw.get('boardPieces')
    if not isinstance(pieces, list):
        return False, 'boardPieces must be a list'
    for piece in pieces:
        problem = _validate_piece(piece)
        if problem:
            return False, problem
    if 'isWhiteTurn' in raw and not isinstance(raw['isWhiteTurn'], bool):
        return False, 'isWhiteTurn must be a boolean'
    for key in ('whiteStorage', 'blackStorage'):
        if key in raw:
            storage = raw[key]
            if not isinstance(storage, list) or not all(_is_int(v) for v in storage):
                return False, f'{key} must be a list of integers'
    if raw.get('vibration') is not None and not isinstance(raw['vibration'], dict):
        return False, 'vibration must be an object'
    if raw.get('status') is not None and raw['status'] not in _STATUS_VALUES:
        return False, f"unknown status {raw['status']!r}"
    if raw.get('winner') is not None and raw['winner'] not in _COLOR_VALUES:
        return False, f"unknown winner {raw['winner']!r}"
    return True, ''


def is_terminal(raw: Dict[str, Any]) -> bool:
    """A candidate signals game over by carrying a winner or a finished status."""
    return raw.get('status') == RoomStatus.FINISHED.value or raw.get('winner') in _COLOR_VALUES


def detect_last_move(old_pieces: List[Piece], new_pieces: List[Piece]) -> Optional[Move]:
    """Best-effort diff of two boards.

    A move is reported for the first (value, color) group in which exactly one
    square was vacated and exactly one was newly occupied. Groups of identical
    pieces where more than one changed are ambiguous and skipped.
    """
    old_by_key: Dict[Tuple[int, Color], set] = {}
    for piece in old_pieces:
        old_by_key.setdefault(piece.key, set()).add(piece.position)
    new_by_key: Dict[Tuple[int, Color], set] = {}
    order = []
    for piece in new_pieces:
        if piece.key not in new_by_key:
            order.append(piece.key)
        new_by_key.setdefault(piece.key, set()).add(piece.position)

    for key in order:
        before = old_by_key.get(key, set())
        after = new_by_key[key]
        vacated = before - after
        occupied = after - before
        if len(vacated) == 1 and len(occupied) == 1:
            value, color = key
            return Move(piece_value=value, piece_color=color,
                        from_pos=vacated.pop(), to_pos=occupied.pop())
    return None


def merge_state(old: SharedGameState, incoming: Dict[str, Any]) -> SharedGameState:
    """Reducer: fold a validated candidate into the authoritative state.

    Only client-owned fields are taken from ``incoming``. ``lastMove`` is
    recomputed from the board diff and kept from ``old`` when nothing moved.
    """
    merged = old.to_dict()
    for key, owner in FIELD_OWNERSHIP.items():
        if owner == CLIENT and key in incoming:
            merged[key] = incoming[key]
    new_state = SharedGameState.from_dict(merged)
    move = detect_last_move(old.board_pieces, new_state.board_pieces)
    if move is not None:
        new_state.last_move = move
    return new_state


def initial_state(board_size: int = 8, rng=None) -> SharedGameState:
    """Fresh layout: each side's pieces 1..board_size shuffled along its home row."""
    rng = rng or random
    pieces = []
    for color, row in ((Color.BLACK, 0), (Color.WHITE, board_size - 1)):
        values = list(range(1, board_size + 1))
        rng.shuffle(values)
        for col, value in enumerate(values):
            pieces.append(Piece(value=value, color=color, position=(row, col)))
    return SharedGameState(board_pieces=pieces, is_white_turn=True, status=RoomStatus.WAITING)
