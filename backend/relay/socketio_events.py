from flask_socketio import emit
from flask import current_app, request
from functools import wraps

from relay import socketio
from relay.exceptions import InvalidInput, RelayError


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _registry():
    return current_app.extensions['relay']['registry']


def _lobby():
    return current_app.extensions['relay']['lobby']


def _transport():
    return current_app.extensions['relay']['transport']


def _field(data, key):
    return data.get(key) if isinstance(data, dict) else None


def _boundary(error_event=None):
    """Turn any failure inside a handler into a rejection for the sender only."""
    def decorator(handler):
        @wraps(handler)
        def wrapper(data=None):
            try:
                return handler(data)
            except RelayError as exc:
                current_app.logger.info(f"[reject] event={handler.__name__} sid={_get_sid()} reason={exc}")
                emit(error_event or exc.event, {'message': str(exc)})
            except Exception:
                current_app.logger.exception(f"[handler-error] event={handler.__name__} sid={_get_sid()}")
                emit('error', {'message': 'Internal server error'})
        return wrapper
    return decorator


def _broadcast_lobby():
    _transport().send_all('active-players', _lobby().snapshot())


def handle_connect(auth=None):
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(reason=None):
    sid = _get_sid()
    if _lobby().unregister(sid):
        _broadcast_lobby()
    room = _registry().release_sid(sid)
    current_app.logger.info(f"[disconnect] sid={sid} room={room.code if room else None}")


# ---- rooms ----

@_boundary()
def handle_create_game(data):
    name = data if isinstance(data, str) else _field(data, 'playerName')
    room, color = _registry().create_and_admit(_get_sid(), name)
    emit('game-created', {'gameId': room.code, 'color': color.value, 'playerName': str(name).strip()})


@_boundary(error_event='join-error')
def handle_join_game(data):
    game_id = _field(data, 'gameId')
    name = _field(data, 'playerName')
    if not str(game_id or '').strip() or not str(name or '').strip():
        raise InvalidInput('gameId and playerName are required')
    room, color = _registry().admit(game_id, _get_sid(), name)
    emit('game-joined', {'gameId': room.code, 'color': color.value, 'playerName': str(name).strip()})
    room.notify_all('player-joined', {'playerName': str(name).strip(), 'color': color.value})


@_boundary()
def handle_game_update(data):
    room = _registry().require(_field(data, 'gameId'))
    # Shape and turn violations are dropped without a reply
    room.handle_game_update(_get_sid(), _field(data, 'gameState'))


@_boundary()
def handle_player_forfeit(data):
    _registry().require(_field(data, 'gameId')).forfeit(_get_sid())


@_boundary()
def handle_game_won(data):
    _registry().require(_field(data, 'gameId')).declare_winner(_get_sid(), _field(data, 'winnerColor'))


@_boundary()
def handle_player_disconnected(data):
    _registry().leave(_field(data, 'gameId'), _get_sid())


# ---- restart negotiation ----

@_boundary()
def handle_request_restart(data):
    _registry().require(_field(data, 'gameId')).request_restart(_get_sid())


@_boundary()
def handle_restart_accepted(data):
    _registry().require(_field(data, 'gameId')).accept_restart(_get_sid())


@_boundary()
def handle_restart_rejected(data):
    _registry().require(_field(data, 'gameId')).reject_restart(_get_sid())


@_boundary()
def handle_restart_cancelled(data):
    _registry().require(_field(data, 'gameId')).cancel_restart(_get_sid())


# ---- lobby ----

@_boundary()
def handle_register_player(data):
    name = data if isinstance(data, str) else _field(data, 'username')
    name = str(name or '').strip()
    if not name:
        raise InvalidInput('username is required')
    _lobby().register(_get_sid(), name)
    _broadcast_lobby()


@_boundary()
def handle_challenge_player(data):
    sid = _get_sid()
    target_id = _field(data, 'targetId')
    lobby = _lobby()
    if not lobby.can_challenge(sid, target_id):
        raise InvalidInput('That player cannot be challenged right now')
    lobby.record_challenge(sid, target_id)
    _transport().send(target_id, 'challenge-received', {
        'challengerId': sid,
        'challengerName': lobby.get(sid).username,
    })


def _require_idle(registry, *sids):
    for sid in sids:
        room = registry.room_for_sid(sid)
        if room is not None and not room.finished:
            raise InvalidInput('Player is already in a game')


@_boundary()
def handle_challenge_response(data):
    sid = _get_sid()
    challenger_id = _field(data, 'challengerId')
    lobby = _lobby()
    transport = _transport()
    # Only the target of an outstanding challenge may answer it
    if not lobby.take_challenge(challenger_id, sid):
        raise InvalidInput('No pending challenge from that player')
    if not _field(data, 'accepted'):
        transport.send(challenger_id, 'challenge-declined', {'playerId': sid})
        return
    challenger = lobby.get(challenger_id)
    responder = lobby.get(sid)
    if not (challenger and responder) or challenger.in_game or responder.in_game:
        raise InvalidInput('Both players must be idle in the lobby')
    if challenger.username == responder.username:
        raise InvalidInput('Players must have different names')

    registry = _registry()
    _require_idle(registry, challenger_id, sid)
    room = registry.create_room()
    _, challenger_color = registry.admit(room.code, challenger_id, challenger.username)
    _, responder_color = registry.admit(room.code, sid, responder.username)
    lobby.mark_in_game(challenger_id, sid)

    transport.send(challenger_id, 'game-started', {
        'gameId': room.code, 'opponent': responder.username, 'color': challenger_color.value,
    })
    emit('game-started', {'gameId': room.code, 'opponent': challenger.username, 'color': responder_color.value})
    _broadcast_lobby()


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register every relay event on ``namespace``."""
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'create-game': handle_create_game,
        'join-game': handle_join_game,
        'game-update': handle_game_update,
        'player-forfeit': handle_player_forfeit,
        'game-won': handle_game_won,
        'player-disconnected': handle_player_disconnected,
        'request-restart': handle_request_restart,
        'restart-accepted': handle_restart_accepted,
        'restart-rejected': handle_restart_rejected,
        'restart-cancelled': handle_restart_cancelled,
        'register-player': handle_register_player,
        'challenge-player': handle_challenge_player,
        'challenge-response': handle_challenge_response,
    }
    for event, handler in handlers.items():
        socketio.on_event(event, handler, namespace=namespace)
