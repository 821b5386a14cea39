from relay.services.games.lobby import Lobby
from relay.services.games.scheduler import BackgroundScheduler, InlineScheduler


class _SyncSocketIO:
    """Stands in for SocketIO.start_background_task by running the task right away."""

    def __init__(self):
        self.started = 0

    def start_background_task(self, target, *args, **kwargs):
        self.started += 1
        return target(*args, **kwargs)


def test_lobby_register_and_snapshot():
    lobby = Lobby()
    lobby.register('a', 'Alice')
    lobby.register('b', 'Bob')
    assert lobby.snapshot() == [
        {'socketId': 'a', 'username': 'Alice', 'inGame': False},
        {'socketId': 'b', 'username': 'Bob', 'inGame': False},
    ]
    assert lobby.unregister('a') is True
    assert lobby.unregister('a') is False
    assert [p['socketId'] for p in lobby.snapshot()] == ['b']


def test_lobby_challenge_rules():
    lobby = Lobby()
    lobby.register('a', 'Alice')
    lobby.register('b', 'Bob')
    assert lobby.can_challenge('a', 'b')
    assert not lobby.can_challenge('a', 'a')
    assert not lobby.can_challenge('a', 'missing')
    lobby.mark_in_game('b')
    assert not lobby.can_challenge('a', 'b')
    # registering again returns the player to the idle pool
    lobby.register('b', 'Bob')
    assert lobby.can_challenge('a', 'b')


def test_background_scheduler_runs_job_in_task():
    sio = _SyncSocketIO()
    calls = []
    BackgroundScheduler(sio).call_later(0, calls.append, 'fired')
    assert calls == ['fired']
    assert sio.started == 1


def test_background_scheduler_logs_failures(caplog):
    def _boom():
        raise RuntimeError('boom')

    BackgroundScheduler(_SyncSocketIO()).call_later(0, _boom)
    assert 'timer-error' in caplog.text


def test_inline_scheduler():
    calls = []
    scheduler = InlineScheduler()
    scheduler.call_later(30, calls.append, 1)
    scheduler.every(300, lambda: calls.append('never'))
    assert calls == [1]


def test_lobby_challenge_is_taken_once():
    lobby = Lobby()
    lobby.register('a', 'Alice')
    lobby.register('b', 'Bob')
    assert lobby.take_challenge('a', 'b') is False
    lobby.record_challenge('a', 'b')
    assert lobby.take_challenge('a', 'c') is False
    assert lobby.take_challenge('a', 'b') is True
    assert lobby.take_challenge('a', 'b') is False


def test_unregister_drops_outstanding_challenges():
    lobby = Lobby()
    lobby.register('a', 'Alice')
    lobby.register('b', 'Bob')
    lobby.record_challenge('a', 'b')
    lobby.unregister('b')
    assert lobby.take_challenge('a', 'b') is False
