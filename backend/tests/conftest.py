import os
import sys
import random
import pytest

# Ensure the backend root (containing the `relay` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from relay import create_app, socketio
from relay.services.games.registry import RoomRegistry
from relay.services.games.room import GameRoom, RoomSettings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    SOCKETIO_NAMESPACE = '/'
    ROOM_CODE_LENGTH = 5
    BOARD_SIZE = 8
    FORFEIT_GRACE_SEC = 3
    WIN_GRACE_SEC = 30
    REAP_INTERVAL_SEC = 300
    ROOM_IDLE_TIMEOUT_SEC = 1800
    LOG_LEVEL = 'DEBUG'


class FakeTransport:
    """Records every outbound event instead of delivering it."""

    def __init__(self):
        self.sent = []
        self.broadcasts = []
        self.disconnected = []

    def send(self, sid, event, payload):
        self.sent.append((sid, event, payload))

    def send_all(self, event, payload):
        self.broadcasts.append((event, payload))

    def disconnect(self, sid):
        self.disconnected.append(sid)

    def events(self, sid, event=None):
        return [p for s, e, p in self.sent if s == sid and (event is None or e == event)]

    def names(self, sid):
        return [e for s, e, _ in self.sent if s == sid]

    def clear(self):
        self.sent.clear()
        self.broadcasts.clear()
        self.disconnected.clear()


class ManualScheduler:
    """Holds delayed jobs until the test fires them."""

    def __init__(self):
        self.jobs = []
        self.periodic = []

    def call_later(self, delay, fn, *args):
        self.jobs.append((delay, fn, args))

    def every(self, interval, fn):
        self.periodic.append((interval, fn))

    def run_pending(self):
        jobs, self.jobs = self.jobs, []
        for _, fn, args in jobs:
            fn(*args)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def settings():
    return RoomSettings(board_size=8, forfeit_grace_sec=3, win_grace_sec=30, idle_timeout_sec=1800)


@pytest.fixture()
def closed_codes():
    return []


@pytest.fixture()
def room(transport, scheduler, settings, clock, closed_codes):
    return GameRoom('ABCDE', transport, scheduler, settings=settings,
                    on_close=closed_codes.append, clock=clock, rng=random.Random(7))


@pytest.fixture()
def playing_room(room, transport):
    room.add_player('sid-w', 'Alice')
    room.add_player('sid-b', 'Bob')
    transport.clear()
    return room


@pytest.fixture()
def registry(transport, scheduler, settings, clock):
    return RoomRegistry(transport, scheduler, settings=settings, clock=clock, rng=random.Random(11))


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/'
        )
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/'):
                test_client.disconnect(namespace='/')
        except Exception:
            pass
