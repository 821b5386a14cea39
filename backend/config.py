import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated; '*' allows any origin
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '5'))
    BOARD_SIZE = int(os.environ.get('BOARD_SIZE', '8'))
    # Grace periods before a finished room is torn down (seconds)
    FORFEIT_GRACE_SEC = float(os.environ.get('FORFEIT_GRACE_SEC', '3'))
    WIN_GRACE_SEC = float(os.environ.get('WIN_GRACE_SEC', '30'))
    # Stale room sweep (seconds)
    REAP_INTERVAL_SEC = float(os.environ.get('REAP_INTERVAL_SEC', '300'))
    ROOM_IDLE_TIMEOUT_SEC = float(os.environ.get('ROOM_IDLE_TIMEOUT_SEC', '1800'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Timers run inline under TESTING unless this is set
    ENABLE_SCHEDULER_IN_TESTS = os.environ.get('ENABLE_SCHEDULER_IN_TESTS', '').lower() in ('1', 'true', 'yes')
