import logging
import time


logger = logging.getLogger(__name__)


class BackgroundScheduler:
    """Runs delayed and periodic jobs as Socket.IO background tasks.

    Jobs are plain callables; anything that touches a room must take the
    room's lock itself and re-check the state it expects before acting.
    """

    def __init__(self, socketio):
        self.socketio = socketio

    def call_later(self, delay: float, fn, *args) -> None:
        def _worker():
            if delay > 0:
                time.sleep(delay)
            try:
                fn(*args)
            except Exception:
                logger.exception(f"[timer-error] job={getattr(fn, '__name__', fn)} failed")

        self.socketio.start_background_task(_worker)

    def every(self, interval: float, fn) -> None:
        def _loop():
            while True:
                time.sleep(interval)
                try:
                    fn()
                except Exception:
                    logger.exception(f"[timer-error] periodic job={getattr(fn, '__name__', fn)} failed")

        self.socketio.start_background_task(_loop)


class InlineScheduler:
    """Test mode: delayed jobs fire immediately, periodic jobs never start."""

    def call_later(self, delay: float, fn, *args) -> None:
        fn(*args)

    def every(self, interval: float, fn) -> None:
        logger.debug(f"[timer-skip] periodic job={getattr(fn, '__name__', fn)} disabled inline")
