import logging


logger = logging.getLogger(__name__)


class SocketIOTransport:
    """Delivers room events to individual Socket.IO connections.

    Sends are fire-and-forget: a failed delivery is logged and never
    interrupts delivery to the other seat.
    """

    def __init__(self, socketio, namespace='/'):
        self.socketio = socketio
        self.namespace = namespace

    def send(self, sid, event, payload) -> None:
        try:
            self.socketio.emit(event, payload, to=sid, namespace=self.namespace)
        except Exception:
            logger.exception(f"[send-failed] event={event} sid={sid}")

    def send_all(self, event, payload) -> None:
        try:
            self.socketio.emit(event, payload, namespace=self.namespace)
        except Exception:
            logger.exception(f"[send-failed] event={event} broadcast")

    def disconnect(self, sid) -> None:
        try:
            self.socketio.server.disconnect(sid, namespace=self.namespace)
        except Exception:
            logger.exception(f"[disconnect-failed] sid={sid}")
