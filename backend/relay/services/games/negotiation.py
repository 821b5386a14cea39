from typing import Optional, Set


class RestartNegotiation:
    """Collects restart consents for one room.

    Idle -> pending on a request or first accept; back to idle on reject,
    or once both seats have accepted (the caller then resets the room).
    """

    REQUIRED_CONSENTS = 2

    def __init__(self):
        self.pending_consents: Set[str] = set()
        self.requested_by: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.requested_by is not None or bool(self.pending_consents)

    def request(self, sid: str) -> None:
        # Only accepts populate pending_consents
        self.requested_by = sid

    def accept(self, sid: str) -> bool:
        """Record a consent; True when both seats have agreed."""
        self.pending_consents.add(sid)
        if len(self.pending_consents) >= self.REQUIRED_CONSENTS:
            self.reset()
            return True
        return False

    def reject(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.pending_consents.clear()
        self.requested_by = None
