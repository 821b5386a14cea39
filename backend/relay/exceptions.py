"""
Relay exceptions.

Raised by the room layer and converted at the socket boundary into a
rejection event sent to the offending connection only.
"""


class RelayError(Exception):
    """Base class for all rejections sent back to a single connection."""
    event = 'error'


class InvalidInput(RelayError):
    """Missing or empty player name / room code."""
    pass


class RoomNotFound(RelayError):
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found")


class RoomFull(RelayError):
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} is full")


class RoomFinished(RelayError):
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} has already finished")


class SessionNotInRoom(RelayError):
    def __init__(self, code, sid):
        self.code = code
        self.sid = sid
        super().__init__(f"You are not a player in room {code}")
