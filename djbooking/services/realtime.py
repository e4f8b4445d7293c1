"""Live push to connected clients.

A client session joins its own user room and, for DJs, its DJ room. Request
handlers never touch room membership directly; they go through ``notifier``.
Publishing is safe from worker threads: delivery is handed to the session's
event loop.
"""
import asyncio
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

NEW_BOOKING = "new_booking"
BOOKING_CREATED = "booking_created"
BOOKING_UPDATED = "booking_updated"
BOOKING_VERIFIED = "booking_verified"
DJ_BLOCKED = "dj_blocked"
DJ_UNBLOCKED = "dj_unblocked"


def user_room(user_id: str) -> str:
    return f"user_{user_id}"


def dj_room(dj_id: str) -> str:
    return f"dj_{dj_id}"


def rooms_for(user_id: str, role: str) -> list[str]:
    rooms = [user_room(user_id)]
    if role == "dj":
        rooms.append(dj_room(user_id))
    return rooms


class LiveSession:
    """One connected client. Messages are queued on the loop that owns the socket."""

    def __init__(self, user_id: str, loop: asyncio.AbstractEventLoop | None = None):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self._loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue()

    def deliver(self, message: dict) -> None:
        self._loop.call_soon_threadsafe(self.queue.put_nowait, message)


class RoomRegistry:
    def __init__(self):
        self._rooms: dict[str, dict[str, LiveSession]] = {}
        self._lock = threading.Lock()

    def join(self, room: str, session: LiveSession) -> None:
        with self._lock:
            self._rooms.setdefault(room, {})[session.id] = session

    def leave(self, room: str, session_id: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if not members:
                return
            members.pop(session_id, None)
            if not members:
                del self._rooms[room]

    def leave_all(self, session_id: str) -> None:
        with self._lock:
            for room in [r for r, m in self._rooms.items() if session_id in m]:
                self._rooms[room].pop(session_id, None)
                if not self._rooms[room]:
                    del self._rooms[room]

    def members(self, room: str) -> list[str]:
        with self._lock:
            return list(self._rooms.get(room, {}))

    def publish(self, room: str, event: str, payload: dict) -> int:
        """Deliver to every session in `room`; returns how many accepted the message."""
        with self._lock:
            sessions = list(self._rooms.get(room, {}).values())
        message = {"event": event, "room": room, "data": payload}
        delivered = 0
        for s in sessions:
            try:
                s.deliver(message)
                delivered += 1
            except RuntimeError:
                # loop already closed: the socket is going away
                logger.warning("dropping %s for closed session %s in %s", event, s.id, room)
        return delivered


class Notifier:
    """Best-effort fan-out. Called only after the triggering write has committed."""

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    def emit(self, event: str, payload: dict, *, user_id: str | None = None, dj_id: str | None = None) -> None:
        rooms = []
        if user_id:
            rooms.append(user_room(user_id))
        if dj_id:
            rooms.append(dj_room(dj_id))
        for room in rooms:
            self._publish(room, event, payload)

    def booking_created(self, payload: dict) -> None:
        self._publish(user_room(payload["userId"]), BOOKING_CREATED, payload)
        self._publish(dj_room(payload["djId"]), NEW_BOOKING, payload)

    def _publish(self, room: str, event: str, payload: dict) -> None:
        try:
            self.registry.publish(room, event, payload)
        except Exception:
            logger.exception("failed to publish %s to %s", event, room)


registry = RoomRegistry()
notifier = Notifier(registry)
