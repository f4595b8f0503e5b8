from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable

from ..game.store import normalize_code

logger = logging.getLogger(__name__)

Send = Callable[[str, Any, str], None]


class Broadcaster:
    """Fan-out of room events to the sockets subscribed to each room code.

    ``send(event, payload, sid)`` delivers to a single subscriber. Delivery is
    best-effort: a subscriber whose send fails is dropped, the room and the
    remaining subscribers are not affected.
    """

    def __init__(self, send: Send):
        self._send = send
        self._lock = Lock()
        self._subscribers: dict[str, set[str]] = {}

    def subscribe(self, code: str, sid: str) -> None:
        with self._lock:
            self._subscribers.setdefault(normalize_code(code), set()).add(sid)

    def unsubscribe(self, code: str, sid: str) -> None:
        code = normalize_code(code)
        with self._lock:
            subs = self._subscribers.get(code)
            if not subs:
                return
            subs.discard(sid)
            if not subs:
                del self._subscribers[code]

    def unsubscribe_all(self, sid: str) -> None:
        with self._lock:
            for code in list(self._subscribers.keys()):
                subs = self._subscribers[code]
                subs.discard(sid)
                if not subs:
                    del self._subscribers[code]

    def drop_room(self, code: str) -> None:
        with self._lock:
            self._subscribers.pop(normalize_code(code), None)

    def subscribers(self, code: str) -> list[str]:
        with self._lock:
            return list(self._subscribers.get(normalize_code(code), ()))

    def send_to(self, sid: str, event: str, payload: Any) -> bool:
        try:
            self._send(event, payload, sid)
        except Exception:
            logger.warning("Dropping subscriber %s after failed %s delivery", sid, event, exc_info=True)
            self.unsubscribe_all(sid)
            return False
        return True

    def publish(self, code: str, event: str, payload: Any) -> int:
        """Deliver ``event`` to every current subscriber of ``code``."""
        delivered = 0
        # Iterate a copy: subscribers may come and go mid-broadcast.
        for sid in self.subscribers(code):
            try:
                self._send(event, payload, sid)
            except Exception:
                logger.warning("Dropping subscriber %s of room %s after failed %s delivery", sid, code, event, exc_info=True)
                self.unsubscribe(code, sid)
                continue
            delivered += 1
        return delivered
