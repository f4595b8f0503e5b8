from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass(frozen=True)
class SessionContext:
    room_code: str
    user_id: str


class SessionRegistry:
    """Maps a socket id to the (room code, user id) it plays as."""

    def __init__(self):
        self._lock = Lock()
        self._by_sid: dict[str, SessionContext] = {}

    def bind(self, sid: str, room_code: str, user_id: str) -> SessionContext:
        ctx = SessionContext(room_code=room_code, user_id=user_id)
        with self._lock:
            self._by_sid[sid] = ctx
        return ctx

    def unbind(self, sid: str) -> SessionContext | None:
        with self._lock:
            return self._by_sid.pop(sid, None)

    def get(self, sid: str) -> SessionContext | None:
        with self._lock:
            return self._by_sid.get(sid)

    def find_sid(self, room_code: str, user_id: str) -> str | None:
        with self._lock:
            for sid, ctx in self._by_sid.items():
                if ctx.room_code == room_code and ctx.user_id == user_id:
                    return sid
        return None
