from __future__ import annotations

import logging
import secrets
import string
from threading import RLock

from . import service
from .errors import CodeSpaceExhausted, RoomNotFound
from .models import Room

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class RoomStore:
    """In-memory registry of live rooms, keyed by room code.

    The registry lock only guards the mapping itself. Each room has its own
    re-entrant lock (``lock(code)``) that callers hold while mutating it.
    """

    def __init__(
        self,
        code_length: int = 6,
        max_attempts: int = 20,
        alphabet: str = CODE_ALPHABET,
    ):
        self.code_length = code_length
        self.max_attempts = max_attempts
        self.alphabet = alphabet
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._room_locks: dict[str, RLock] = {}

    def _new_code(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.code_length))

    def create(
        self,
        owner_name: str,
        max_name_length: int = service.DEFAULT_MAX_NAME_LENGTH,
    ) -> tuple[str, Room]:
        """Allocate a free code and register a new lobby owned by ``owner_name``."""
        # Validate before spending a code.
        owner_name = service.validate_name(owner_name, max_name_length)
        with self._lock:
            for _ in range(self.max_attempts):
                code = self._new_code()
                if code not in self._rooms:
                    break
            else:
                logger.error("No free room code after %d attempts", self.max_attempts)
                raise CodeSpaceExhausted()

            room = service.new_room(code, owner_name, max_name_length)
            self._rooms[code] = room
            self._room_locks[code] = RLock()
            return code, room

    def get(self, code: str) -> Room:
        with self._lock:
            room = self._rooms.get(normalize_code(code))
            if room is None:
                raise RoomNotFound()
            return room

    def lock(self, code: str) -> RLock:
        with self._lock:
            lock = self._room_locks.get(normalize_code(code))
            if lock is None:
                raise RoomNotFound()
            return lock

    def destroy_if_empty(self, code: str) -> bool:
        code = normalize_code(code)
        with self._lock:
            room = self._rooms.get(code)
            if room is None or room.players:
                return False
            del self._rooms[code]
            self._room_locks.pop(code, None)
            logger.info("Room %s deleted (empty)", code)
            return True

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms.values())

    def collect_garbage(self) -> int:
        removed = 0
        for room in self.list_rooms():
            if self.destroy_if_empty(room.code):
                removed += 1
        return removed

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return normalize_code(code) in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
