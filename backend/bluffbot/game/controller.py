from __future__ import annotations

import copy
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from ..realtime import events
from . import service
from .answers import DEFAULT_TIMEOUT_SEC, AnswerProvider, fallback_answer, request_synthetic_answer
from .errors import GameError, InternalError, RoomNotFound, UserNotFound
from .models import Player, Room
from .store import RoomStore
from .views import player_view, room_view

logger = logging.getLogger(__name__)

Spawn = Callable[..., Any]
Event = tuple[str, dict]


def _spawn_thread(fn, *args) -> threading.Thread:
    t = threading.Thread(target=fn, args=args, daemon=True)
    t.start()
    return t


def _snapshot(room: Room) -> Room:
    # Archived rounds are never mutated; share them instead of copying.
    memo = {id(r): r for r in room.round_history}
    return copy.deepcopy(room, memo)


def _restore(room: Room, snapshot: Room) -> None:
    vars(room).clear()
    vars(room).update(vars(snapshot))


class GameController:
    """Serialized entry point for every state transition of every room.

    A transition holds the room's lock while it validates and applies the
    change and while it renders the resulting views. Fan-out to subscribers
    happens after the lock is released.
    """

    def __init__(
        self,
        store: RoomStore,
        broadcaster,
        answer_provider: AnswerProvider,
        spawn: Spawn | None = None,
        answer_timeout: float = DEFAULT_TIMEOUT_SEC,
        min_players: int = service.DEFAULT_MIN_PLAYERS,
        max_name_length: int = service.DEFAULT_MAX_NAME_LENGTH,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.answer_provider = answer_provider
        self.spawn = spawn or _spawn_thread
        self.answer_timeout = answer_timeout
        self.min_players = min_players
        self.max_name_length = max_name_length

    @contextmanager
    def _transition(self, code: str, snapshot: bool = True) -> Iterator[Room]:
        room = self.store.get(code)
        with self.store.lock(room.code):
            # The room may have been destroyed while we waited for the lock.
            if not room.players or room.code not in self.store:
                raise RoomNotFound()
            if not snapshot:
                yield room
                return
            before = _snapshot(room)
            try:
                yield room
            except GameError:
                _restore(room, before)
                raise
            except Exception as exc:
                _restore(room, before)
                logger.exception("Unexpected fault in room %s, state rolled back", room.code)
                raise InternalError() from exc

    def _publish(self, code: str, pending: list[Event]) -> None:
        for name, payload in pending:
            self.broadcaster.publish(code, name, payload)

    # ---- Lobby ----

    def create_room(self, owner_name: str, sid: str | None = None) -> tuple[Player, dict]:
        code, room = self.store.create(owner_name, self.max_name_length)
        with self.store.lock(code):
            owner = room.players[0]
            view = room_view(room)
        if sid:
            self.broadcaster.subscribe(code, sid)
        logger.info("Room %s created by %s", code, owner.name)
        return owner, view

    def join_room(self, code: str, name: str, sid: str | None = None) -> tuple[Player, dict]:
        with self._transition(code) as room:
            player = service.add_player(room, name, self.max_name_length)
            view = room_view(room)
            code = room.code
        if sid:
            self.broadcaster.subscribe(code, sid)
        logger.info("User %s joined room: %s", player.name, code)
        self._publish(code, [(events.PLAYER_JOINED, {"player": player_view(player), "room": view})])
        return player, view

    def _depart(self, code: str, remove: Callable[[Room], Player], kicked: bool) -> tuple[Player, dict | None]:
        with self._transition(code) as room:
            was_answering = room.phase == "answering"
            player = remove(room)
            code = room.code
            pending: list[Event] = []
            if room.players:
                view = room_view(room)
                pending.append((events.PLAYER_LEFT, {"player": player_view(player), "kicked": kicked, "room": view}))
                if was_answering and room.phase == "voting":
                    pending.append(self._voting_event(room, view))
            else:
                view = None
                self.store.destroy_if_empty(code)

        if view is None:
            self.broadcaster.drop_room(code)
        else:
            self._publish(code, pending)
        return player, view

    def leave_room(self, code: str, user_id: str, sid: str | None = None) -> dict | None:
        """Remove ``user_id``; returns the new view, or None if the room is gone."""
        player, view = self._depart(code, lambda room: service.remove_player(room, user_id), kicked=False)
        if sid:
            self.broadcaster.unsubscribe(code, sid)
        logger.info("User %s left room: %s", player.name, code)
        return view

    def kick(self, code: str, requester_id: str, target_id: str) -> tuple[Player, dict | None]:
        player, view = self._depart(
            code, lambda room: service.kick_player(room, requester_id, target_id), kicked=True
        )
        logger.info("User %s kicked from room: %s", player.name, code)
        return player, view

    def start_game(self, code: str, requester_id: str) -> dict:
        with self._transition(code) as room:
            service.start_game(room, requester_id, self.min_players)
            service.touch_player(room, requester_id)
            view = room_view(room)
            code = room.code
        logger.info("Game started in room: %s", code)
        self._publish(code, [(events.GAME_STARTED, {"room": view})])
        return view

    # ---- Rounds ----

    def submit_question(self, code: str, requester_id: str, text: str) -> dict:
        with self._transition(code) as room:
            round_id = service.submit_question(room, requester_id, text)
            service.touch_player(room, requester_id)
            question = room.current_question
            asker = service.current_asker(room)
            view = room_view(room)
            code = room.code
        logger.info("Question submitted in room %s (round %d)", code, round_id)
        self._publish(
            code,
            [(events.QUESTION_RECEIVED, {"question": question, "askedBy": asker.name, "room": view})],
        )
        self.spawn(self._fill_synthetic_answer, code, round_id, question)
        return view

    def _fill_synthetic_answer(self, code: str, round_id: int, question: str) -> None:
        # Runs outside the room lock; may take up to answer_timeout.
        text = request_synthetic_answer(question, self.answer_provider, self.answer_timeout)
        try:
            self.apply_synthetic_answer(code, round_id, text)
        except RoomNotFound:
            logger.info("Room %s closed before its synthetic answer arrived", code)
        except InternalError:
            # The round must not stall waiting for an answer that never lands.
            logger.warning("Retrying synthetic answer for room %s with a fallback", code)
            try:
                self.apply_synthetic_answer(code, round_id, fallback_answer())
            except GameError:
                logger.exception("Synthetic answer for room %s could not be applied", code)
        except GameError as e:
            logger.warning("Synthetic answer for room %s not applied: %s", code, e.message)

    def apply_synthetic_answer(self, code: str, round_id: int, text: str) -> bool:
        with self._transition(code) as room:
            merged = service.add_synthetic_answer(room, round_id, text)
            if not merged:
                logger.info("Room %s moved on, synthetic answer for round %d discarded", code, round_id)
                return False
            pending = self._answer_events(room)
            code = room.code
        self._publish(code, pending)
        return True

    def _answer_events(self, room: Room) -> list[Event]:
        view = room_view(room)
        pending: list[Event] = [
            (
                events.ANSWER_SUBMITTED,
                {
                    "submittedCount": len(room.answers),
                    "totalExpected": len(room.players),
                    "room": view,
                },
            )
        ]
        if room.phase == "voting":
            pending.append(self._voting_event(room, view))
        return pending

    def _voting_event(self, room: Room, view: dict) -> Event:
        asker = service.current_asker(room)
        logger.info("All answers received in room %s, entering voting phase", room.code)
        return (
            events.VOTING_PHASE,
            {
                "question": room.current_question,
                "askedBy": asker.name if asker else None,
                "answers": view["answers"],
                "room": view,
            },
        )

    def submit_answer(self, code: str, requester_id: str, text: str) -> dict:
        with self._transition(code) as room:
            service.submit_answer(room, requester_id, text)
            service.touch_player(room, requester_id)
            pending = self._answer_events(room)
            view = pending[0][1]["room"]
            code = room.code
        self._publish(code, pending)
        return view

    def cast_vote(self, code: str, requester_id: str, target_author_id: str) -> tuple[bool, dict]:
        with self._transition(code) as room:
            active = service.cast_vote(room, requester_id, target_author_id)
            service.touch_player(room, requester_id)
            view = room_view(room)
            payload = {
                "tally": service.vote_tally(room),
                "votedCount": service.voted_count(room),
                "totalExpected": len(room.players),
                "room": view,
            }
            code = room.code
        self._publish(code, [(events.VOTE_UPDATED, payload)])
        return active, view

    def advance_turn(self, code: str, requester_id: str) -> dict:
        with self._transition(code) as room:
            next_asker = service.advance_turn(room, requester_id)
            service.touch_player(room, requester_id)
            view = room_view(room)
            code = room.code
        logger.info("Next turn started in room %s, now: %s", code, next_asker.name)
        self._publish(
            code,
            [(events.NEXT_TURN_STARTED, {"nextAsker": player_view(next_asker), "room": view})],
        )
        return view

    # ---- Reads / presence ----

    def get_view(self, code: str) -> dict:
        with self._transition(code, snapshot=False) as room:
            return room_view(room)

    def touch(self, code: str, user_id: str, now: float | None = None) -> None:
        with self._transition(code, snapshot=False) as room:
            if service.find_player(room, user_id) is None:
                raise UserNotFound()
            service.touch_player(room, user_id, now)

    def evict_stale_players(self, timeout: float, now: float | None = None) -> list[tuple[str, str]]:
        """Remove players not seen for ``timeout`` seconds; returns (code, user id) pairs."""
        now = now if now is not None else time.time()
        evicted: list[tuple[str, str]] = []
        for room in self.store.list_rooms():
            try:
                with self._transition(room.code, snapshot=False) as r:
                    stale = [p.id for p in r.players if now - p.last_seen_at > timeout]
            except RoomNotFound:
                continue
            for user_id in stale:
                try:
                    self.leave_room(room.code, user_id)
                except (RoomNotFound, UserNotFound):
                    continue
                evicted.append((room.code, user_id))
        if evicted:
            logger.info("Evicted %d silent player(s)", len(evicted))
        self.store.collect_garbage()
        return evicted
