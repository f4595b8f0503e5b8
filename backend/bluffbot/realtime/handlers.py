from __future__ import annotations

import logging

from flask import request
from flask_socketio import SocketIO, emit

from ..game.controller import GameController
from ..game.errors import GameError, RoomNotFound, UserNotFound
from . import events
from .sessions import SessionRegistry

logger = logging.getLogger(__name__)


def _fail(err: GameError) -> dict:
    emit(events.ROOM_ERROR, err.to_dict())
    return {"ok": False, "error": err.code, "message": err.message}


def _not_in_room() -> dict:
    emit(events.ROOM_ERROR, {"error": "not_in_room"})
    return {"ok": False, "error": "not_in_room"}


def _field(data, key: str) -> str:
    payload = data if isinstance(data, dict) else {}
    value = payload.get(key, "")
    return value if isinstance(value, str) else str(value or "")


def register_socketio_handlers(
    socketio: SocketIO,
    controller: GameController,
    sessions: SessionRegistry,
    presence_timeout_sec: float = 0,
    presence_sweep_interval_sec: float = 5,
) -> None:
    broadcaster = controller.broadcaster

    def _release(sid: str) -> None:
        """Leave whatever room this socket currently plays in."""
        ctx = sessions.unbind(sid)
        if ctx is None:
            return
        try:
            controller.leave_room(ctx.room_code, ctx.user_id, sid=sid)
        except (RoomNotFound, UserNotFound):
            # Already kicked or evicted.
            broadcaster.unsubscribe(ctx.room_code, sid)

    def _notify_removed(code: str, user_id: str, reason: str) -> None:
        sid = sessions.find_sid(code, user_id)
        if sid is None:
            return
        sessions.unbind(sid)
        broadcaster.send_to(sid, events.ROOM_KICKED, {"roomCode": code, "userId": user_id, "reason": reason})
        broadcaster.unsubscribe(code, sid)

    @socketio.on("room:create")
    def room_create(data):
        name = _field(data, "name")
        _release(request.sid)
        try:
            owner, view = controller.create_room(name, sid=request.sid)
        except GameError as e:
            return _fail(e)
        sessions.bind(request.sid, view["code"], owner.id)
        return {"ok": True, "roomCode": view["code"], "userId": owner.id, "room": view}

    @socketio.on("room:join")
    def room_join(data):
        room_code = _field(data, "roomCode").strip().upper()
        name = _field(data, "name")
        if not room_code:
            return _fail(RoomNotFound())

        ctx = sessions.get(request.sid)
        if ctx is not None and ctx.room_code != room_code:
            _release(request.sid)
        elif ctx is not None:
            # Already playing here under this socket.
            try:
                view = controller.get_view(room_code)
            except GameError as e:
                return _fail(e)
            return {"ok": True, "roomCode": room_code, "userId": ctx.user_id, "room": view}

        try:
            player, view = controller.join_room(room_code, name, sid=request.sid)
        except GameError as e:
            return _fail(e)
        sessions.bind(request.sid, view["code"], player.id)
        return {"ok": True, "roomCode": view["code"], "userId": player.id, "room": view}

    @socketio.on("room:leave")
    def room_leave(data=None):
        if sessions.get(request.sid) is None:
            return _not_in_room()
        _release(request.sid)
        return {"ok": True}

    @socketio.on("room:kick")
    def room_kick(data):
        ctx = sessions.get(request.sid)
        if ctx is None:
            return _not_in_room()
        target_id = _field(data, "userId").strip()
        # Resolve the target's socket before the kick removes the player.
        target_sid = sessions.find_sid(ctx.room_code, target_id)
        try:
            kicked, view = controller.kick(ctx.room_code, ctx.user_id, target_id)
        except GameError as e:
            return _fail(e)
        if target_sid is not None:
            sessions.unbind(target_sid)
            broadcaster.send_to(
                target_sid,
                events.ROOM_KICKED,
                {"roomCode": ctx.room_code, "userId": kicked.id, "reason": "kicked"},
            )
            broadcaster.unsubscribe(ctx.room_code, target_sid)
        return {"ok": True, "room": view}

    @socketio.on("room:state")
    def room_state(data=None):
        ctx = sessions.get(request.sid)
        room_code = ctx.room_code if ctx else _field(data, "roomCode").strip().upper()
        if not room_code:
            return _not_in_room()
        try:
            view = controller.get_view(room_code)
        except GameError as e:
            return _fail(e)
        return {"ok": True, "room": view}

    def _act(action, *args):
        ctx = sessions.get(request.sid)
        if ctx is None:
            return _not_in_room()
        try:
            view = action(ctx.room_code, ctx.user_id, *args)
        except GameError as e:
            return _fail(e)
        return {"ok": True, "room": view}

    @socketio.on("game:start")
    def game_start(data=None):
        return _act(controller.start_game)

    @socketio.on("game:question")
    def game_question(data):
        return _act(controller.submit_question, _field(data, "text"))

    @socketio.on("game:answer")
    def game_answer(data):
        return _act(controller.submit_answer, _field(data, "text"))

    @socketio.on("game:vote")
    def game_vote(data):
        ctx = sessions.get(request.sid)
        if ctx is None:
            return _not_in_room()
        try:
            active, view = controller.cast_vote(ctx.room_code, ctx.user_id, _field(data, "authorId"))
        except GameError as e:
            return _fail(e)
        return {"ok": True, "voted": active, "room": view}

    @socketio.on("game:next_turn")
    def game_next_turn(data=None):
        return _act(controller.advance_turn)

    @socketio.on("presence:ping")
    def presence_ping(data=None):
        ctx = sessions.get(request.sid)
        if ctx is None:
            return _not_in_room()
        try:
            controller.touch(ctx.room_code, ctx.user_id)
        except GameError as e:
            return _fail(e)
        return {"ok": True}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        _release(request.sid)
        broadcaster.unsubscribe_all(request.sid)

    if presence_timeout_sec and presence_timeout_sec > 0:

        def _sweeper() -> None:
            while True:
                socketio.sleep(presence_sweep_interval_sec)
                try:
                    evicted = controller.evict_stale_players(presence_timeout_sec)
                except Exception:
                    logger.exception("Presence sweep failed")
                    continue
                for code, user_id in evicted:
                    _notify_removed(code, user_id, "timeout")

        socketio.start_background_task(_sweeper)
        logger.info("Presence sweeper running (timeout=%ss)", presence_timeout_sec)
