from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..game.errors import RoomNotFound

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<code>")
def get_room(code: str):
    controller = current_app.extensions["bluffbot"]
    try:
        view = controller.get_view(code)
    except RoomNotFound as e:
        return jsonify(e.to_dict()), 404
    return jsonify(view)
