from __future__ import annotations

import os
import sys

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.answers import build_answer_provider
from .game.controller import GameController
from .game.store import RoomStore
from .realtime.broadcast import Broadcaster
from .realtime.handlers import register_socketio_handlers
from .realtime.sessions import SessionRegistry
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp

EXTENSION_KEY = "bluffbot"


def _run_inline(fn, *args):
    fn(*args)


def create_app(config_class=Config) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    env_async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()
    if app.config.get("TESTING"):
        async_mode = "threading"
    elif env_async_mode:
        async_mode = env_async_mode
    else:
        # Default choice:
        # - Windows: threading (eventlet has known compatibility issues on newer Python)
        # - Python >= 3.13: threading (safer default)
        # - Otherwise: eventlet
        if sys.platform.startswith("win") or sys.version_info >= (3, 13):
            async_mode = "threading"
        else:
            async_mode = "eventlet"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    store = RoomStore(
        code_length=app.config.get("ROOM_CODE_LENGTH", 6),
        max_attempts=app.config.get("ROOM_CODE_MAX_ATTEMPTS", 20),
    )
    broadcaster = Broadcaster(send=lambda event, payload, sid: socketio.emit(event, payload, to=sid))
    # In tests the synthetic answer is merged before the action returns.
    spawn = _run_inline if app.config.get("TESTING") else socketio.start_background_task
    controller = GameController(
        store,
        broadcaster,
        build_answer_provider(config_class),
        spawn=spawn,
        answer_timeout=app.config.get("SYNTHETIC_ANSWER_TIMEOUT_SEC", 10),
        min_players=app.config.get("MIN_PLAYERS", 2),
        max_name_length=app.config.get("MAX_NAME_LENGTH", 20),
    )
    app.extensions[EXTENSION_KEY] = controller

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")

    register_socketio_handlers(
        socketio,
        controller,
        SessionRegistry(),
        presence_timeout_sec=app.config.get("PRESENCE_TIMEOUT_SEC", 0),
        presence_sweep_interval_sec=app.config.get("PRESENCE_SWEEP_INTERVAL_SEC", 5),
    )

    return app, socketio
