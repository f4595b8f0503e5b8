import os
import sys

import pytest

# Ensure the backend root (containing the `bluffbot` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bluffbot.config import Config
from bluffbot.game.answers import StaticAnswerProvider
from bluffbot.game.controller import GameController
from bluffbot.game.store import RoomStore
from bluffbot.realtime.broadcast import Broadcaster
from bluffbot.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    TRUST_PROXY_HEADERS = False
    OPENAI_API_KEY = ''
    SYNTHETIC_ANSWER_TIMEOUT_SEC = 1
    PRESENCE_TIMEOUT_SEC = 0


class Recorder:
    """Stands in for socketio.emit; remembers every delivery."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    def __call__(self, event, payload, sid):
        if sid in self.failing:
            raise ConnectionError(f"socket {sid} is gone")
        self.sent.append((event, payload, sid))

    def events_for(self, sid):
        return [(e, p) for e, p, s in self.sent if s == sid]

    def names_for(self, sid):
        return [e for e, _, s in self.sent if s == sid]

    def clear(self):
        self.sent.clear()


def run_inline(fn, *args):
    fn(*args)


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def store():
    return RoomStore()


@pytest.fixture()
def provider():
    return StaticAnswerProvider('bot says hi')


@pytest.fixture()
def controller(store, recorder, provider):
    return GameController(store, Broadcaster(recorder), provider, spawn=run_inline, answer_timeout=1)


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def flask_app(app_and_socketio):
    application, _ = app_and_socketio
    application.extensions['bluffbot'].answer_provider = StaticAnswerProvider('bot says hi')
    return application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app, app_and_socketio):
    _, socketio = app_and_socketio
    clients = []

    def _make():
        c = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(c)
        return c

    yield _make
    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass
