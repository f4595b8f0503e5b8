import logging

from bluffbot.config import Config
from bluffbot.server import create_app

logging.basicConfig(level=Config.LOG_LEVEL.upper())

app, socketio = create_app()
