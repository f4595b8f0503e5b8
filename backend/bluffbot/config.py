import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "6"))
    ROOM_CODE_MAX_ATTEMPTS = int(os.environ.get("ROOM_CODE_MAX_ATTEMPTS", "20"))
    MAX_NAME_LENGTH = int(os.environ.get("MAX_NAME_LENGTH", "20"))

    # Game
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))

    # Synthetic answers
    SYNTHETIC_ANSWER_TIMEOUT_SEC = float(os.environ.get("SYNTHETIC_ANSWER_TIMEOUT_SEC", "10"))
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # Presence (0 disables eviction of silent players)
    PRESENCE_TIMEOUT_SEC = int(os.environ.get("PRESENCE_TIMEOUT_SEC", "0"))
    PRESENCE_SWEEP_INTERVAL_SEC = float(os.environ.get("PRESENCE_SWEEP_INTERVAL_SEC", "5"))
