from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Literal


RoomStatus = Literal["lobby", "playing"]
Phase = Literal["asking", "answering", "voting"]

SYNTHETIC_AUTHOR_ID = "synthetic"
SYNTHETIC_AUTHOR_NAME = "AI"


@dataclass
class Player:
    id: str
    name: str
    points: int = 0
    last_seen_at: float = field(default_factory=time.time)


@dataclass
class Answer:
    author_id: str
    author_name: str
    text: str
    votes: list[str] = field(default_factory=list)
    is_synthetic: bool = False


@dataclass(frozen=True)
class Round:
    question: str
    asker_id: str
    asker_name: str
    answers: tuple[Answer, ...] = ()


@dataclass
class Room:
    code: str
    owner_id: str
    players: list[Player] = field(default_factory=list)
    status: RoomStatus = "lobby"
    phase: Phase = "asking"
    current_turn_index: int = 0
    current_question: str | None = None
    answers: list[Answer] = field(default_factory=list)
    round_history: list[Round] = field(default_factory=list)
    # Bumped on every submitted question; tags the pending synthetic answer.
    round_id: int = 0
    created_at: float = field(default_factory=time.time)
