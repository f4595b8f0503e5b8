from __future__ import annotations

import copy
import logging
import random
import time
import uuid

from .errors import (
    AnswerNotFound,
    DuplicateAnswer,
    EmptyAnswer,
    EmptyQuestion,
    GameAlreadyStarted,
    InvalidName,
    NameTaken,
    NotAnsweringPhase,
    NotAsker,
    NotEnoughPlayers,
    NotOwner,
    NotPlaying,
    NotVotingPhase,
    NotYourTurn,
    RoomInProgress,
    SelfAnswer,
    SelfVote,
    UserNotFound,
)
from .models import (
    SYNTHETIC_AUTHOR_ID,
    SYNTHETIC_AUTHOR_NAME,
    Answer,
    Player,
    Room,
    Round,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_NAME_LENGTH = 20
DEFAULT_MIN_PLAYERS = 2

HUMAN_ANSWER_POINTS = 1
SYNTHETIC_SPOT_POINTS = 2


def new_player_id() -> str:
    return uuid.uuid4().hex


def validate_name(name: str, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> str:
    n = (name or "").strip() if isinstance(name, str) else ""
    if not n:
        raise InvalidName()
    if len(n) > max_length:
        raise InvalidName(f"Name must be at most {max_length} characters")
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            raise InvalidName()
    return n


def _clean_text(text) -> str:
    return text.strip() if isinstance(text, str) else ""


# ---- Lookups ----

def find_player(room: Room, user_id: str) -> Player | None:
    for p in room.players:
        if p.id == user_id:
            return p
    return None


def player_index(room: Room, user_id: str) -> int:
    for idx, p in enumerate(room.players):
        if p.id == user_id:
            return idx
    return -1


def current_asker(room: Room) -> Player | None:
    if not room.players:
        return None
    return room.players[room.current_turn_index]


def find_answer(room: Room, author_id: str) -> Answer | None:
    for a in room.answers:
        if a.author_id == author_id:
            return a
    return None


def vote_tally(room: Room) -> dict[str, int]:
    return {a.author_id: len(a.votes) for a in room.answers}


def voted_count(room: Room) -> int:
    """Distinct voters who currently hold an active vote."""
    voters: set[str] = set()
    for a in room.answers:
        voters.update(a.votes)
    return len(voters)


def touch_player(room: Room, user_id: str, now: float | None = None) -> None:
    p = find_player(room, user_id)
    if p is not None:
        p.last_seen_at = now if now is not None else time.time()


def _require_player(room: Room, user_id: str) -> Player:
    p = find_player(room, user_id)
    if p is None:
        raise UserNotFound()
    return p


# ---- Lobby ----

def new_room(code: str, owner_name: str, max_name_length: int = DEFAULT_MAX_NAME_LENGTH) -> Room:
    name = validate_name(owner_name, max_name_length)
    owner = Player(id=new_player_id(), name=name)
    return Room(code=code, owner_id=owner.id, players=[owner])


def add_player(room: Room, name: str, max_name_length: int = DEFAULT_MAX_NAME_LENGTH) -> Player:
    n = validate_name(name, max_name_length)
    if room.status != "lobby":
        raise RoomInProgress()
    if any(p.name == n for p in room.players):
        raise NameTaken()

    player = Player(id=new_player_id(), name=n)
    room.players.append(player)
    return player


def remove_player(room: Room, user_id: str) -> Player:
    """Remove a player and keep the turn rotation consistent.

    A departure before the asker shifts the index down so the same player
    keeps the turn. If the asker leaves, whoever now sits at that index takes
    the turn and any round in progress is abandoned without scoring.
    """
    idx = player_index(room, user_id)
    if idx < 0:
        raise UserNotFound()

    was_asker = idx == room.current_turn_index
    player = room.players.pop(idx)

    if not room.players:
        room.current_turn_index = 0
        return player

    if idx < room.current_turn_index:
        room.current_turn_index -= 1
    elif was_asker:
        room.current_turn_index %= len(room.players)

    if room.owner_id == player.id:
        # Assign a new owner
        room.owner_id = room.players[0].id

    if room.status == "playing":
        if was_asker and room.phase != "asking":
            logger.info("Room %s: asker %s left, round abandoned", room.code, player.name)
            _reset_round(room)
        elif room.phase == "answering":
            room.answers = [a for a in room.answers if a.author_id != player.id]
            _maybe_open_voting(room)
        elif room.phase == "voting":
            for a in room.answers:
                if player.id in a.votes:
                    a.votes.remove(player.id)

    return player


def kick_player(room: Room, requester_id: str, target_id: str) -> Player:
    if requester_id != room.owner_id:
        raise NotOwner()
    if find_player(room, target_id) is None:
        raise UserNotFound()
    return remove_player(room, target_id)


def start_game(room: Room, requester_id: str, min_players: int = DEFAULT_MIN_PLAYERS) -> None:
    if requester_id != room.owner_id:
        raise NotOwner()
    if room.status != "lobby":
        raise GameAlreadyStarted()
    if len(room.players) < min_players:
        raise NotEnoughPlayers(f"Need at least {min_players} players to start")

    room.status = "playing"
    room.current_turn_index = 0
    _reset_round(room)


# ---- Rounds ----

def _reset_round(room: Room) -> None:
    room.phase = "asking"
    room.current_question = None
    room.answers = []


def submit_question(room: Room, requester_id: str, text: str) -> int:
    """Open the answering phase. Returns the id tagging this round."""
    if room.status != "playing":
        raise NotPlaying()
    asker = current_asker(room)
    if room.phase != "asking" or asker is None or asker.id != requester_id:
        raise NotYourTurn()
    question = _clean_text(text)
    if not question:
        raise EmptyQuestion()

    room.current_question = question
    room.answers = []
    room.phase = "answering"
    room.round_id += 1
    return room.round_id


def _maybe_open_voting(room: Room) -> bool:
    # Asker contributes nothing; the synthetic answer fills their slot.
    if room.phase != "answering" or len(room.answers) < len(room.players):
        return False
    random.shuffle(room.answers)
    room.phase = "voting"
    return True


def submit_answer(room: Room, requester_id: str, text: str) -> bool:
    """Record a human answer. Returns True if voting opened as a result."""
    if room.status != "playing" or room.phase != "answering":
        raise NotAnsweringPhase()
    player = _require_player(room, requester_id)
    asker = current_asker(room)
    if asker is not None and asker.id == requester_id:
        raise SelfAnswer()
    if find_answer(room, requester_id) is not None:
        raise DuplicateAnswer()
    answer_text = _clean_text(text)
    if not answer_text:
        raise EmptyAnswer()

    room.answers.append(Answer(author_id=player.id, author_name=player.name, text=answer_text))
    return _maybe_open_voting(room)


def add_synthetic_answer(room: Room, round_id: int, text: str) -> bool:
    """Merge the generated answer into the round that requested it.

    Returns False (and changes nothing) when that round is gone or already
    has its synthetic answer.
    """
    if room.status != "playing" or room.phase != "answering" or room.round_id != round_id:
        return False
    if find_answer(room, SYNTHETIC_AUTHOR_ID) is not None:
        return False
    answer_text = _clean_text(text)
    if not answer_text:
        raise EmptyAnswer()

    room.answers.append(
        Answer(
            author_id=SYNTHETIC_AUTHOR_ID,
            author_name=SYNTHETIC_AUTHOR_NAME,
            text=answer_text,
            is_synthetic=True,
        )
    )
    _maybe_open_voting(room)
    return True


def cast_vote(room: Room, requester_id: str, target_author_id: str) -> bool:
    """Single-choice ballot. Returns True if the requester now holds a vote."""
    if room.status != "playing" or room.phase != "voting":
        raise NotVotingPhase()
    _require_player(room, requester_id)
    if target_author_id == requester_id:
        raise SelfVote()
    target = find_answer(room, target_author_id)
    if target is None:
        raise AnswerNotFound()

    toggled_off = requester_id in target.votes
    for a in room.answers:
        if requester_id in a.votes:
            a.votes.remove(requester_id)
    if toggled_off:
        return False
    target.votes.append(requester_id)
    return True


def score_answers(room: Room) -> dict[str, int]:
    """Points earned this round, keyed by player id (departed players skipped)."""
    awarded: dict[str, int] = {}
    present = {p.id for p in room.players}
    for a in room.answers:
        if not a.votes:
            continue
        if a.is_synthetic:
            for voter_id in a.votes:
                if voter_id in present:
                    awarded[voter_id] = awarded.get(voter_id, 0) + SYNTHETIC_SPOT_POINTS
        elif a.author_id in present:
            awarded[a.author_id] = awarded.get(a.author_id, 0) + HUMAN_ANSWER_POINTS * len(a.votes)
    return awarded


def advance_turn(room: Room, requester_id: str) -> Player:
    """Score and archive the round, then hand the turn to the next player."""
    if room.status != "playing":
        raise NotPlaying()
    asker = current_asker(room)
    if asker is None or asker.id != requester_id:
        raise NotAsker()
    if room.phase != "voting":
        raise NotVotingPhase()

    awarded = score_answers(room)
    for p in room.players:
        p.points += awarded.get(p.id, 0)

    room.round_history.append(
        Round(
            question=room.current_question or "",
            asker_id=asker.id,
            asker_name=asker.name,
            answers=tuple(copy.deepcopy(a) for a in room.answers),
        )
    )

    _reset_round(room)
    room.current_turn_index = (room.current_turn_index + 1) % len(room.players)
    return room.players[room.current_turn_index]
