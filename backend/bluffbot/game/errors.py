"""Named failure conditions of the game.

Every rule violation is a ``GameError`` carrying a snake_case ``code`` that
goes back to the client unchanged (``{"ok": False, "error": code}``).
"""

from __future__ import annotations


class GameError(Exception):
    code = "game_error"
    message = "Game error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class InvalidName(GameError):
    code = "invalid_name"
    message = "Name is empty or invalid"


class RoomNotFound(GameError):
    code = "room_not_found"
    message = "Room not found"


class RoomInProgress(GameError):
    code = "room_in_progress"
    message = "Game already in progress"


class NameTaken(GameError):
    code = "name_taken"
    message = "Username already taken in this room"


class NotOwner(GameError):
    code = "not_owner"
    message = "Only the owner can do that"


class UserNotFound(GameError):
    code = "user_not_found"
    message = "User not found"


class NotEnoughPlayers(GameError):
    code = "not_enough_players"
    message = "Need at least 2 players to start"


class GameAlreadyStarted(GameError):
    code = "game_already_started"
    message = "Game already started"


class NotPlaying(GameError):
    code = "not_playing"
    message = "Game has not started"


class NotYourTurn(GameError):
    code = "not_your_turn"
    message = "Not your turn"


class EmptyQuestion(GameError):
    code = "empty_question"
    message = "Question is empty"


class NotAnsweringPhase(GameError):
    code = "not_answering_phase"
    message = "Not in answering phase"


class SelfAnswer(GameError):
    code = "self_answer"
    message = "You cannot answer your own question"


class DuplicateAnswer(GameError):
    code = "duplicate_answer"
    message = "You already submitted an answer"


class EmptyAnswer(GameError):
    code = "empty_answer"
    message = "Answer is empty"


class NotVotingPhase(GameError):
    code = "not_voting_phase"
    message = "Not in voting phase"


class SelfVote(GameError):
    code = "self_vote"
    message = "Cannot vote for your own answer"


class AnswerNotFound(GameError):
    code = "answer_not_found"
    message = "Answer not found"


class NotAsker(GameError):
    code = "not_asker"
    message = "Only the question asker can start the next turn"


class CodeSpaceExhausted(GameError):
    code = "code_space_exhausted"
    message = "Could not allocate a room code"


class InternalError(GameError):
    code = "internal_error"
    message = "Internal error"


class ProviderError(Exception):
    """The answer provider failed to produce a reply."""


class ProviderTimeout(ProviderError):
    """The answer provider did not reply in time."""
