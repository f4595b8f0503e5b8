"""Wire names of the events pushed to room subscribers."""

PLAYER_JOINED = "player:joined"
PLAYER_LEFT = "player:left"
GAME_STARTED = "game:started"
QUESTION_RECEIVED = "game:question"
ANSWER_SUBMITTED = "game:answer_submitted"
VOTING_PHASE = "game:voting"
VOTE_UPDATED = "game:vote_updated"
NEXT_TURN_STARTED = "game:next_turn"

# Direct (single recipient)
ROOM_KICKED = "room:kicked"
ROOM_ERROR = "room:error"

ROOM_EVENTS = (
    PLAYER_JOINED,
    PLAYER_LEFT,
    GAME_STARTED,
    QUESTION_RECEIVED,
    ANSWER_SUBMITTED,
    VOTING_PHASE,
    VOTE_UPDATED,
    NEXT_TURN_STARTED,
)
