from __future__ import annotations

from .models import Answer, Player, Room, Round
from .service import current_asker, find_player, voted_count


def player_view(p: Player) -> dict:
    return {"id": p.id, "name": p.name, "points": p.points}


def _voters(room: Room, answer: Answer) -> list[dict]:
    voters = []
    for voter_id in answer.votes:
        p = find_player(room, voter_id)
        voters.append({"userId": voter_id, "userName": p.name if p else None})
    return voters


def _open_answer_view(room: Room, answer: Answer) -> dict:
    # Author name and synthetic flag stay hidden until the round is archived.
    return {
        "authorId": answer.author_id,
        "text": answer.text,
        "votes": _voters(room, answer),
        "voteCount": len(answer.votes),
    }


def _round_view(room: Room, rnd: Round) -> dict:
    return {
        "question": rnd.question,
        "askedBy": rnd.asker_name,
        "answers": [
            {
                "authorId": a.author_id,
                "authorName": a.author_name,
                "text": a.text,
                "isSynthetic": a.is_synthetic,
                "votes": _voters(room, a),
                "voteCount": len(a.votes),
            }
            for a in rnd.answers
        ],
    }


def lobby_view(room: Room) -> dict:
    return {
        "code": room.code,
        "ownerId": room.owner_id,
        "status": room.status,
        "players": [player_view(p) for p in room.players],
    }


def game_view(room: Room) -> dict:
    payload = lobby_view(room)
    asker = current_asker(room)
    answers = room.answers if room.phase == "voting" else []
    payload.update(
        {
            "phase": room.phase,
            "currentTurnIndex": room.current_turn_index,
            "currentAskerId": asker.id if asker else None,
            "currentAskerName": asker.name if asker else None,
            "currentQuestion": room.current_question,
            "answersCount": len(room.answers),
            "totalAnswersExpected": len(room.players),
            "answers": [_open_answer_view(room, a) for a in answers],
            "votedCount": voted_count(room),
            "totalVotesExpected": len(room.players),
            "roundHistory": [_round_view(room, r) for r in room.round_history],
        }
    )
    return payload


def room_view(room: Room) -> dict:
    if room.status == "lobby":
        return lobby_view(room)
    return game_view(room)
