import pytest

from bluffbot.game import service
from bluffbot.game.errors import (
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
    NotVotingPhase,
    NotYourTurn,
    RoomInProgress,
    SelfAnswer,
    SelfVote,
    UserNotFound,
)
from bluffbot.game.models import SYNTHETIC_AUTHOR_ID


def make_room(*names):
    room = service.new_room('ABC123', names[0])
    for n in names[1:]:
        service.add_player(room, n)
    return room


def ids(room):
    return [p.id for p in room.players]


def playing_room(*names):
    room = make_room(*names)
    service.start_game(room, room.owner_id)
    return room


def to_voting(room, question='What is 2+2?', synthetic='bot answer'):
    asker = service.current_asker(room)
    round_id = service.submit_question(room, asker.id, question)
    service.add_synthetic_answer(room, round_id, synthetic)
    for p in room.players:
        if p.id != asker.id:
            service.submit_answer(room, p.id, f'{p.name} says')
    assert room.phase == 'voting'
    return room


def test_new_room_has_owner_in_lobby():
    room = service.new_room('ABC123', 'owner')
    assert room.status == 'lobby'
    assert room.current_turn_index == 0
    assert len(room.players) == 1
    assert room.players[0].id == room.owner_id
    assert room.players[0].points == 0


@pytest.mark.parametrize('name', ['', '   ', None, 'x' * 21])
def test_new_room_rejects_bad_names(name):
    with pytest.raises(InvalidName):
        service.new_room('ABC123', name)


def test_join_counts_and_unique_names():
    room = make_room('owner', 'bob', 'carol')
    assert [p.name for p in room.players] == ['owner', 'bob', 'carol']
    with pytest.raises(NameTaken):
        service.add_player(room, 'bob')
    # Case-sensitive
    service.add_player(room, 'Bob')
    assert len(room.players) == 4
    assert len({p.name for p in room.players}) == 4


def test_join_refused_once_playing():
    room = playing_room('owner', 'bob')
    with pytest.raises(RoomInProgress):
        service.add_player(room, 'late')


def test_start_game_rules():
    room = make_room('owner')
    with pytest.raises(NotEnoughPlayers):
        service.start_game(room, room.owner_id)
    bob = service.add_player(room, 'bob')
    with pytest.raises(NotOwner):
        service.start_game(room, bob.id)
    service.start_game(room, room.owner_id)
    assert room.status == 'playing'
    assert room.phase == 'asking'
    assert room.current_turn_index == 0
    with pytest.raises(GameAlreadyStarted):
        service.start_game(room, room.owner_id)


def test_only_asker_can_submit_question():
    room = playing_room('owner', 'bob')
    bob = room.players[1]
    with pytest.raises(NotYourTurn):
        service.submit_question(room, bob.id, 'Hi?')
    with pytest.raises(EmptyQuestion):
        service.submit_question(room, room.owner_id, '   ')
    round_id = service.submit_question(room, room.owner_id, 'Hi?')
    assert round_id == 1
    assert room.phase == 'answering'
    assert room.current_question == 'Hi?'
    with pytest.raises(NotYourTurn):
        service.submit_question(room, room.owner_id, 'Again?')


def test_answer_validation():
    room = playing_room('owner', 'bob', 'carol')
    bob, carol = room.players[1], room.players[2]
    with pytest.raises(NotAnsweringPhase):
        service.submit_answer(room, bob.id, 'early')
    service.submit_question(room, room.owner_id, 'Q?')
    with pytest.raises(SelfAnswer):
        service.submit_answer(room, room.owner_id, 'mine')
    with pytest.raises(EmptyAnswer):
        service.submit_answer(room, bob.id, '  ')
    assert service.submit_answer(room, bob.id, 'first') is False
    with pytest.raises(DuplicateAnswer):
        service.submit_answer(room, bob.id, 'second')
    with pytest.raises(UserNotFound):
        service.submit_answer(room, 'nobody', 'hi')
    assert service.submit_answer(room, carol.id, 'x') is False
    assert room.phase == 'answering'


def test_voting_opens_exactly_when_all_slots_filled():
    room = playing_room('owner', 'bob', 'carol')
    bob, carol = room.players[1], room.players[2]
    round_id = service.submit_question(room, room.owner_id, 'Q?')
    service.submit_answer(room, bob.id, 'b')
    assert service.add_synthetic_answer(room, round_id, 'bot') is True
    assert room.phase == 'answering'
    assert service.submit_answer(room, carol.id, 'c') is True
    assert room.phase == 'voting'
    assert len(room.answers) == len(room.players)
    assert {a.author_id for a in room.answers} == {bob.id, carol.id, SYNTHETIC_AUTHOR_ID}


def test_synthetic_answer_is_added_once_and_only_for_its_round():
    room = playing_room('owner', 'bob', 'carol')
    round_id = service.submit_question(room, room.owner_id, 'Q?')
    assert service.add_synthetic_answer(room, round_id + 1, 'stale') is False
    assert service.add_synthetic_answer(room, round_id, 'bot') is True
    assert service.add_synthetic_answer(room, round_id, 'bot again') is False
    synthetic = [a for a in room.answers if a.is_synthetic]
    assert len(synthetic) == 1
    assert synthetic[0].text == 'bot'


def test_voting_opens_with_shuffle(monkeypatch):
    calls = []
    monkeypatch.setattr(service.random, 'shuffle', lambda seq: calls.append(list(seq)) or seq.reverse())
    room = playing_room('owner', 'bob')
    bob = room.players[1]
    round_id = service.submit_question(room, room.owner_id, 'Q?')
    service.add_synthetic_answer(room, round_id, 'bot')
    service.submit_answer(room, bob.id, 'b')
    assert len(calls) == 1
    assert [a.author_id for a in room.answers] == [bob.id, SYNTHETIC_AUTHOR_ID]


def test_single_choice_vote_and_toggle():
    room = to_voting(playing_room('owner', 'bob', 'carol'))
    owner, bob, carol = room.players
    assert service.cast_vote(room, owner.id, bob.id) is True
    assert service.cast_vote(room, owner.id, SYNTHETIC_AUTHOR_ID) is True
    tally = service.vote_tally(room)
    assert tally[bob.id] == 0
    assert tally[SYNTHETIC_AUTHOR_ID] == 1
    # Same target again toggles off
    assert service.cast_vote(room, owner.id, SYNTHETIC_AUTHOR_ID) is False
    assert service.voted_count(room) == 0
    assert all(owner.id not in a.votes for a in room.answers)


def test_voter_holds_at_most_one_vote():
    room = to_voting(playing_room('owner', 'bob', 'carol', 'dave'))
    owner, bob, carol, dave = room.players
    for target in [carol.id, dave.id, SYNTHETIC_AUTHOR_ID, SYNTHETIC_AUTHOR_ID, carol.id, dave.id]:
        service.cast_vote(room, bob.id, target)
        assert sum(bob.id in a.votes for a in room.answers) <= 1


def test_vote_errors():
    room = playing_room('owner', 'bob')
    bob = room.players[1]
    with pytest.raises(NotVotingPhase):
        service.cast_vote(room, bob.id, SYNTHETIC_AUTHOR_ID)
    to_voting(room)
    with pytest.raises(SelfVote):
        service.cast_vote(room, bob.id, bob.id)
    with pytest.raises(AnswerNotFound):
        service.cast_vote(room, bob.id, room.owner_id)


def test_scoring_human_and_synthetic_votes():
    room = to_voting(playing_room('A', 'X', 'Y', 'Z'))
    a, x, y, z = room.players
    # Rotate the turn so A answers: make A not the asker by closing one round first.
    service.advance_turn(room, a.id)
    for p in room.players:
        p.points = 0
    to_voting(room)
    assert service.current_asker(room).id == x.id
    service.cast_vote(room, x.id, a.id)
    service.cast_vote(room, y.id, SYNTHETIC_AUTHOR_ID)
    service.cast_vote(room, z.id, SYNTHETIC_AUTHOR_ID)

    service.advance_turn(room, x.id)

    assert a.points == 1
    assert y.points == 2
    assert z.points == 2
    assert x.points == 0


def test_advance_turn_rules_and_history():
    room = playing_room('owner', 'bob')
    owner, bob = room.players
    with pytest.raises(NotAsker):
        service.advance_turn(room, bob.id)
    with pytest.raises(NotVotingPhase):
        service.advance_turn(room, owner.id)
    to_voting(room, question="What's 2+2?")
    service.cast_vote(room, bob.id, SYNTHETIC_AUTHOR_ID)
    nxt = service.advance_turn(room, owner.id)

    assert nxt.id == bob.id
    assert room.current_turn_index == 1
    assert room.phase == 'asking'
    assert room.current_question is None
    assert room.answers == []
    assert bob.points == 2
    assert len(room.round_history) == 1
    rnd = room.round_history[0]
    assert rnd.question == "What's 2+2?"
    assert rnd.asker_name == 'owner'
    assert any(a.is_synthetic and a.votes == [bob.id] for a in rnd.answers)


def test_history_is_not_affected_by_later_rounds():
    room = to_voting(playing_room('owner', 'bob'))
    owner, bob = room.players
    service.cast_vote(room, bob.id, SYNTHETIC_AUTHOR_ID)
    service.advance_turn(room, owner.id)
    to_voting(room)
    service.cast_vote(room, owner.id, SYNTHETIC_AUTHOR_ID)
    first = room.round_history[0]
    assert all(owner.id not in a.votes for a in first.answers)


@pytest.mark.parametrize('n', [2, 3, 5])
def test_rotation_returns_to_start_after_n_turns(n):
    room = playing_room(*[f'p{i}' for i in range(n)])
    start = room.current_turn_index
    for _ in range(n):
        to_voting(room)
        service.advance_turn(room, service.current_asker(room).id)
    assert room.current_turn_index == start


def test_leave_before_asker_keeps_same_asker():
    room = playing_room('a', 'b', 'c', 'd')
    a, b, c, d = room.players
    to_voting(room)
    service.advance_turn(room, a.id)
    to_voting(room)
    service.advance_turn(room, b.id)
    assert service.current_asker(room).id == c.id
    service.remove_player(room, a.id)
    assert service.current_asker(room).id == c.id
    assert room.current_turn_index == 1


def test_leave_after_asker_keeps_index():
    room = playing_room('a', 'b', 'c')
    a, b, c = room.players
    service.remove_player(room, c.id)
    assert room.current_turn_index == 0
    assert service.current_asker(room).id == a.id


def test_lobby_departures_keep_index_in_range():
    room = make_room('a', 'b', 'c')
    service.remove_player(room, room.players[0].id)
    assert room.current_turn_index == 0
    assert len(room.players) == 2
    service.remove_player(room, room.players[-1].id)
    assert 0 <= room.current_turn_index < len(room.players)


def test_asker_leaving_mid_round_abandons_round():
    room = playing_room('a', 'b', 'c')
    a, b, c = room.players
    round_id = service.submit_question(room, a.id, 'Q?')
    service.submit_answer(room, b.id, 'b')
    service.add_synthetic_answer(room, round_id, 'bot')

    service.remove_player(room, a.id)

    assert room.phase == 'asking'
    assert room.current_question is None
    assert room.answers == []
    assert service.current_asker(room).id == b.id
    assert [p.points for p in room.players] == [0, 0]
    assert room.round_history == []
    # The stale synthetic answer can no longer land
    assert service.add_synthetic_answer(room, round_id, 'late') is False


def test_last_player_asker_leaving_wraps_turn():
    room = playing_room('a', 'b', 'c')
    a, b, c = room.players
    to_voting(room)
    service.advance_turn(room, a.id)
    to_voting(room)
    service.advance_turn(room, b.id)
    service.submit_question(room, c.id, 'Q?')
    service.remove_player(room, c.id)
    assert room.current_turn_index == 0
    assert service.current_asker(room).id == a.id
    assert room.phase == 'asking'


def test_non_asker_leaving_while_answering_drops_answer_and_can_open_voting():
    room = playing_room('a', 'b', 'c')
    a, b, c = room.players
    round_id = service.submit_question(room, a.id, 'Q?')
    service.add_synthetic_answer(room, round_id, 'bot')
    service.submit_answer(room, b.id, 'b')
    assert room.phase == 'answering'

    service.remove_player(room, c.id)

    assert room.phase == 'voting'
    assert len(room.answers) == 2


def test_non_asker_leaving_while_voting_drops_votes():
    room = to_voting(playing_room('a', 'b', 'c'))
    a, b, c = room.players
    service.cast_vote(room, c.id, SYNTHETIC_AUTHOR_ID)
    service.remove_player(room, c.id)
    assert service.voted_count(room) == 0
    assert room.phase == 'voting'


def test_owner_leaving_transfers_ownership():
    room = make_room('a', 'b')
    a, b = room.players
    service.remove_player(room, a.id)
    assert room.owner_id == b.id


def test_kick_rules():
    room = make_room('a', 'b', 'c')
    a, b, c = room.players
    with pytest.raises(NotOwner):
        service.kick_player(room, b.id, c.id)
    with pytest.raises(UserNotFound):
        service.kick_player(room, a.id, 'ghost')
    kicked = service.kick_player(room, a.id, c.id)
    assert kicked.id == c.id
    assert ids(room) == [a.id, b.id]


def test_remove_unknown_player():
    room = make_room('a')
    with pytest.raises(UserNotFound):
        service.remove_player(room, 'ghost')
