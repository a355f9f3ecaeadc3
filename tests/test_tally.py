import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from restaurant_picker.services.tally import tally
from restaurant_picker.state.pick_session import Choice, Vote


def choice(cid, *users):
    return Choice(id=cid, name=cid.upper(), votes=[Vote(user_id=u, ts=1) for u in users])


def test_tie_keeps_every_leader():
    result = tally([choice("a", "U1", "U2"), choice("b", "U3", "U4"), choice("c", "U5")])
    assert result.total_votes == 5
    assert result.max_votes == 2
    assert result.winners == ["a", "b"]


def test_no_votes_means_everyone_wins():
    result = tally([choice("a"), choice("b"), choice("c")])
    assert result.total_votes == 0
    assert result.max_votes == 0
    assert result.winners == ["a", "b", "c"]


def test_single_leader_and_empty_input():
    assert tally([choice("a", "U1"), choice("b")]).winners == ["a"]
    empty = tally([])
    assert (empty.total_votes, empty.max_votes, empty.winners) == (0, 0, [])
