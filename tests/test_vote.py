import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import ranktally.vote
from ranktally.vote import canonicalize, validate_ballot, \
    BallotCanonicalizer, VoteError, EmptyBallotError

VALID = {1, 2, 3}

RAW_RANKINGS = [
    [3, 1, 3, 9, 1, 2],
    [],
    [9, 8],
    [2, 2, 2],
    [1, '2', 3.0, None, True, 2],
    [3, 2, 1],
    [0, -1, 1],
]


def test_canonicalize_example():
    assert canonicalize([3, 1, 3, 9, 1, 2], VALID) == (3, 1, 2)


@pytest.mark.parametrize('raw', RAW_RANKINGS)
@pytest.mark.parametrize('max_rank', [None, 1, 2, 5])
def test_canonicalize_idempotent(raw, max_rank):
    once = canonicalize(raw, VALID, max_rank)
    assert canonicalize(once, VALID, max_rank) == once
    assert len(once) == len(set(once))
    assert set(once) <= VALID
    if max_rank is not None:
        assert len(once) <= max_rank


def test_canonicalize_max_rank():
    assert canonicalize([3, 9, 1, 2], VALID, 2) == (3, 1)


def test_canonicalize_drops_non_integers():
    assert canonicalize([True, '1', 1.0, None, 2], VALID) == (2,)


@pytest.mark.parametrize('max_rank', [0, -1, 1.5, '2', True])
def test_invalid_max_rank(max_rank):
    with pytest.raises(ValueError):
        canonicalize([1], VALID, max_rank)
    with pytest.raises(ValueError):
        BallotCanonicalizer(max_rank)


def test_validate_ballot():
    assert validate_ballot([3, 1], VALID) == (3, 1)
    for invalid in ([3, 3], [4], [1, 2, 3], '12', 5):
        with pytest.raises(VoteError):
            validate_ballot(invalid, VALID, max_rank=2)


def test_process():
    canonicalizer = BallotCanonicalizer(max_rank=2)
    assert canonicalizer.process([2, 2, 3, 1], VALID) == (2, 3)


@pytest.mark.parametrize('raw', [[], [9, 0], 'abc', None, 12])
def test_process_empty(raw):
    with pytest.raises(EmptyBallotError):
        BallotCanonicalizer().process(raw, VALID)


def test_empty_ballot_is_vote_error():
    assert issubclass(EmptyBallotError, ranktally.vote.VoteError)


def test_canonicalizer_serialization():
    assert BallotCanonicalizer(3).to_dict() == {
        'class': 'ranktally.vote.BallotCanonicalizer', 'max_rank': 3,
    }
