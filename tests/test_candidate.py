import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from ranktally.candidate import CandidateEntry, CandidateError, \
    is_candidate_id, validate_candidate_ids, ballot_order, candidate_ids


@pytest.mark.parametrize(('value', 'valid'), [
    (1, True),
    (42, True),
    (0, False),
    (-3, False),
    (True, False),
    (1.0, False),
    ('1', False),
    (None, False),
])
def test_is_candidate_id(value, valid):
    assert is_candidate_id(value) == valid


def test_validate_candidate_ids():
    assert validate_candidate_ids(iter([3, 1, 2])) == [3, 1, 2]
    with pytest.raises(CandidateError):
        validate_candidate_ids([1, 2, 1])
    with pytest.raises(CandidateError) as excinfo:
        validate_candidate_ids([1, 0])
    assert 'positive' in str(excinfo.value)


def test_entry_json():
    entry = CandidateEntry(3, 'Carol', sort_index=2)
    assert entry.to_json() == {'id': 3, 'name': 'Carol', 'sort_index': 2}
    assert CandidateEntry.from_json(entry.to_json()) == entry
    assert CandidateEntry.from_json({'id': 3, 'name': 'Carol'}).sort_index == 0


@pytest.mark.parametrize('data', [
    {'name': 'Nobody'}, {'id': 0, 'name': 'Zero'}, 'Alice',
])
def test_entry_invalid(data):
    with pytest.raises(CandidateError):
        CandidateEntry.from_json(data)


def test_ballot_order():
    cands = [
        CandidateEntry(1, 'A', sort_index=2),
        CandidateEntry(2, 'B', sort_index=0),
        CandidateEntry(3, 'C', sort_index=0),
    ]
    assert [cand.name for cand in ballot_order(cands)] == ['B', 'C', 'A']
    assert candidate_ids(cands) == [2, 3, 1]


def test_duplicate_entries():
    with pytest.raises(CandidateError):
        candidate_ids([CandidateEntry(1, 'A'), CandidateEntry(1, 'B')])
