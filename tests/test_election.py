import sys
import os
import threading

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import ranktally.election
import ranktally.component.receipt
from ranktally.election import ElectionService, MemoryBallotStore, \
    ElectionError, ElectionNotFound, ElectionStateError, TokenError
from ranktally.evaluate.core import IRVResult, STVResult
from ranktally.vote import EmptyBallotError


@pytest.fixture
def service():
    return ElectionService(MemoryBallotStore())


def open_election(service, names=('Alice', 'Bob', 'Carol'), **kwargs):
    election = service.create_election('Test', **kwargs)
    service.set_candidates(election.id, list(names))
    service.open_election(election.id)
    return election


def test_lifecycle(service):
    election = service.create_election('Chair', max_rank=2)
    assert election.status == ranktally.election.DRAFT
    assert len(election.tie_break_seed) == 32
    cands = service.set_candidates(election.id, ['Alice', 'Bob', 'Carol'])
    assert [(c.id, c.name, c.sort_index) for c in cands] == [
        (1, 'Alice', 0), (2, 'Bob', 1), (3, 'Carol', 2)
    ]
    assert service.open_election(election.id).status == ranktally.election.OPEN
    tokens = service.mint_tokens(election.id, 3)
    receipts = [
        service.submit_ballot(election.id, tokens[0], [2, 1, 3]),
        service.submit_ballot(election.id, tokens[1], [2, 2, 9]),
        service.submit_ballot(election.id, tokens[2], [1]),
    ]
    assert service.close_election(election.id).status == ranktally.election.CLOSED
    assert service.receipts(election.id) == receipts
    assert service.ballots(election.id) == [(2, 1), (2,), (1,)]
    result = service.results(election.id)
    assert isinstance(result, IRVResult)
    assert result.winner == 2
    assert service.token_stats(election.id) == {'minted': 3, 'used': 3}


def test_candidates_only_in_draft(service):
    election = open_election(service)
    with pytest.raises(ElectionStateError):
        service.set_candidates(election.id, ['Dave', 'Eve'])


def test_open_needs_two_candidates(service):
    election = service.create_election('Lonely')
    service.set_candidates(election.id, ['Alice'])
    with pytest.raises(ElectionError):
        service.open_election(election.id)
    assert service.get_election(election.id).status == ranktally.election.DRAFT


def test_invalid_transitions(service):
    election = service.create_election('Test')
    with pytest.raises(ElectionStateError):
        service.close_election(election.id)
    service.set_candidates(election.id, ['A', 'B'])
    service.open_election(election.id)
    with pytest.raises(ElectionStateError):
        service.open_election(election.id)
    service.close_election(election.id)
    with pytest.raises(ElectionStateError):
        service.close_election(election.id)
    with pytest.raises(ElectionStateError):
        service.open_election(election.id)


def test_unknown_election(service):
    with pytest.raises(ElectionNotFound):
        service.open_election(42)


@pytest.mark.parametrize(('seats', 'max_rank'), [(0, None), (1, 0), (True, None)])
def test_invalid_config(service, seats, max_rank):
    with pytest.raises(ValueError):
        service.create_election('Bad', seats=seats, max_rank=max_rank)


def test_token_single_use(service):
    election = open_election(service)
    token, = service.mint_tokens(election.id, 1)
    service.submit_ballot(election.id, token, [1])
    with pytest.raises(TokenError):
        service.submit_ballot(election.id, token, [2])
    service.close_election(election.id)
    assert service.ballots(election.id) == [(1,)]


def test_token_other_election(service):
    first = open_election(service)
    second = open_election(service)
    token, = service.mint_tokens(first.id, 1)
    with pytest.raises(TokenError):
        service.submit_ballot(second.id, token, [1])
    with pytest.raises(TokenError):
        service.submit_ballot(first.id, 'forged', [1])
    assert service.token_stats(first.id) == {'minted': 1, 'used': 0}


def test_tokens_stored_hashed(service):
    election = open_election(service)
    token, = service.mint_tokens(election.id, 1)
    assert service.store.get_token(token) is None
    stored = service.store.get_token(ranktally.election.hash_token(token))
    assert stored.election_id == election.id
    assert not stored.used


def test_empty_ballot_keeps_token(service):
    election = open_election(service)
    token, = service.mint_tokens(election.id, 1)
    with pytest.raises(EmptyBallotError):
        service.submit_ballot(election.id, token, [7, 8])
    service.submit_ballot(election.id, token, [3])


def test_ballot_only_when_open(service):
    election = service.create_election('Draft')
    service.set_candidates(election.id, ['A', 'B'])
    token, = service.mint_tokens(election.id, 1)
    with pytest.raises(ElectionStateError):
        service.submit_ballot(election.id, token, [1])
    service.open_election(election.id)
    service.close_election(election.id)
    with pytest.raises(ElectionStateError):
        service.submit_ballot(election.id, token, [1])


def test_publication_only_when_closed(service):
    election = open_election(service)
    for method in (service.results, service.receipts, service.ballots,
                   service.audit_export):
        with pytest.raises(ElectionStateError):
            method(election.id)


def test_receipt_recomputes(service):
    election = open_election(service, max_rank=2)
    token, = service.mint_tokens(election.id, 1)
    receipt = service.submit_ballot(election.id, token, [3, 3, 1, 2])
    stored, = service.store.get_ballots(election.id)
    assert stored.ranking == (3, 1)
    assert stored.receipt == receipt
    assert ranktally.component.receipt.receipt_for(
        stored.ranking, stored.salt
    ) == receipt
    service.close_election(election.id)
    assert service.receipt_published(election.id, receipt.upper())
    assert not service.receipt_published(election.id, '0' * 64)


def test_multi_seat_uses_stv(service):
    election = open_election(service, seats=2)
    ballots = [[1, 2]] * 7 + [[2]] + [[3]] * 2
    tokens = service.mint_tokens(election.id, len(ballots))
    for token, ballot in zip(tokens, ballots):
        service.submit_ballot(election.id, token, ballot)
    service.close_election(election.id)
    result = service.results(election.id)
    assert isinstance(result, STVResult)
    assert result.winners == [1, 2]


def test_concurrent_token_use(service):
    election = open_election(service)
    token, = service.mint_tokens(election.id, 1)
    outcomes = []

    def vote():
        try:
            service.submit_ballot(election.id, token, [1])
        except TokenError:
            outcomes.append(False)
        else:
            outcomes.append(True)

    threads = [threading.Thread(target=vote) for i in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert outcomes.count(True) == 1
    assert len(service.store.get_ballots(election.id)) == 1


def test_audit_export(service):
    election = open_election(service)
    tokens = service.mint_tokens(election.id, 2)
    service.submit_ballot(election.id, tokens[0], [1, 2])
    service.submit_ballot(election.id, tokens[1], [2])
    service.close_election(election.id)
    doc = service.audit_export(election.id)
    assert 'salts' not in doc
    assert doc['ballots'] == [[1, 2], [2]]
    assert doc['metadata']['total_ballots'] == 2
    assert doc['metadata']['tie_break_seed'] == election.tie_break_seed
    assert doc['results'] == service.results(election.id).to_dict()
    with_salts = service.audit_export(election.id, include_salts=True)
    assert len(with_salts['salts']) == 2
