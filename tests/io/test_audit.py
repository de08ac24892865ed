import sys
import os
import io
import json
from fractions import Fraction

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))
import ranktally
import ranktally.io.audit
from ranktally.election import ElectionService, MemoryBallotStore
from ranktally.evaluate.core import IRVResult, STVResult


def closed_election(seats=1, ballots=([1, 2], [2, 3], [3], [1], [2, 1])):
    service = ElectionService(MemoryBallotStore())
    election = service.create_election('Audit', seats=seats)
    service.set_candidates(election.id, ['Alice', 'Bob', 'Carol'])
    service.open_election(election.id)
    tokens = service.mint_tokens(election.id, len(ballots))
    for token, ballot in zip(tokens, ballots):
        service.submit_ballot(election.id, token, ballot)
    service.close_election(election.id)
    return service, election


def test_metadata():
    service, election = closed_election()
    metadata = service.audit_export(election.id)['metadata']
    assert metadata == {
        'tie_break_seed': election.tie_break_seed,
        'total_ballots': 5,
        'total_receipts': 5,
        'code_version': ranktally.__version__,
        'ranking_encoding': 'json-compact/v1',
        'order_algorithm': 'arc4-drop256/v1',
    }


def test_roundtrip():
    service, election = closed_election()
    doc = service.audit_export(election.id, include_salts=True)
    buffer = io.StringIO()
    ranktally.io.audit.dump(buffer, doc)
    buffer.seek(0)
    data = ranktally.io.audit.load(buffer)
    assert data.ballots == service.ballots(election.id)
    assert data.receipts == service.receipts(election.id)
    assert data.salts == [
        ballot.salt for ballot in service.store.get_ballots(election.id)
    ]
    assert data.n_seats == 1
    assert data.election_name == 'Audit'
    assert data.tie_break_seed == election.tie_break_seed
    assert data.candidate_names() == {1: 'Alice', 2: 'Bob', 3: 'Carol'}
    assert isinstance(data.results, IRVResult)
    assert data.results == service.results(election.id)


@pytest.mark.parametrize('seats', [1, 2])
def test_replay_and_verify(seats):
    service, election = closed_election(seats=seats)
    data = ranktally.io.audit.loads(ranktally.io.audit.dumps(
        service.audit_export(election.id, include_salts=True)
    ))
    assert ranktally.io.audit.replay(data) == service.results(election.id)
    assert ranktally.io.audit.verify(data) == []
    if seats > 1:
        assert isinstance(data.results, STVResult)


def test_verify_without_salts():
    service, election = closed_election()
    data = ranktally.io.audit.parse(service.audit_export(election.id))
    assert data.salts is None
    assert ranktally.io.audit.verify(data) == []


def test_verify_detects_tampered_results():
    service, election = closed_election()
    doc = service.audit_export(election.id)
    doc['results']['winner'] = 3 if doc['results']['winner'] != 3 else 1
    problems = ranktally.io.audit.verify(ranktally.io.audit.parse(doc))
    assert problems == ['published results differ from the recount']


def test_verify_detects_swapped_ballot():
    service, election = closed_election()
    doc = service.audit_export(election.id, include_salts=True)
    doc['ballots'][0], doc['ballots'][1] = doc['ballots'][1], doc['ballots'][0]
    problems = ranktally.io.audit.verify(ranktally.io.audit.parse(doc))
    assert 'receipt 0 does not match its ballot' in problems
    assert 'receipt 1 does not match its ballot' in problems


def test_verify_unknown_algorithm():
    service, election = closed_election()
    doc = service.audit_export(election.id)
    doc['metadata']['order_algorithm'] = 'mt19937/v1'
    problems = ranktally.io.audit.verify(ranktally.io.audit.parse(doc))
    assert problems == ["unsupported order algorithm: 'mt19937/v1'"]


def test_replay_needs_seed():
    service, election = closed_election()
    doc = service.audit_export(election.id)
    del doc['metadata']['tie_break_seed']
    with pytest.raises(ValueError):
        ranktally.io.audit.replay(ranktally.io.audit.parse(doc))


def _export():
    service, election = closed_election()
    return service.audit_export(election.id, include_salts=True)


@pytest.mark.parametrize('tamper', [
    lambda doc: doc['ballots'].append([1, 1]),
    lambda doc: doc['ballots'].append([9]),
    lambda doc: doc['ballots'].append('12'),
    lambda doc: doc['receipts'].pop(),
    lambda doc: doc['salts'].pop(),
    lambda doc: doc.update(salts=['not base64!'] * 5),
    lambda doc: doc['candidates'].append({'id': 1, 'name': 'Twin'}),
    lambda doc: doc.pop('metadata'),
    lambda doc: doc.update(election=[]),
    lambda doc: doc.update(ballots=5),
    lambda doc: doc.update(ballots={'0': [1]}),
    lambda doc: doc.update(receipts='x' * 64),
    lambda doc: doc.update(receipts=[0] * 5),
    lambda doc: doc['election'].update(seats=0),
    lambda doc: doc['election'].update(seats=-2),
    lambda doc: doc['election'].update(seats=True),
    lambda doc: doc['election'].update(seats='2'),
    lambda doc: doc['results']['rounds'][0].update(tallies=[1, 2]),
    lambda doc: doc['results'].update(rounds=[None]),
])
def test_parse_errors(tamper):
    doc = _export()
    tamper(doc)
    with pytest.raises(ranktally.io.audit.AuditParseError):
        ranktally.io.audit.parse(doc)


def test_invalid_json():
    with pytest.raises(ranktally.io.audit.AuditParseError):
        ranktally.io.audit.loads('{"election": ')
    with pytest.raises(ranktally.io.audit.AuditParseError):
        ranktally.io.audit.loads(json.dumps([1, 2]))


@pytest.mark.parametrize('payload', [
    {'type': 'os.system', 'arguments': ['touch {marker}']},
    {'type': 'builtins.open', 'arguments': ['{marker}', 'w']},
])
def test_results_do_not_resolve_names(tmp_path, payload):
    marker = tmp_path / 'created'
    doc = _export()
    doc['results']['rounds'][0]['tallies']['1'] = dict(payload, arguments=[
        arg.format(marker=marker) for arg in payload['arguments']
    ])
    with pytest.raises(ranktally.io.audit.AuditParseError):
        ranktally.io.audit.loads(json.dumps(doc))
    assert not marker.exists()


def test_quota_does_not_resolve_names(tmp_path):
    marker = tmp_path / 'created'
    service, election = closed_election(seats=2)
    doc = service.audit_export(election.id)
    doc['results']['quota'] = {
        'type': 'os.system', 'arguments': [f'touch {marker}']
    }
    with pytest.raises(ranktally.io.audit.AuditParseError):
        ranktally.io.audit.loads(json.dumps(doc))
    assert not marker.exists()


def test_fractional_tallies_accepted():
    doc = _export()
    doc['results']['rounds'][0]['tallies']['1'] = {
        'type': 'Fraction', 'arguments': [5, 2]
    }
    data = ranktally.io.audit.parse(doc)
    assert data.results.rounds[0].tallies[1] == Fraction(5, 2)
