'''Audit export of a closed election.

The audit document is a JSON object that lets anybody recount the election
and check the receipts::

    {
        "election": {"id": 1, "title": "...", "seats": 1, "max_rank": null,
                     "status": "closed"},
        "candidates": [{"id": 1, "name": "...", "sort_index": 0}, ...],
        "ballots": [[3, 1, 2], ...],
        "receipts": ["<64 hex digits>", ...],
        "salts": ["<base64>", ...],
        "results": {...},
        "metadata": {
            "tie_break_seed": "...",
            "total_ballots": 123,
            "total_receipts": 123,
            "code_version": "0.1.0",
            "ranking_encoding": "json-compact/v1",
            "order_algorithm": "arc4-drop256/v1"
        }
    }

Ballots, receipts and salts are listed in submission order, so the i-th
receipt belongs to the i-th ballot. Salts are only present when explicitly
requested, since publishing them lets anyone connect a receipt holder with
their ballot.
'''

import json
import base64
import binascii
import logging
from typing import Any, Dict, List, TextIO

import ranktally
import ranktally.io.core
import ranktally.evaluate.core
import ranktally.evaluate.sequential
import ranktally.component.order
import ranktally.component.receipt
from ranktally.candidate import CandidateEntry, CandidateError, \
    validate_candidate_ids
from ranktally.io.core import ElectionData
from ranktally.vote import VoteError, validate_ballot


logger = logging.getLogger(__name__)


class AuditParseError(ranktally.io.core.ParseError):
    pass


def build(election, stored_ballots, result, include_salts: bool = False
          ) -> Dict[str, Any]:
    '''Assemble the audit document.

    :param election: The :class:`ranktally.election.Election` record.
    :param stored_ballots: Stored ballots in submission order.
    :param result: Result of counting the ballots.
    :param include_salts: Whether to publish the ballot salts.
    '''
    doc = {
        'election': election.to_json(),
        'candidates': [cand.to_json() for cand in election.candidates],
        'ballots': [list(ballot.ranking) for ballot in stored_ballots],
        'receipts': [ballot.receipt for ballot in stored_ballots],
    }
    if include_salts:
        doc['salts'] = [
            base64.b64encode(ballot.salt).decode('ascii')
            for ballot in stored_ballots
        ]
    doc['results'] = result.to_dict()
    doc['metadata'] = {
        'tie_break_seed': election.tie_break_seed,
        'total_ballots': len(stored_ballots),
        'total_receipts': len(stored_ballots),
        'code_version': ranktally.__version__,
        'ranking_encoding': ranktally.component.receipt.RANKING_ENCODING,
        'order_algorithm': ranktally.component.order.ORDER_ALGORITHM,
    }
    return doc


def dumps(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)


def dump(out_file: TextIO, doc: Dict[str, Any]) -> None:
    out_file.write(dumps(doc))
    out_file.write('\n')


def loads(text: str) -> ElectionData:
    '''Parse an audit document.

    :raises AuditParseError: If the document is not valid JSON, misses a
        required part or contains a non-canonical ballot.
    '''
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise AuditParseError(f'audit export is not valid JSON: {e}') from e
    return parse(doc)


def load(in_file: TextIO) -> ElectionData:
    return loads(in_file.read())


def parse(doc: Any) -> ElectionData:
    '''Convert an audit document, as produced by :func:`build`, to election
    data.'''
    if not isinstance(doc, dict):
        raise AuditParseError('audit export must be a JSON object')
    missing = [
        key for key in ('election', 'candidates', 'ballots', 'metadata')
        if key not in doc
    ]
    if missing:
        raise AuditParseError(f'audit export misses {", ".join(missing)}')
    election = doc['election']
    metadata = doc['metadata']
    if not isinstance(election, dict) or not isinstance(metadata, dict):
        raise AuditParseError('election and metadata must be JSON objects')
    try:
        candidates = [CandidateEntry.from_json(c) for c in doc['candidates']]
        valid = frozenset(validate_candidate_ids(c.id for c in candidates))
    except (CandidateError, TypeError) as e:
        raise AuditParseError(f'invalid candidate list: {e}') from e
    seats = election.get('seats', 1)
    if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
        raise AuditParseError(f'number of seats must be a positive integer,'
                              f' got {seats!r}')
    if not isinstance(doc['ballots'], list):
        raise AuditParseError('ballots must be a JSON array')
    max_rank = election.get('max_rank')
    ballots = []
    for i, ballot in enumerate(doc['ballots']):
        try:
            ballots.append(validate_ballot(ballot, valid, max_rank))
        except (VoteError, ValueError) as e:
            raise AuditParseError(f'invalid ballot {i}: {e}') from e
    receipts = doc.get('receipts')
    if receipts is not None and (
        not isinstance(receipts, list)
        or not all(isinstance(receipt, str) for receipt in receipts)
    ):
        raise AuditParseError('receipts must be a JSON array of strings')
    if receipts is not None and len(receipts) != len(ballots):
        raise AuditParseError(f'{len(receipts)} receipts listed for'
                              f' {len(ballots)} ballots')
    salts = _decode_salts(doc['salts'], len(ballots)) \
        if 'salts' in doc else None
    results = doc.get('results')
    if results is not None:
        try:
            results = ranktally.evaluate.core.result_from_dict(results)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise AuditParseError(f'invalid results: {e}') from e
    return ElectionData(
        ballots=ballots,
        n_seats=seats,
        candidates=candidates,
        election_name=election.get('title'),
        tie_break_seed=metadata.get('tie_break_seed'),
        max_rank=max_rank,
        receipts=receipts,
        salts=salts,
        results=results,
        metadata=metadata,
    )


def _decode_salts(encoded: Any, n_ballots: int) -> List[bytes]:
    if not isinstance(encoded, list) or len(encoded) != n_ballots:
        raise AuditParseError('salts must be listed for every ballot')
    try:
        return [base64.b64decode(salt, validate=True) for salt in encoded]
    except (binascii.Error, TypeError, ValueError) as e:
        raise AuditParseError(f'invalid base64 salt: {e}') from e


def replay(data: ElectionData):
    '''Count the election again from the exported ballots.

    :raises ValueError: If the tie-break seed is unknown.
    '''
    if data.tie_break_seed is None:
        raise ValueError('cannot replay a count without the tie-break seed')
    order = ranktally.component.order.seeded_order(
        data.candidate_ids, data.tie_break_seed
    )
    if data.n_seats == 1:
        return ranktally.evaluate.sequential.irv(
            data.ballots, data.candidate_ids, order
        )
    else:
        return ranktally.evaluate.sequential.stv(
            data.ballots, data.candidate_ids, order, data.n_seats
        )


def verify(data: ElectionData) -> List[str]:
    '''Check an exported election for consistency.

    The count is replayed and compared to the published results, and if the
    salts are published, every receipt is recomputed from its ballot.

    :returns: Descriptions of all problems found; empty if the export
        verifies.
    '''
    problems = []
    encoding = data.metadata.get('ranking_encoding')
    if encoding != ranktally.component.receipt.RANKING_ENCODING:
        problems.append(f'unsupported ranking encoding: {encoding!r}')
    algorithm = data.metadata.get('order_algorithm')
    if algorithm != ranktally.component.order.ORDER_ALGORITHM:
        problems.append(f'unsupported order algorithm: {algorithm!r}')
    if problems:
        return problems
    replayed = replay(data)
    if data.results is None:
        problems.append('no results published')
    elif data.results.to_dict() != replayed.to_dict():
        problems.append('published results differ from the recount')
    if data.receipts is None:
        problems.append('no receipts published')
    elif data.salts is not None:
        for i, (ballot, salt, receipt) in enumerate(
            zip(data.ballots, data.salts, data.receipts)
        ):
            if not salt or not ranktally.component.receipt.verify_receipt(
                receipt, ballot, salt
            ):
                problems.append(f'receipt {i} does not match its ballot')
    for problem in problems:
        logger.warning(problem)
    return problems
