'''Candidate identifiers and candidate records.

Candidates are referred to by opaque positive integer identifiers
(:data:`CandidateId`) everywhere in counting; ballots, tallies and the
tie-break order all hold bare integers. The :class:`CandidateEntry` record
couples an identifier with the display name and ballot position that the
surrounding application supplies, and is only needed for presentation and
audit exports.
'''

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ranktally.persist import simple_serialization


CandidateId = int


class CandidateError(Exception):
    '''A candidate is invalid in the given context.

    E.g. a non-integer or non-positive identifier, or an identifier used
    twice within one election.

    :param candidate: Candidate that was found to be invalid.
    :param expected: Definition of a candidate that was expected.
    '''
    def __init__(self, candidate: Any, expected: Any = None):
        self.candidate = candidate
        self.expected = expected
        message = f'invalid candidate: {candidate!r}'
        if expected:
            message += f', must be {expected}'
        super().__init__(message)


def is_candidate_id(value: Any) -> bool:
    '''Return True if the value can serve as a candidate identifier.'''
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and value > 0
    )


def validate_candidate_ids(candidate_ids: Iterable[Any]) -> List[CandidateId]:
    '''Check that the identifiers form a valid candidate set.

    :param candidate_ids: Identifiers of all candidates in an election.
    :returns: The identifiers as a list, in input order.
    :raises CandidateError: If any identifier is not a positive integer
        or is repeated.
    '''
    candidate_ids = list(candidate_ids)
    seen = set()
    for cand_id in candidate_ids:
        if not is_candidate_id(cand_id):
            raise CandidateError(cand_id, 'a positive integer')
        if cand_id in seen:
            raise CandidateError(cand_id, 'unique within the election')
        seen.add(cand_id)
    return candidate_ids


@simple_serialization
class CandidateEntry:
    '''A candidate standing in an election.

    :param id: Identifier of the candidate, unique within the election.
    :param name: Name of the candidate, in any customary text format.
    :param sort_index: Position of the candidate on the ballot paper.
    '''
    def __init__(self,
                 id: CandidateId,
                 name: str,
                 sort_index: int = 0,
                 ):
        if not is_candidate_id(id):
            raise CandidateError(id, 'a positive integer')
        self.id = id
        self.name = name
        self.sort_index = sort_index

    def to_json(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'sort_index': self.sort_index}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> CandidateEntry:
        try:
            return cls(data['id'], data['name'], data.get('sort_index', 0))
        except (KeyError, TypeError) as e:
            raise CandidateError(data, 'a mapping with id and name') from e

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, CandidateEntry):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f'<CandidateEntry({self.id},{self.name})>'


def ballot_order(candidates: Iterable[CandidateEntry]) -> List[CandidateEntry]:
    '''Order candidates as they appear on the ballot paper.

    Candidates are sorted by their sort index; equal sort indices fall back
    to the identifier so that the order is always total.
    '''
    return sorted(candidates, key=lambda cand: (cand.sort_index, cand.id))


def candidate_ids(candidates: Iterable[CandidateEntry]) -> List[CandidateId]:
    '''Return the identifiers of candidates in ballot order.'''
    return validate_candidate_ids(cand.id for cand in ballot_order(candidates))
