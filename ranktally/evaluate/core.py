'''Count results and tie handling shared by the counting engines.'''

from __future__ import annotations

from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence
from numbers import Number

from ranktally.candidate import CandidateId
from ranktally.persist import serialize_key, serialize_number


class VotingSystemError(Exception):
    '''A voting system with a valid setup ended up in an unresolvable state.'''
    pass


class Tie(frozenset):
    '''Candidates tied with equal tallies.

    This object, a subclass of ``frozenset``, groups candidates that the
    count cannot tell apart by votes alone. Ties are always resolved by the
    election's seeded order (see :mod:`ranktally.component.order`), so a Tie
    never appears in a result.
    '''
    def break_by_order(self, order: Sequence[CandidateId]) -> List[CandidateId]:
        '''Order the tied candidates as they appear in the seeded order.

        :param order: The tie-break permutation of all candidates.
        :raises VotingSystemError: If a tied candidate is missing from the
            order.
        '''
        positions = order_positions(order)
        missing = [cand for cand in self if cand not in positions]
        if missing:
            raise VotingSystemError(
                f'tied candidates missing from tie-break order: {missing!r}'
            )
        return sorted(self, key=positions.__getitem__)

    def first_in(self, order: Sequence[CandidateId]) -> CandidateId:
        '''Return the tied candidate that appears earliest in the order.'''
        return self.break_by_order(order)[0]


def order_positions(order: Sequence[CandidateId]) -> Dict[CandidateId, int]:
    return {cand: i for i, cand in enumerate(order)}


def lowest(tallies: Dict[CandidateId, Number],
           order: Sequence[CandidateId],
           ) -> CandidateId:
    '''Return the candidate with the lowest tally.

    Candidates tied at the lowest tally are resolved by the seeded order;
    the one earliest in the order is returned.
    '''
    min_votes = min(tallies.values())
    tied = [cand for cand, votes in tallies.items() if votes == min_votes]
    if len(tied) == 1:
        return tied[0]
    return Tie(tied).first_in(order)


def ranked_by_tally(tallies: Dict[CandidateId, Number],
                    order: Sequence[CandidateId],
                    ) -> List[CandidateId]:
    '''Sort candidates by tally in descending order.

    Candidates with equal tallies are placed in reverse seeded order, since
    the candidate earliest in the seeded order is the one losing ties.
    '''
    positions = order_positions(order)
    missing = [cand for cand in tallies if cand not in positions]
    if missing:
        raise VotingSystemError(
            f'candidates missing from tie-break order: {missing!r}'
        )
    return sorted(
        tallies,
        key=lambda cand: (tallies[cand], positions[cand]),
        reverse=True,
    )


class RoundResult:
    '''Snapshot of a single counting round.

    :param tallies: Votes counting for each candidate in the round, in the
        order of candidates in the election.
    :param eliminated: The candidate eliminated at the end of the round,
        if any.
    :param elected: Candidates elected at the end of the round (only used
        in multi-seat counts).
    '''
    def __init__(self,
                 tallies: Dict[CandidateId, Number],
                 eliminated: Optional[CandidateId] = None,
                 elected: Optional[List[CandidateId]] = None,
                 ):
        self.tallies = tallies
        self.eliminated = eliminated
        self.elected = list(elected) if elected else []

    @property
    def total(self) -> Number:
        '''Total of votes counted in the round (without exhausted ballots).'''
        return sum(self.tallies.values())

    def to_dict(self) -> Dict[str, Any]:
        out_dict = {
            'tallies': {
                serialize_key(cand): serialize_number(votes)
                for cand, votes in self.tallies.items()
            }
        }
        if self.eliminated is not None:
            out_dict['eliminated'] = self.eliminated
        if self.elected:
            out_dict['elected'] = list(self.elected)
        return out_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RoundResult:
        return cls(
            tallies={
                int(cand): _parse_number(votes)
                for cand, votes in data['tallies'].items()
            },
            eliminated=data.get('eliminated'),
            elected=data.get('elected'),
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RoundResult):
            return NotImplemented
        return (
            list(self.tallies.items()) == list(other.tallies.items())
            and self.eliminated == other.eliminated
            and self.elected == other.elected
        )

    def __repr__(self) -> str:
        return (
            f'RoundResult({self.tallies!r}'
            + (f', eliminated={self.eliminated}'
               if self.eliminated is not None else '')
            + (f', elected={self.elected!r}' if self.elected else '')
            + ')'
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_number(value: Any) -> Number:
    '''Parse a vote count written by :func:`serialize_number`.

    Results are read from published files, so only plain integers and the
    exact fraction form are accepted; no other serialized type is resolved.

    :raises ValueError: For anything else.
    '''
    if _is_int(value):
        return value
    if isinstance(value, dict) and set(value.keys()) == {'type', 'arguments'} \
            and value['type'] == 'Fraction':
        args = value['arguments']
        if isinstance(args, list) and len(args) == 2 \
                and all(_is_int(arg) for arg in args) and args[1] != 0:
            number = Fraction(args[0], args[1])
            return number.numerator if number.denominator == 1 else number
    raise ValueError(f'invalid vote count: {value!r}')


class IRVResult:
    '''Outcome of a single-seat instant-runoff count.

    :param rounds: All counting rounds, in order.
    :param winner: The elected candidate; None only if there was nobody
        to elect.
    '''
    def __init__(self,
                 rounds: List[RoundResult],
                 winner: Optional[CandidateId],
                 ):
        self.rounds = rounds
        self.winner = winner

    @property
    def winners(self) -> List[CandidateId]:
        return [] if self.winner is None else [self.winner]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rounds': [round_.to_dict() for round_ in self.rounds],
            'winner': self.winner,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> IRVResult:
        return cls(
            [RoundResult.from_dict(round_) for round_ in data['rounds']],
            data.get('winner'),
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, IRVResult):
            return NotImplemented
        return self.rounds == other.rounds and self.winner == other.winner

    def __repr__(self) -> str:
        return f'IRVResult(winner={self.winner}, rounds={len(self.rounds)})'


class STVResult:
    '''Outcome of a multi-seat transferable vote count.

    :param rounds: All counting rounds, in order.
    :param winners: Elected candidates in the order of their election.
    :param quota: The quota used in the count; None if the count was
        delegated to instant-runoff.
    '''
    def __init__(self,
                 rounds: List[RoundResult],
                 winners: List[CandidateId],
                 quota: Optional[Number] = None,
                 ):
        self.rounds = rounds
        self.winners = winners
        self.quota = quota

    def to_dict(self) -> Dict[str, Any]:
        out_dict = {
            'rounds': [round_.to_dict() for round_ in self.rounds],
            'winners': list(self.winners),
        }
        if self.quota is not None:
            out_dict['quota'] = serialize_number(self.quota)
        return out_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> STVResult:
        quota = data.get('quota')
        return cls(
            [RoundResult.from_dict(round_) for round_ in data['rounds']],
            list(data.get('winners', [])),
            _parse_number(quota) if quota is not None else None,
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, STVResult):
            return NotImplemented
        return (
            self.rounds == other.rounds
            and self.winners == other.winners
            and self.quota == other.quota
        )

    def __repr__(self) -> str:
        return f'STVResult(winners={self.winners!r}, rounds={len(self.rounds)})'


def result_from_dict(data: Dict[str, Any]):
    '''Parse an IRV or STV result from its dictionary form.'''
    if 'winners' in data:
        return STVResult.from_dict(data)
    else:
        return IRVResult.from_dict(data)
