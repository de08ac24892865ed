'''Objects to transfer surplus votes of elected candidates.

In a multi-seat transferable vote count, a candidate who reaches the quota
is elected, and the votes they received beyond the quota (the surplus) pass
on to the next preferences of their voters. Votes of eliminated candidates
pass on in full and need no transferer; the next continuing preference of a
ballot is simply found anew in every round.

During the count, each ballot is kept as a *paper* - the ballot paired with
its current weight, an exact :class:`Fraction` that starts at 1 and only
ever decreases by surplus transfers.
'''

import sys
import abc
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple, Union, Collection
from numbers import Number

from ranktally.candidate import CandidateId
from ranktally.vote import Ballot
from ranktally.persist import simple_serialization


Paper = Tuple[Ballot, Fraction]
Allocation = Dict[Optional[CandidateId], List[int]]


def first_continuing(ballot: Ballot,
                     continuing: Collection[CandidateId],
                     ) -> Optional[CandidateId]:
    '''Return the most preferred candidate of the ballot still in the count.

    :returns: None if the ballot is exhausted.
    '''
    for cand in ballot:
        if cand in continuing:
            return cand
    return None


def allocate(papers: Sequence[Paper],
             continuing: Sequence[CandidateId],
             ) -> Allocation:
    '''Allocate papers to their first continuing preference.

    :param papers: Papers in the count.
    :param continuing: Candidates still in the count, in a fixed order.
    :returns: Indices of papers keyed by the candidate they count for, with
        every continuing candidate present in the given order. Exhausted
        papers are keyed by None.
    '''
    continuing_set = frozenset(continuing)
    allocation = {cand: [] for cand in continuing}
    exhausted = []
    for i, (ballot, weight) in enumerate(papers):
        cand = first_continuing(ballot, continuing_set)
        if cand is None:
            exhausted.append(i)
        else:
            allocation[cand].append(i)
    allocation[None] = exhausted
    return allocation


def allocation_totals(papers: Sequence[Paper],
                      allocation: Allocation,
                      ) -> Dict[Optional[CandidateId], Fraction]:
    return {
        cand: sum((papers[i][1] for i in indices), Fraction(0))
        for cand, indices in allocation.items()
    }


class VoteTransferer(metaclass=abc.ABCMeta):
    '''An abstract base class for surplus transferers.

    Surplus transferers must provide a `transfer_surplus()` method that
    reduces the papers held by an elected candidate so that only their
    surplus remains in the count.
    '''
    @abc.abstractmethod
    def transfer_surplus(self,
                         papers: Sequence[Paper],
                         held: Sequence[int],
                         quota: Number,
                         ) -> List[Paper]:
        '''Release the surplus of an elected candidate.

        :param papers: All papers in the count.
        :param held: Indices of the papers counting for the elected
            candidate.
        :param quota: The quota the candidate was elected with. This many
            votes stay with the candidate and leave the count.
        :returns: A new list of papers; the held papers carry the surplus
            on to their next preferences.
        '''
        raise NotImplementedError


@simple_serialization
class Gregory(VoteTransferer):
    '''Gregory (fractional) surplus transferer.

    The variant used is the Weighted Inclusive Gregory Method (WIGM) used e.g.
    in Scottish local government elections.

    All papers held by the elected candidate continue, each multiplied by
    the transfer value ``(votes - quota) / votes``, where votes is the
    candidate's weighted total. No rounding takes place; the weights stay
    exact fractions.
    '''
    def transfer_value(self, total: Number, quota: Number) -> Fraction:
        if total <= 0 or total <= quota:
            return Fraction(0)
        return Fraction(total - quota) / Fraction(total)

    def transfer_surplus(self,
                         papers: Sequence[Paper],
                         held: Sequence[int],
                         quota: Number,
                         ) -> List[Paper]:
        total = sum((papers[i][1] for i in held), Fraction(0))
        value = self.transfer_value(total, quota)
        new_papers = list(papers)
        for i in held:
            ballot, weight = new_papers[i]
            new_papers[i] = (ballot, weight * value)
        return new_papers


def construct(trans_def: Union[VoteTransferer, str]) -> VoteTransferer:
    return (
        getattr(sys.modules[__name__], trans_def)()
        if isinstance(trans_def, str)
        else trans_def
    )
