'''Counting engines that operate sequentially on ranked ballots.

This hosts the instant-runoff evaluator (:class:`InstantRunoff`) for
single-seat elections and the transferable vote evaluator
(:class:`TransferableVote`) for multi-seat ones. Both record every counting
round so that the published result shows how the winners were reached, and
both break ties only by the election's seeded order, so that every recount
gives exactly the same result.

The module-level functions :func:`irv` and :func:`stv` run the counts with
the default configuration.
'''

import logging
from fractions import Fraction
from typing import Callable, List, Optional, Sequence, Union
from numbers import Number

import ranktally.component.quota
import ranktally.component.transfer
import ranktally.evaluate.core
from ranktally.candidate import CandidateId
from ranktally.vote import Ballot
from ranktally.evaluate.core import RoundResult, IRVResult, STVResult
from ranktally.persist import simple_serialization


logger = logging.getLogger(__name__)


def _check_candidates(candidate_ids: Sequence[CandidateId]) -> List[CandidateId]:
    candidate_ids = list(candidate_ids)
    if not candidate_ids:
        raise ValueError('cannot count an election without candidates')
    if len(set(candidate_ids)) != len(candidate_ids):
        raise ValueError(f'duplicate candidate identifiers: {candidate_ids!r}')
    return candidate_ids


@simple_serialization
class InstantRunoff:
    '''Select a single candidate by instant-runoff voting (IRV).

    In every round, each ballot counts for its highest-ranked candidate
    still in the race; ballots ranking no such candidate are exhausted and
    count for nobody. A candidate with more than half of the votes counted
    in the round wins. Otherwise, the candidate with the fewest votes is
    eliminated and the next round is counted. A candidate left alone in the
    race wins regardless of the majority.

    Candidates tied for elimination are resolved by the seeded order: the
    one appearing earliest in it is eliminated.
    '''
    def evaluate(self,
                 ballots: Sequence[Ballot],
                 candidate_ids: Sequence[CandidateId],
                 tie_break_order: Sequence[CandidateId],
                 ) -> IRVResult:
        '''Count the ballots and find the winner.

        :param ballots: Canonical ballots. Entries that do not identify
            any of the candidates are skipped.
        :param candidate_ids: All candidates in the election. The order
            determines the order of tallies in the rounds.
        :param tie_break_order: Seeded permutation of the candidates.
        :returns: The full round history and the winner.
        :raises ValueError: If there are no candidates.
        '''
        remaining = _check_candidates(candidate_ids)
        rounds = []
        while True:
            logger.info('proceeding to round %d', len(rounds) + 1)
            round_ = self.next_count(ballots, remaining)
            rounds.append(round_)
            winner = self.majority_winner(round_)
            if winner is not None:
                logger.info('%s elected by majority', winner)
                return IRVResult(rounds, winner)
            if len(remaining) == 1:
                logger.info('%s elected as the last remaining', remaining[0])
                return IRVResult(rounds, remaining[0])
            eliminated = ranktally.evaluate.core.lowest(
                round_.tallies, tie_break_order
            )
            logger.info('eliminating %s', eliminated)
            round_.eliminated = eliminated
            remaining = [cand for cand in remaining if cand != eliminated]

    def next_count(self,
                   ballots: Sequence[Ballot],
                   remaining: Sequence[CandidateId],
                   ) -> RoundResult:
        '''Count a single round among the remaining candidates.

        :param ballots: Canonical ballots.
        :param remaining: Candidates still in the race.
        :returns: The round with tallies of all remaining candidates,
            including those with no votes.
        '''
        remaining_set = frozenset(remaining)
        tallies = {cand: 0 for cand in remaining}
        for ballot in ballots:
            top = ranktally.component.transfer.first_continuing(
                ballot, remaining_set
            )
            if top is not None:
                tallies[top] += 1
        logger.info('current vote totals: %s', tallies)
        return RoundResult(tallies)

    @staticmethod
    def majority_winner(round_: RoundResult) -> Optional[CandidateId]:
        '''Return the candidate with a strict majority in the round, if any.'''
        total = round_.total
        for cand, votes in round_.tallies.items():
            if 2 * votes > total:
                return cand
        return None


@simple_serialization
class TransferableVote:
    '''Select candidates by single transferable vote (STV).

    For a single seat, the count is exactly the instant-runoff count of
    :class:`InstantRunoff`. For more seats, each ballot starts with a weight
    of one and the count proceeds in rounds:

    1.  Each ballot counts its weight for its highest-ranked continuing
        candidate.
    2.  If no more candidates continue than there are unfilled seats, all of
        them are elected.
    3.  Otherwise, every candidate reaching the quota is elected (the
        highest tallies first, capped at the number of unfilled seats), and
        their surplus is transferred to the next preferences of their
        ballots by the transferer.
    4.  If nobody reached the quota, the candidate with the fewest votes is
        eliminated and their ballots pass on at full weight.

    Ties are resolved by the seeded order, both for elimination and for
    the order of simultaneous election.

    :param quota_function: A callable producing the quota threshold from the
        total number of votes and number of seats. The common quota
        functions can be referenced by string name from the
        :mod:`ranktally.component.quota` module.
    :param transferer: An instance determining how the surplus of elected
        candidates is transferred. It must provide the
        :class:`ranktally.component.transfer.VoteTransferer` interface and
        can be referred to by its class name as a string.
    '''
    def __init__(self,
                 quota_function: Union[
                     str, Callable[[int, int], Number]
                 ] = 'droop',
                 transferer: Union[
                     str, ranktally.component.transfer.VoteTransferer
                 ] = 'Gregory',
                 ):
        self.quota_function = ranktally.component.quota.construct(
            quota_function
        )
        self.transferer = ranktally.component.transfer.construct(transferer)
        self._single = InstantRunoff()

    def evaluate(self,
                 ballots: Sequence[Ballot],
                 candidate_ids: Sequence[CandidateId],
                 tie_break_order: Sequence[CandidateId],
                 n_seats: int = 1,
                 ) -> STVResult:
        '''Count the ballots and find the winners.

        :param ballots: Canonical ballots.
        :param candidate_ids: All candidates in the election.
        :param tie_break_order: Seeded permutation of the candidates.
        :param n_seats: Number of candidates to elect.
        :returns: The full round history and the winners in the order of
            their election.
        :raises ValueError: If there are no candidates or n_seats is not
            a positive integer.
        '''
        if isinstance(n_seats, bool) or not isinstance(n_seats, int) \
                or n_seats < 1:
            raise ValueError(f'number of seats must be a positive integer,'
                             f' got {n_seats!r}')
        if n_seats == 1:
            single = self._single.evaluate(
                ballots, candidate_ids, tie_break_order
            )
            return STVResult(single.rounds, single.winners)
        continuing = _check_candidates(candidate_ids)
        papers = [(tuple(ballot), Fraction(1)) for ballot in ballots if ballot]
        quota = self.quota_function(len(papers), n_seats)
        logger.info('quota computed at %s for %d seats', quota, n_seats)
        rounds = []
        winners = []
        while len(winners) < n_seats and continuing:
            logger.info('proceeding to round %d', len(rounds) + 1)
            allocation = ranktally.component.transfer.allocate(
                papers, continuing
            )
            totals = ranktally.component.transfer.allocation_totals(
                papers, allocation
            )
            exhausted = totals.pop(None)
            logger.info('current vote totals: %s, exhausted %s',
                        totals, exhausted)
            round_ = RoundResult(totals)
            rounds.append(round_)
            n_rem_seats = n_seats - len(winners)
            if len(continuing) <= n_rem_seats:
                elected = ranktally.evaluate.core.ranked_by_tally(
                    totals, tie_break_order
                )
                logger.info('electing all remaining: %s', elected)
                round_.elected = elected
                winners.extend(elected)
                break
            elected = self._elect_by_quota(
                totals, quota, n_rem_seats, tie_break_order
            )
            if elected:
                logger.info('%s elected by quota', elected)
                round_.elected = elected
                winners.extend(elected)
                for cand in elected:
                    papers = self.transferer.transfer_surplus(
                        papers, allocation[cand], quota
                    )
                    logger.debug('transferred surplus of %s: %s',
                                 cand, totals[cand] - quota)
                continuing = [c for c in continuing if c not in elected]
            else:
                eliminated = ranktally.evaluate.core.lowest(
                    totals, tie_break_order
                )
                logger.info('eliminating %s', eliminated)
                round_.eliminated = eliminated
                continuing = [c for c in continuing if c != eliminated]
        return STVResult(rounds, winners, quota)

    @staticmethod
    def _elect_by_quota(totals,
                        quota: Number,
                        n_rem_seats: int,
                        tie_break_order: Sequence[CandidateId],
                        ) -> List[CandidateId]:
        reaching = {
            cand: votes for cand, votes in totals.items() if votes >= quota
        }
        if not reaching:
            return []
        ranked = ranktally.evaluate.core.ranked_by_tally(
            reaching, tie_break_order
        )
        return ranked[:n_rem_seats]


DEFAULT_IRV = InstantRunoff()
DEFAULT_STV = TransferableVote()


def irv(ballots: Sequence[Ballot],
        candidate_ids: Sequence[CandidateId],
        seeded_order: Sequence[CandidateId],
        ) -> IRVResult:
    '''Count a single-seat election by instant-runoff voting.

    See :meth:`InstantRunoff.evaluate`.
    '''
    return DEFAULT_IRV.evaluate(ballots, candidate_ids, seeded_order)


def stv(ballots: Sequence[Ballot],
        candidate_ids: Sequence[CandidateId],
        seeded_order: Sequence[CandidateId],
        seats: int,
        ) -> STVResult:
    '''Count an election by single transferable vote with the Droop quota
    and Gregory surplus transfers.

    See :meth:`TransferableVote.evaluate`.
    '''
    return DEFAULT_STV.evaluate(ballots, candidate_ids, seeded_order, seats)


def exhausted_count(ballots: Sequence[Ballot],
                    round_: RoundResult,
                    ) -> int:
    '''Return the number of ballots that counted for nobody in an IRV round.'''
    return len(ballots) - round_.total

