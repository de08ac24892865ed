'''Ballot canonicalization and validation.

A ranked ballot is represented by a tuple of candidate identifiers, first
preference first. Only *canonical* ballots are ever stored or counted:
canonical ballots contain no duplicates, only candidates standing in the
election and at most the configured maximum number of ranks.

Raw rankings coming from voters are canonicalized leniently - invalid and
duplicate entries are silently dropped rather than rejected, since client
input may be malformed in many harmless ways. The only ballot that is
rejected is one that ranks no valid candidate at all; the
:class:`BallotCanonicalizer` raises :class:`EmptyBallotError` for it.

Ballots read back from third-party sources (audit exports, ballot files)
are checked strictly with :func:`validate_ballot` instead, since a
non-canonical stored ballot indicates tampering or a broken export rather
than voter sloppiness.
'''

from typing import Any, Collection, Iterable, Optional, Tuple

from ranktally.candidate import CandidateId
from ranktally.persist import simple_serialization


Ballot = Tuple[CandidateId, ...]


class VoteError(Exception):
    '''A ballot is invalid given the election rules.'''
    pass


class EmptyBallotError(VoteError):
    '''A ballot ranks no valid candidate after canonicalization.'''
    def __init__(self, raw_ranking: Any = None):
        self.raw_ranking = raw_ranking
        super().__init__(
            'ballot must contain at least one valid candidate ranking'
        )


def _check_max_rank(max_rank: Optional[int]) -> None:
    if max_rank is not None and (
        not isinstance(max_rank, int)
        or isinstance(max_rank, bool)
        or max_rank < 1
    ):
        raise ValueError(f'max_rank must be a positive integer or None,'
                         f' got {max_rank!r}')


def canonicalize(raw_ranking: Iterable[Any],
                 valid_candidates: Collection[CandidateId],
                 max_rank: Optional[int] = None,
                 ) -> Ballot:
    '''Produce the canonical form of a raw ranking.

    The raw ranking is processed from the first preference on. An entry is
    skipped if it appeared earlier in the ranking (only the first occurrence
    counts) or if it is not a valid candidate. Processing stops once the
    canonical ranking reaches max_rank entries.

    :param raw_ranking: Candidate identifiers as submitted by the voter.
        Entries of any type are accepted; anything that is not an integer
        identifier of a valid candidate is dropped.
    :param valid_candidates: Identifiers of candidates standing in the
        election.
    :param max_rank: Maximum number of ranks a ballot may contain; None for
        no limit.
    :returns: The canonical ranking. May be empty; rejecting empty ballots
        is the caller's responsibility.
    '''
    _check_max_rank(max_rank)
    seen = set()
    canonical = []
    for entry in raw_ranking:
        if max_rank is not None and len(canonical) >= max_rank:
            break
        # bools are ints in Python but never identify a candidate
        if not isinstance(entry, int) or isinstance(entry, bool):
            continue
        if entry in seen or entry not in valid_candidates:
            continue
        canonical.append(entry)
        seen.add(entry)
    return tuple(canonical)


def validate_ballot(ballot: Any,
                    valid_candidates: Collection[CandidateId],
                    max_rank: Optional[int] = None,
                    ) -> Ballot:
    '''Check that a stored ballot is canonical.

    :param ballot: The ballot to check.
    :param valid_candidates: Identifiers of candidates standing in the
        election.
    :param max_rank: Maximum number of ranks a ballot may contain.
    :returns: The ballot as a tuple.
    :raises VoteError: If the ballot is not a sequence of identifiers,
        contains an invalid or repeated candidate, or is too long.
    '''
    if isinstance(ballot, (str, bytes)) or not hasattr(ballot, '__iter__'):
        raise VoteError(f'ballot must be a sequence of candidates: {ballot!r}')
    ballot = tuple(ballot)
    if canonicalize(ballot, valid_candidates, max_rank) != ballot:
        raise VoteError(f'ballot is not canonical: {list(ballot)!r}')
    return ballot


@simple_serialization
class BallotCanonicalizer:
    '''Canonicalize raw rankings under the configuration of an election.

    :param max_rank: Maximum number of ranks a ballot may contain; None for
        no limit.
    '''
    def __init__(self, max_rank: Optional[int] = None):
        _check_max_rank(max_rank)
        self.max_rank = max_rank

    def canonicalize(self,
                     raw_ranking: Iterable[Any],
                     valid_candidates: Collection[CandidateId],
                     ) -> Ballot:
        '''Produce the canonical form of a raw ranking. See
        :func:`canonicalize`.'''
        return canonicalize(raw_ranking, valid_candidates, self.max_rank)

    def process(self,
                raw_ranking: Iterable[Any],
                valid_candidates: Collection[CandidateId],
                ) -> Ballot:
        '''Canonicalize a submitted ranking, rejecting empty results.

        :raises EmptyBallotError: If no valid candidate remains.
        '''
        if isinstance(raw_ranking, (str, bytes)) or not hasattr(
            raw_ranking, '__iter__'
        ):
            raise EmptyBallotError(raw_ranking)
        ballot = self.canonicalize(raw_ranking, valid_candidates)
        if not ballot:
            raise EmptyBallotError(raw_ranking)
        return ballot
