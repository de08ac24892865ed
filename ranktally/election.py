'''Election lifecycle, ballot submission and publication of results.

An election passes through three states: it is prepared as a *draft*
(candidates may still change), *open* for voting, and finally *closed*, at
which point the results, receipts and ballots are published. Voters prove
their eligibility by one-time tokens minted for the election; each token
can submit exactly one ballot and is consumed atomically with it.

Everything the service persists goes through a :class:`BallotStore`, passed
explicitly to the :class:`ElectionService`. :class:`MemoryBallotStore` keeps
the data in memory and is enough for tests and command-line use; other
backends only need to implement the abstract interface, with
:meth:`BallotStore.submit_ballot` as the one operation required to be
atomic.
'''

import abc
import copy
import hashlib
import logging
import secrets
import threading
import dataclasses
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import ranktally.system
import ranktally.io.audit
import ranktally.component.order
import ranktally.component.receipt
from ranktally.candidate import CandidateEntry, CandidateId, candidate_ids
from ranktally.vote import Ballot, BallotCanonicalizer


logger = logging.getLogger(__name__)

DRAFT = 'draft'
OPEN = 'open'
CLOSED = 'closed'

STATUS_TRANSITIONS = {
    DRAFT: OPEN,
    OPEN: CLOSED,
}

TOKEN_BYTES = 24


class ElectionError(Exception):
    '''An operation on an election could not be carried out.'''
    pass


class ElectionNotFound(ElectionError):
    def __init__(self, election_id: Any):
        self.election_id = election_id
        super().__init__(f'election not found: {election_id!r}')


class ElectionStateError(ElectionError):
    '''The election is not in a state that allows the operation.

    :param election_id: Identifier of the election.
    :param status: Current status of the election.
    :param expected: Status the operation requires.
    :param operation: Description of the attempted operation.
    '''
    def __init__(self,
                 election_id: Any,
                 status: str,
                 expected: str,
                 operation: str,
                 ):
        self.election_id = election_id
        self.status = status
        self.expected = expected
        super().__init__(
            f'cannot {operation} election {election_id!r}: it is {status},'
            f' must be {expected}'
        )


class TokenError(ElectionError):
    '''A voter token is unknown, already used or valid for another election.'''
    pass


@dataclasses.dataclass
class Election:
    '''An election record.

    :param id: Identifier assigned by the store.
    :param title: Title of the election.
    :param seats: Number of candidates to elect.
    :param max_rank: Maximum number of ranks on a ballot; None for no limit.
    :param tie_break_seed: Seed of the tie-break order.
    :param status: One of ``draft``, ``open``, ``closed``.
    :param candidates: Candidates standing in the election.
    '''
    id: Optional[int]
    title: str
    seats: int = 1
    max_rank: Optional[int] = None
    tie_break_seed: str = ''
    status: str = DRAFT
    candidates: List[CandidateEntry] = dataclasses.field(default_factory=list)

    @property
    def candidate_ids(self) -> List[CandidateId]:
        return candidate_ids(self.candidates)

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'seats': self.seats,
            'max_rank': self.max_rank,
            'status': self.status,
        }


@dataclasses.dataclass(frozen=True)
class StoredBallot:
    '''A submitted ballot as persisted; never linked to the voter's token.'''
    ranking: Ballot
    salt: bytes
    receipt: str


@dataclasses.dataclass
class VoterToken:
    '''A one-time voting credential; only the hash of the token is kept.'''
    token_hash: str
    election_id: int
    used: bool = False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf8')).hexdigest()


class BallotStore(metaclass=abc.ABCMeta):
    '''An abstract persistence backend for elections, tokens and ballots.'''
    @abc.abstractmethod
    def add_election(self, election: Election) -> Election:
        '''Store a new election, assigning its identifier.'''
        raise NotImplementedError

    @abc.abstractmethod
    def get_election(self, election_id: int) -> Election:
        '''Return a copy of the election record.

        :raises ElectionNotFound: If there is no such election.
        '''
        raise NotImplementedError

    @abc.abstractmethod
    def update_election(self, election: Election) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def add_tokens(self, tokens: Iterable[VoterToken]) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def get_token(self, token_hash: str) -> Optional[VoterToken]:
        raise NotImplementedError

    @abc.abstractmethod
    def submit_ballot(self,
                      election_id: int,
                      token_hash: str,
                      ballot: StoredBallot,
                      ) -> None:
        '''Record a ballot and consume the token that submitted it.

        The whole operation is atomic: the token must exist, belong to the
        election and be unused; then the ballot is appended, the token is
        marked used and the usage is recorded. On any failure, nothing is
        written.

        :raises TokenError: If the token cannot submit the ballot.
        '''
        raise NotImplementedError

    @abc.abstractmethod
    def get_ballots(self, election_id: int) -> List[StoredBallot]:
        '''Return the election's ballots in submission order.'''
        raise NotImplementedError

    @abc.abstractmethod
    def token_stats(self, election_id: int) -> Tuple[int, int]:
        '''Return the number of minted and used tokens of the election.'''
        raise NotImplementedError


class MemoryBallotStore(BallotStore):
    '''A ballot store keeping everything in memory.

    Safe to share among threads; every operation runs under a single lock.
    '''
    def __init__(self):
        self._lock = threading.Lock()
        self._elections: Dict[int, Election] = {}
        self._tokens: Dict[str, VoterToken] = {}
        self._ballots: Dict[int, List[StoredBallot]] = {}
        self._usage: List[Tuple[int, str]] = []

    def add_election(self, election: Election) -> Election:
        with self._lock:
            election = copy.deepcopy(election)
            election.id = len(self._elections) + 1
            self._elections[election.id] = election
            self._ballots[election.id] = []
            return copy.deepcopy(election)

    def get_election(self, election_id: int) -> Election:
        with self._lock:
            return copy.deepcopy(self._get_election(election_id))

    def _get_election(self, election_id: int) -> Election:
        try:
            return self._elections[election_id]
        except KeyError:
            raise ElectionNotFound(election_id)

    def update_election(self, election: Election) -> None:
        with self._lock:
            self._get_election(election.id)
            self._elections[election.id] = copy.deepcopy(election)

    def add_tokens(self, tokens: Iterable[VoterToken]) -> None:
        tokens = list(tokens)
        with self._lock:
            for token in tokens:
                self._get_election(token.election_id)
                if token.token_hash in self._tokens:
                    raise TokenError('token already exists')
            for token in tokens:
                self._tokens[token.token_hash] = copy.copy(token)

    def get_token(self, token_hash: str) -> Optional[VoterToken]:
        with self._lock:
            token = self._tokens.get(token_hash)
            return copy.copy(token) if token is not None else None

    def submit_ballot(self,
                      election_id: int,
                      token_hash: str,
                      ballot: StoredBallot,
                      ) -> None:
        with self._lock:
            token = self._tokens.get(token_hash)
            if token is None or token.election_id != election_id:
                raise TokenError('invalid token for this election')
            if token.used:
                raise TokenError('token has already been used')
            ballots = self._ballots[election_id]
            n_ballots = len(ballots)
            n_usage = len(self._usage)
            try:
                ballots.append(ballot)
                token.used = True
                self._usage.append((election_id, token_hash))
            except BaseException:
                del ballots[n_ballots:]
                del self._usage[n_usage:]
                token.used = False
                raise

    def get_ballots(self, election_id: int) -> List[StoredBallot]:
        with self._lock:
            self._get_election(election_id)
            return list(self._ballots[election_id])

    def token_stats(self, election_id: int) -> Tuple[int, int]:
        with self._lock:
            tokens = [
                token for token in self._tokens.values()
                if token.election_id == election_id
            ]
            return len(tokens), sum(1 for token in tokens if token.used)


class ElectionService:
    '''Run elections on top of a ballot store.

    :param store: Persistence backend.
    :param systems: Counting systems by key; the ``irv`` system counts
        single-seat elections and ``stv`` the others.
    '''
    def __init__(self,
                 store: BallotStore,
                 systems: Optional[Dict[str, ranktally.system.VotingSystem]] = None,
                 ):
        self.store = store
        self.systems = ranktally.system.SYSTEMS if systems is None else systems

    def create_election(self,
                        title: str,
                        seats: int = 1,
                        max_rank: Optional[int] = None,
                        ) -> Election:
        '''Create a draft election with a fresh tie-break seed.'''
        if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
            raise ValueError(f'number of seats must be a positive integer,'
                             f' got {seats!r}')
        # validates max_rank
        BallotCanonicalizer(max_rank)
        election = self.store.add_election(Election(
            id=None,
            title=title,
            seats=seats,
            max_rank=max_rank,
            tie_break_seed=ranktally.component.order.generate_seed(),
        ))
        logger.info('created election %s with %d seats', election.id, seats)
        return election

    def get_election(self, election_id: int) -> Election:
        return self.store.get_election(election_id)

    def set_candidates(self,
                       election_id: int,
                       names: Sequence[str],
                       ) -> List[CandidateEntry]:
        '''Replace the candidates of a draft election.

        Candidates get identifiers 1, 2, ... and ballot positions in the
        order of the names given.
        '''
        election = self._require(election_id, DRAFT, 'set candidates of')
        election.candidates = [
            CandidateEntry(i + 1, name, sort_index=i)
            for i, name in enumerate(names)
        ]
        self.store.update_election(election)
        logger.info('election %s has %d candidates',
                    election_id, len(election.candidates))
        return list(election.candidates)

    def open_election(self, election_id: int) -> Election:
        election = self._require(election_id, DRAFT, 'open')
        if len(election.candidates) < 2:
            raise ElectionError(f'election {election_id!r} needs at least'
                                f' two candidates to open')
        return self._transition(election)

    def close_election(self, election_id: int) -> Election:
        return self._transition(self._require(election_id, OPEN, 'close'))

    def _transition(self, election: Election) -> Election:
        old_status = election.status
        election.status = STATUS_TRANSITIONS[old_status]
        self.store.update_election(election)
        logger.info('election %s changed from %s to %s',
                    election.id, old_status, election.status)
        return election

    def _require(self,
                 election_id: int,
                 status: str,
                 operation: str,
                 ) -> Election:
        election = self.store.get_election(election_id)
        if election.status != status:
            raise ElectionStateError(
                election_id, election.status, status, operation
            )
        return election

    def mint_tokens(self, election_id: int, count: int) -> List[str]:
        '''Create one-time voter tokens for an election.

        :returns: The plaintext tokens to distribute to voters. They are not
            stored anywhere and cannot be recovered later.
        '''
        election = self.store.get_election(election_id)
        if election.status == CLOSED:
            raise ElectionStateError(
                election_id, election.status, 'draft or open', 'mint tokens for'
            )
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError(f'token count must be a positive integer,'
                             f' got {count!r}')
        tokens = [secrets.token_urlsafe(TOKEN_BYTES) for _ in range(count)]
        self.store.add_tokens(
            VoterToken(hash_token(token), election_id) for token in tokens
        )
        logger.info('minted %d tokens for election %s', count, election_id)
        return tokens

    def submit_ballot(self,
                      election_id: int,
                      token: str,
                      raw_ranking: Iterable[Any],
                      ) -> str:
        '''Accept a voter's ranking.

        :param election_id: Identifier of the election.
        :param token: The voter's plaintext one-time token.
        :param raw_ranking: Candidate identifiers as submitted, first
            preference first. Invalid and repeated entries are dropped.
        :returns: The receipt hash for the voter.
        :raises EmptyBallotError: If no valid candidate is ranked.
        :raises TokenError: If the token cannot vote in this election.
        '''
        election = self._require(election_id, OPEN, 'vote in')
        ranking = BallotCanonicalizer(election.max_rank).process(
            raw_ranking, frozenset(election.candidate_ids)
        )
        salt = ranktally.component.receipt.generate_salt()
        receipt = ranktally.component.receipt.receipt_for(ranking, salt)
        self.store.submit_ballot(
            election_id, hash_token(token),
            StoredBallot(ranking, salt, receipt),
        )
        logger.info('ballot accepted in election %s', election_id)
        return receipt

    def token_stats(self, election_id: int) -> Dict[str, int]:
        minted, used = self.store.token_stats(election_id)
        return {'minted': minted, 'used': used}

    def seeded_order(self, election: Election) -> List[CandidateId]:
        return ranktally.component.order.seeded_order(
            election.candidate_ids, election.tie_break_seed
        )

    def results(self, election_id: int):
        '''Count a closed election.

        :returns: An :class:`ranktally.evaluate.core.IRVResult` for a
            single-seat election, an
            :class:`ranktally.evaluate.core.STVResult` otherwise.
        '''
        election = self._require(election_id, CLOSED, 'count')
        ballots = [ballot.ranking for ballot in self.store.get_ballots(election_id)]
        return self.count(election, ballots)

    def count(self, election: Election, ballots: Sequence[Ballot]):
        order = self.seeded_order(election)
        if election.seats == 1:
            return self.systems['irv'].evaluate(
                ballots, election.candidate_ids, order
            )
        else:
            return self.systems['stv'].evaluate(
                ballots, election.candidate_ids, order, election.seats
            )

    def receipts(self, election_id: int) -> List[str]:
        '''Return the receipts of a closed election in submission order.'''
        self._require(election_id, CLOSED, 'publish receipts of')
        return [ballot.receipt for ballot in self.store.get_ballots(election_id)]

    def ballots(self, election_id: int) -> List[Ballot]:
        '''Return the rankings of a closed election in submission order.'''
        self._require(election_id, CLOSED, 'publish ballots of')
        return [ballot.ranking for ballot in self.store.get_ballots(election_id)]

    def receipt_published(self, election_id: int, receipt: str) -> bool:
        return ranktally.component.receipt.receipt_included(
            receipt, self.receipts(election_id)
        )

    def audit_export(self,
                     election_id: int,
                     include_salts: bool = False,
                     ) -> Dict[str, Any]:
        '''Assemble the audit document of a closed election.

        See :mod:`ranktally.io.audit` for its structure.

        :param include_salts: Publish the ballot salts too, allowing anyone
            to recompute every receipt.
        '''
        election = self._require(election_id, CLOSED, 'export')
        stored = self.store.get_ballots(election_id)
        result = self.count(election, [ballot.ranking for ballot in stored])
        return ranktally.io.audit.build(
            election, stored, result, include_salts=include_salts
        )
