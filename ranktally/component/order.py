'''Seeded tie-break order of candidates.

Every election fixes a random seed string when it is created. The seed is
expanded into a permutation of the candidate identifiers, and whenever
candidates are tied for elimination, the one appearing earliest in this
permutation is eliminated. The permutation never influences the counting of
preferences themselves.

Since anybody must be able to recount an election and arrive at the same
eliminations, the permutation is fully specified here instead of relying on
the standard library :mod:`random` module, whose generator is an
implementation detail of Python. The generator (versioned as
:data:`ORDER_ALGORITHM`) is the ARC4-based stream of the ``seedrandom``
JavaScript library, which makes orders computed here identical to those of
browser-side verifiers:

1.  The seed string is mixed into a key of at most 256 bytes. For the j-th
    UTF-16 code unit ``c`` of the seed, if the key byte ``j & 255`` is
    already set, ``smear ^= key[j & 255] * 19``; then
    ``key[j & 255] = (smear + c) & 255``. An empty key is treated as ``[0]``.
2.  The key schedules a standard RC4 state and the first 256 output bytes
    are discarded (RC4-drop[256]).
3.  Each uniform double takes six output bytes as the numerator over
    ``2 ** 48`` and then appends further bytes until 52 significant bits
    are filled (see :meth:`ARC4Random.random`).

The permutation is a Fisher-Yates shuffle of the identifiers sorted in
ascending order, drawing ``j = floor(random() * (i + 1))`` for ``i`` from the
last index down to 1. Shuffling the sorted identifiers makes the order depend
only on the seed and the set of candidates, not on the order in which they are
listed on the ballot. Counters that shuffle in ballot order instead produce
the same permutation only when the ballot order is ascending by identifier.
'''

import math
import secrets
from typing import Iterable, List

from ranktally.candidate import CandidateId


ORDER_ALGORITHM = 'arc4-drop256/v1'

WIDTH = 256
MASK = WIDTH - 1
CHUNKS = 6
START_DENOM = WIDTH ** CHUNKS
SIGNIFICANCE = 2 ** 52
OVERFLOW = SIGNIFICANCE * 2

SEED_BYTES = 16


def _code_units(seed: str) -> List[int]:
    # JavaScript strings are sequences of UTF-16 code units.
    encoded = seed.encode('utf-16-le', 'surrogatepass')
    return [
        int.from_bytes(encoded[i:i+2], 'little')
        for i in range(0, len(encoded), 2)
    ]


def mix_key(seed: str) -> List[int]:
    '''Derive the RC4 key bytes from a seed string.'''
    key = []
    smear = 0
    for j, code in enumerate(_code_units(seed)):
        pos = j & MASK
        if pos < len(key):
            smear ^= key[pos] * 19
            key[pos] = MASK & (smear + code)
        else:
            key.append(MASK & (smear + code))
    return key


class ARC4Random:
    '''Deterministic pseudorandom generator keyed by a seed string.

    Not suitable for anything secret: the generator is only as unpredictable
    as its seed, and it is meant to be reproduced by anyone who knows it.

    :param seed: The seed string.
    '''
    def __init__(self, seed: str):
        key = mix_key(seed)
        if not key:
            key = [0]
        state = list(range(WIDTH))
        j = 0
        for i in range(WIDTH):
            j = MASK & (j + key[i % len(key)] + state[i])
            state[i], state[j] = state[j], state[i]
        self._state = state
        self._i = 0
        self._j = 0
        # RC4-drop[256]
        for _ in range(WIDTH):
            self._next_byte()

    def _next_byte(self) -> int:
        state = self._state
        self._i = i = MASK & (self._i + 1)
        t = state[i]
        self._j = j = MASK & (self._j + t)
        state[i] = state[j]
        state[j] = t
        return state[MASK & (state[i] + state[j])]

    def next_bytes(self, count: int) -> int:
        '''Return the next count output bytes as one big-endian integer.'''
        result = 0
        for _ in range(count):
            result = result * WIDTH + self._next_byte()
        return result

    def random(self) -> float:
        '''Return a double in [0, 1) with all 52 mantissa bits random.'''
        n = self.next_bytes(CHUNKS)
        d = START_DENOM
        x = 0
        while n < SIGNIFICANCE:
            n = (n + x) * WIDTH
            d *= WIDTH
            x = self.next_bytes(1)
        while n >= OVERFLOW:
            # n is a multiple of WIDTH here, so halving stays exact
            n //= 2
            d //= 2
            x >>= 1
        return (n + x) / d

    def randbelow(self, n: int) -> int:
        '''Return an integer in [0, n) as ``floor(random() * n)``.'''
        return math.floor(self.random() * n)


def seeded_order(candidate_ids: Iterable[CandidateId],
                 seed: str,
                 ) -> List[CandidateId]:
    '''Derive the tie-break permutation of candidates from a seed.

    :param candidate_ids: Identifiers of all candidates in the election.
        Their order does not matter; they are shuffled in ascending order.
    :param seed: The election's tie-break seed.
    :returns: A permutation of the identifiers. Candidates earlier in the
        list lose ties for elimination.
    :raises ValueError: If an identifier is repeated.
    '''
    ids = sorted(candidate_ids)
    if len(set(ids)) != len(ids):
        raise ValueError(f'duplicate candidate identifiers: {ids!r}')
    rng = ARC4Random(seed)
    for i in range(len(ids) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        ids[i], ids[j] = ids[j], ids[i]
    return ids


def generate_seed() -> str:
    '''Generate a fresh tie-break seed for a new election.'''
    return secrets.token_hex(SEED_BYTES)
