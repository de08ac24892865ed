'''Salted ballot receipts.

When a ballot is accepted, the voter gets a receipt - a SHA-256 digest of
a fresh random salt followed by the serialized canonical ranking. The
receipt reveals nothing about the ranking to anyone without the salt, but
once the salts and ballots are published for audit, anybody can recompute
every receipt and a voter can confirm that their receipt is among those
published.

The serialization of rankings (:data:`RANKING_ENCODING`) is part of the
commitment and must never change: a JSON array of decimal integers in
ballot order without any whitespace, e.g. ``[3,1,2]``, encoded in ASCII.
'''

import hmac
import json
import hashlib
import secrets
from typing import Iterable, Sequence

from ranktally.candidate import CandidateId


RANKING_ENCODING = 'json-compact/v1'

SALT_BYTES = 32


def serialize_ranking(ranking: Sequence[CandidateId]) -> bytes:
    '''Serialize a canonical ranking into its committed byte form.'''
    for cand in ranking:
        if not isinstance(cand, int) or isinstance(cand, bool):
            raise TypeError(f'ranking must contain integer candidate'
                            f' identifiers, got {cand!r}')
    return json.dumps(
        [int(cand) for cand in ranking],
        separators=(',', ':'),
    ).encode('ascii')


def generate_salt() -> bytes:
    '''Generate a fresh salt for a single ballot.

    Salts come from the operating system's cryptographically secure random
    source; they must not be derivable from anything public such as the
    order of submission or a timestamp.
    '''
    return secrets.token_bytes(SALT_BYTES)


def receipt_for(ranking: Sequence[CandidateId], salt: bytes) -> str:
    '''Compute the receipt hash of a ranking.

    :param ranking: Canonical ranking of the ballot.
    :param salt: The ballot's salt.
    :returns: Hex-encoded SHA-256 of the salt followed by the serialized
        ranking.
    '''
    if not isinstance(salt, (bytes, bytearray)):
        raise TypeError(f'salt must be bytes, got {type(salt).__name__}')
    if not salt:
        raise ValueError('salt must not be empty')
    return hashlib.sha256(bytes(salt) + serialize_ranking(ranking)).hexdigest()


def verify_receipt(receipt: str,
                   ranking: Sequence[CandidateId],
                   salt: bytes,
                   ) -> bool:
    '''Check that a receipt matches a published ranking and salt.'''
    if not isinstance(receipt, str):
        return False
    return hmac.compare_digest(
        receipt.lower().encode('ascii', 'replace'),
        receipt_for(ranking, salt).encode('ascii'),
    )


def receipt_included(receipt: str, published: Iterable[str]) -> bool:
    '''Check whether a receipt appears in a published receipt list.'''
    receipt = receipt.strip().lower()
    return any(receipt == other.lower() for other in published)
