"""Ranktally - verifiable ranked-choice vote counting.

Ranktally counts ranked ballots in a way that any third party can reproduce
bit for bit, and lets voters check that their ballot was counted.

The library is organized as follows:

-   Ballots are normalized to their canonical form by the tools in the
    :mod:`vote` module before they are stored. Only canonical ballots are
    ever counted.
-   The :mod:`component` subpackage holds the building blocks of the count:
    the seeded tie-break order (:mod:`component.order`), salted ballot
    receipts (:mod:`component.receipt`), quota functions and surplus
    transferers.
-   The :mod:`evaluate` subpackage contains the counting engines themselves,
    instant-runoff voting for single seats and single transferable vote for
    multiple seats, which produce a full round-by-round history.
-   The :mod:`election` module ties these together around an explicit
    storage interface: candidates, one-time voter tokens, ballot submission
    and publication of results, receipts and ballots once an election is
    closed.
-   The :mod:`io` subpackage reads and writes audit exports and BLT ballot
    files, so that a count can be replayed outside the system that ran it.
"""

__version__ = '0.1.0'
