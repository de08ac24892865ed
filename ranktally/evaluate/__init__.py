'''Count the ballots of ranked elections.

Two counting engines are provided by the :mod:`sequential` module:
instant-runoff voting for a single seat and the single transferable vote
for more. Both evaluate canonical ballots (see :mod:`ranktally.vote`) and
return results with the complete history of counting rounds, so that each
elimination and election can be traced and audited.

Evaluators never produce ties in their results. Wherever the votes alone
cannot decide, the seeded order of the election (see
:mod:`ranktally.component.order`) is consulted.
'''

from ranktally.evaluate.core import *    # noqa
