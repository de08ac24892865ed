'''Named counting systems available to elections.

An election stores the key of its counting system; the key is resolved
through :data:`SYSTEMS` whenever the election is counted.
'''

from typing import Dict

import ranktally.evaluate.sequential
from ranktally.persist import simple_serialization


@simple_serialization
class VotingSystem:
    """A named voting system. Wraps a counting evaluator.

    :param name: Human-readable name of the system.
    :param evaluator: Evaluator representing the system.
    """
    def __init__(self, name: str, evaluator):
        self.name = name
        self.evaluator = evaluator

    def evaluate(self, *args, **kwargs):
        """Return the evaluator's results of the system for the ballots given."""
        return self.evaluator.evaluate(*args, **kwargs)


SYSTEMS: Dict[str, VotingSystem] = {
    'irv': VotingSystem(
        'Instant-Runoff Voting',
        ranktally.evaluate.sequential.InstantRunoff(),
    ),
    'stv': VotingSystem(
        'Single Transferable Vote (Droop, Gregory)',
        ranktally.evaluate.sequential.TransferableVote(
            quota_function='droop', transferer='Gregory',
        ),
    ),
}


def get(key: str) -> VotingSystem:
    '''Return a counting system by its key.'''
    try:
        return SYSTEMS[key]
    except KeyError:
        raise KeyError(f'unknown voting system {key!r}, available: '
                       + ', '.join(SYSTEMS.keys()))


def for_seats(n_seats: int) -> VotingSystem:
    '''Return the counting system for an election filling n_seats seats.'''
    return get('irv' if n_seats == 1 else 'stv')
