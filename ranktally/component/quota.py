'''Quota functions for transferable vote counting.

A quota function takes the total number of valid votes and the number of
seats to fill and returns the number of votes that guarantees election.
The unrounded quota functions return fractions to retain exact values.

All supported quota functions are assembled in the `QUOTAS` dictionary keyed
by their name. `get()` retrieves from this dictionary by string key;
`construct()` also accepts callables and passes them through.
'''

from fractions import Fraction
from typing import Callable, Dict, Union
from numbers import Number


QuotaFunction = Callable[[int, int], Number]

QUOTAS: Dict[str, QuotaFunction] = {}


def quota_mark(func: QuotaFunction) -> QuotaFunction:
    '''Register a quota function under its name.'''
    QUOTAS[func.__name__] = func
    return func


def get(quota_def: str) -> QuotaFunction:
    '''Return a quota function by its name.'''
    try:
        return QUOTAS[quota_def]
    except KeyError:
        raise KeyError(f'unknown quota: {quota_def}')


def construct(quota_def: Union[str, QuotaFunction]) -> QuotaFunction:
    '''Construct a quota function.

    Get a quota function by its name from the register. If a custom callable
    is given, pass it through unchanged.
    '''
    return quota_def if hasattr(quota_def, '__call__') else get(quota_def)


@quota_mark
def droop(votes: int, seats: int) -> int:
    '''Droop quota, the most widely used one.

    This is the smallest integer quota guaranteeing the number of passing
    candidates will not be higher than the number of seats:
    ``floor(votes / (seats + 1)) + 1``.
    '''
    return int(Fraction(votes, seats + 1)) + 1


@quota_mark
def hagenbach_bischoff(votes: int, seats: int) -> Fraction:
    '''Hagenbach-Bischoff quota, the exact (unrounded) Droop variant.'''
    return Fraction(votes, seats + 1)


@quota_mark
def hare(votes: int, seats: int) -> Fraction:
    '''Hare quota, the most basic one.

    This is the unrounded variant, giving the exact fraction.
    '''
    return Fraction(votes, seats)
