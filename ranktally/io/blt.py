'''Load and dump ranked ballots in the BLT format.

BLT files, as read and written by OpenSTV and many other STV counters, start
with a header line giving the number of candidates and seats, optionally
followed by lines of withdrawn candidates (negative 1-based indices). Each
ballot line holds a weight, 1-based candidate indices in order of preference
and a terminating zero; a lone zero ends the ballot list. Candidate names and
the election title follow as double-quoted strings.

Candidates are assigned identifiers equal to their 1-based BLT index.
Weighted lines are expanded into as many individual ballots, so only whole
weights are supported. Withdrawn candidates are left out of the candidate
list and dropped from the ballots.
'''

import logging
from collections import Counter
from decimal import Decimal, InvalidOperation
from numbers import Number
from typing import List, Tuple, Set, Iterable, Optional, Sequence

import ranktally.io.core
from ranktally.candidate import CandidateEntry
from ranktally.io.core import ElectionData
from ranktally.vote import Ballot, canonicalize


logger = logging.getLogger(__name__)


class NotSupportedInBLT(ranktally.io.core.NotSupportedInFormat):
    FORMAT = 'BLT file'


class BLTParseError(ranktally.io.core.ParseError):
    pass


def dump_lines(ballots: Sequence[Ballot],
               n_seats: int,
               candidates: Sequence[CandidateEntry],
               election_name: Optional[str] = None,
               ) -> Iterable[str]:
    '''Generate the lines of a BLT file.

    Identical ballots are grouped into a single weighted line, in the order
    of their first appearance.

    :param ballots: Canonical ballots.
    :param n_seats: Number of seats to fill.
    :param candidates: Candidates in the order of their BLT indices.
    :param election_name: Title of the election, if any.
    '''
    indices = {cand.id: i + 1 for i, cand in enumerate(candidates)}
    yield _dump_numline([len(candidates), n_seats])
    for ballot, n_votes in Counter(tuple(b) for b in ballots).items():
        yield _dump_numline(_dump_vote(ballot, indices, n_votes))
    yield _dump_numline([0])
    for cand in candidates:
        yield _dump_strline(cand.name)
    if election_name is not None:
        yield _dump_strline(election_name)


dump, dumps = ranktally.io.core.dumpers(dump_lines)


def _dump_vote(ballot: Ballot, indices, n_votes: int) -> List[int]:
    try:
        cand_indices = [indices[cand] for cand in ballot]
    except KeyError as e:
        raise NotSupportedInBLT(f'ballot with unlisted candidate {e}')
    return [n_votes] + cand_indices + [0]


def _dump_numline(nums: List[Number]) -> str:
    return ' '.join(str(num) for num in nums)


def _dump_strline(string: str) -> str:
    return f'"{string}"'


def load_lines(blt_lines: Iterable[str]) -> ElectionData:
    try:
        n_cands, n_seats = _parse_header(next(blt_lines))
    except StopIteration as e:
        raise BLTParseError('empty BLT file') from e
    weighted, withdrawn = _parse_body(blt_lines, n_cands)
    names, election_name = _parse_strings(blt_lines, n_cands)
    if names is None:
        names = [str(i + 1) for i in range(n_cands)]
    candidates = [
        CandidateEntry(i + 1, name, sort_index=i)
        for i, name in enumerate(names)
        if i + 1 not in withdrawn
    ]
    valid = frozenset(cand.id for cand in candidates)
    ballots = []
    for raw, weight in weighted:
        ballot = canonicalize(raw, valid)
        if not ballot:
            logger.warning('skipping %d ballots with no valid candidate',
                           weight)
            continue
        ballots.extend([ballot] * weight)
    return ElectionData(
        ballots=ballots,
        n_seats=n_seats,
        candidates=candidates,
        election_name=election_name,
    )


load, loads = ranktally.io.core.loaders(load_lines)


def _parse_header(blt_line: str) -> Tuple[int, int]:
    blt_result = _parse_numline(blt_line)
    if len(blt_result) == 2 and all(num > 0 for num in blt_result):
        return tuple(blt_result)
    else:
        raise BLTParseError(f'need two positive integers (candidate and seat'
                            f' count) in BLT file header line,'
                            f' got {blt_result!r}')


def _parse_body(blt_lines: Iterable[str],
                n_cands: int,
                ) -> Tuple[List[Tuple[Tuple[int, ...], int]], Set[int]]:
    ballots = []
    withdrawn = set()
    ballots_encountered = False
    for line in blt_lines:
        result = _parse_numline(line, allow_first_decimal=True)
        if not result:
            continue    # ignore empty lines
        elif result == [0]:
            return ballots, withdrawn
        elif result[0] < 0:
            if ballots_encountered:
                raise BLTParseError('withdrawn candidate line after ballot'
                                    f' line: {line!r}')
            # Withdrawn candidates. Allow more than one per line.
            withdrawn.update(-n for n in result)
        else:
            weight, ballot = _parse_ballot(result)
            out_of_range = [i for i in ballot if not 1 <= i <= n_cands]
            if out_of_range:
                raise BLTParseError(f'candidate index out of range in ballot'
                                    f' line: {line!r}')
            ballots.append((ballot, weight))
            ballots_encountered = True
    raise BLTParseError('incomplete BLT file:'
                        ' EOF before ballot list terminator')


def _parse_strings(blt_lines: Iterable[str],
                   n_cands: int,
                   ) -> Tuple[Optional[List[str]], Optional[str]]:
    parsed_lines = []
    empty_encountered = False
    for blt_line in blt_lines:
        blt_line = _clean_line(blt_line)
        if blt_line.startswith('"') and blt_line.endswith('"') \
                and len(blt_line) > 1:
            if empty_encountered:
                raise BLTParseError(f'nonempty line after empty: {blt_line!r}')
            parsed_lines.append(blt_line[1:-1])
        elif not blt_line:
            empty_encountered = True
        else:
            raise BLTParseError(f'invalid BLT string line: {blt_line!r}')
    if not parsed_lines:
        return None, None
    elif len(parsed_lines) < n_cands:
        raise BLTParseError(f'not enough candidate names: {len(parsed_lines)}'
                            f' given, {n_cands} set in header')
    elif len(parsed_lines) == n_cands:
        return parsed_lines, None
    elif len(parsed_lines) == n_cands + 1:
        return parsed_lines[:-1], parsed_lines[-1]
    else:
        raise BLTParseError(f'too many strings: {len(parsed_lines)} found'
                            f' but expecting {n_cands} candidate names + title')


def _clean_line(blt_line: str) -> str:
    blt_line = blt_line.strip()
    # Ignore everything after the first hash sign after the last double quote.
    hash_search_start = blt_line.rfind('"') if '"' in blt_line else 0
    leftmost_hash = blt_line[hash_search_start:].find('#')
    if leftmost_hash == -1:
        return blt_line
    else:
        return blt_line[:(hash_search_start + leftmost_hash)].rstrip()


def _parse_ballot(nums: List[int]) -> Tuple[int, Tuple[int, ...]]:
    # The first element is weight, the rest are candidate indices, the last
    # one must be zero.
    if nums[-1] != 0:
        raise BLTParseError('ballot line must be zero-terminated,'
                            f' got {nums!r}')
    nums = nums[:-1]
    return nums[0], tuple(nums[1:])


def _parse_numline(blt_line: str,
                   allow_first_decimal: bool = False,
                   ) -> List[int]:
    blt_line = _clean_line(blt_line)
    if not blt_line:
        return []
    nums = []
    for i, numstr in enumerate(blt_line.split()):
        if numstr.isdecimal():
            nums.append(int(numstr))
        elif numstr.startswith('-') and numstr[1:].isdecimal():
            nums.append(int(numstr))
        elif i == 0 and allow_first_decimal:
            nums.append(_parse_weight(numstr))
        else:
            raise BLTParseError(f'invalid BLT numberline item {i}: {numstr!r}')
    return nums


def _parse_weight(numstr: str) -> int:
    try:
        weight = Decimal(numstr)
    except InvalidOperation as e:
        raise BLTParseError(f'invalid BLT ballot weight: {numstr!r}') from e
    if not weight.is_finite() or weight != weight.to_integral_value() \
            or weight < 0:
        raise BLTParseError(f'only whole ballot weights are supported,'
                            f' got {numstr!r}')
    return int(weight)
