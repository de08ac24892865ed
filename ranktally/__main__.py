"""A commandline tool to recount ranked elections from exported ballots.

Reads an audit export or a BLT ballot file, counts it by instant-runoff
voting (one seat) or single transferable vote (more seats) and shows the
tallies of every round. Audit exports can also be verified against their
published results and receipts.
"""

import argparse
import io
import logging
import sys
from fractions import Fraction
from numbers import Number
from typing import Dict, List, Optional

import ranktally.io.audit
import ranktally.io.blt
import ranktally.component.receipt
from ranktally.candidate import CandidateId
from ranktally.evaluate.core import RoundResult
from ranktally.evaluate.sequential import exhausted_count
from ranktally.io.core import ElectionData, ParseError

argparser = argparse.ArgumentParser(
    description=__doc__,
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
)
argparser.add_argument(
    'input_file',
    nargs='?',
    type=argparse.FileType('r', encoding='utf8'),
    help='file to load the election from',
)
argparser.add_argument(
    '-I', '--use-stdin',
    action='store_true',
    help='load the election from standard input',
)
argparser.add_argument(
    '-f', '--input-format',
    choices=['audit', 'blt'],
    default='audit',
    help='format of the input file',
)
argparser.add_argument(
    '-n', '--n-seats',
    type=int,
    help=(
        'award this many seats (overrides the number given in the input'
        ' file)'
    ),
)
argparser.add_argument(
    '-s', '--seed',
    help=(
        'tie-break seed of the election; required for BLT input, overrides'
        ' the seed of an audit export'
    ),
)
argparser.add_argument(
    '-r', '--receipt',
    help='check that this receipt is among the published ones',
)
argparser.add_argument(
    '--verify',
    action='store_true',
    help='verify the results and receipts of an audit export',
)
argparser.add_argument(
    '-v', '--verbose',
    action='store_true',
    help='show all counting log messages',
)
argparser.add_argument(
    '-q', '--quiet',
    action='store_true',
    help='do not show any counting log messages',
)

INPUT_FORMATS = {
    'audit': ranktally.io.audit.load,
    'blt': ranktally.io.blt.load,
}

logger = logging.getLogger(__name__)


def main(input_file: Optional[io.TextIOBase] = None,
         use_stdin: bool = False,
         input_format: str = 'audit',
         n_seats: Optional[int] = None,
         seed: Optional[str] = None,
         receipt: Optional[str] = None,
         verify: bool = False,
         verbose: bool = False,
         quiet: bool = False,
         ) -> int:
    '''Run the tool; return the process exit code.'''
    logging.basicConfig(
        level=(
            logging.DEBUG if verbose
            else (logging.WARNING if quiet else logging.INFO)
        ),
        format='%(levelname)-10s %(message)s'
    )
    if use_stdin:
        input_file = sys.stdin
    try:
        data = load_election(input_file, input_format)
    except (ParseError, ValueError) as e:
        logger.error('cannot load election: %s', e)
        return 2
    if n_seats is not None:
        data.n_seats = n_seats
    if seed is not None:
        data.tie_break_seed = seed
    if data.tie_break_seed is None:
        logger.error('tie-break seed unknown, use --seed')
        return 2
    exit_code = 0
    if receipt is not None:
        if not check_receipt(data, receipt):
            exit_code = 1
    if verify:
        if input_format != 'audit':
            logger.error('only audit exports can be verified')
            return 2
        try:
            problems = ranktally.io.audit.verify(data)
        except ValueError as e:
            logger.error('cannot verify election: %s', e)
            return 2
        for problem in problems:
            print('FAILED:', problem)
        if problems:
            exit_code = 1
        else:
            print('Audit export verified')
    try:
        result = ranktally.io.audit.replay(data)
    except ValueError as e:
        logger.error('cannot count election: %s', e)
        return 2
    show_count(data, result)
    return exit_code


def load_election(input_file: io.TextIOBase,
                  input_format: str,
                  ) -> ElectionData:
    """Load an election from the given file, expecting the given format."""
    try:
        loader = INPUT_FORMATS[input_format]
    except KeyError as e:
        raise ValueError(
            f'invalid input file format: {input_format}, '
            'supported: ' + ', '.join(INPUT_FORMATS.keys())
        ) from e
    return loader(input_file)


def check_receipt(data: ElectionData, receipt: str) -> bool:
    if data.receipts is None:
        print('No receipts published')
        return False
    found = ranktally.component.receipt.receipt_included(
        receipt, data.receipts
    )
    print('Receipt found' if found else 'Receipt NOT found')
    return found


def format_votes(votes: Number) -> str:
    if isinstance(votes, Fraction) and votes.denominator != 1:
        return f'{float(votes):.4f}'
    return str(int(votes))


def show_count(data: ElectionData, result) -> None:
    names = data.candidate_names()
    print()
    if data.election_name:
        print(data.election_name)
    print(f'Received {len(data.ballots)} ballots for'
          f' {len(data.candidate_ids)} candidates')
    print(f'Awarding {data.n_seats} seats')
    quota = getattr(result, 'quota', None)
    if quota is not None:
        print(f'Quota: {format_votes(quota)}')
    for i, round_ in enumerate(result.rounds):
        print()
        print(f'Round {i + 1}')
        show_round(round_, names)
        if quota is None:
            print('    exhausted:', exhausted_count(data.ballots, round_))
    print()
    show_elected(result.winners, names)


def show_round(round_: RoundResult, names: Dict[CandidateId, str]) -> None:
    labels = [names.get(cand, str(cand)) for cand in round_.tallies]
    n_just_chars = max(len(label) for label in labels) if labels else 0
    for label, (cand, votes) in zip(labels, round_.tallies.items()):
        if cand == round_.eliminated:
            note = 'eliminated'
        elif cand in round_.elected:
            note = 'elected'
        else:
            note = ''
        print('   ', label.ljust(n_just_chars), ' ',
              format_votes(votes).rjust(10), ' ', note)


def show_elected(winners: List[CandidateId],
                 names: Dict[CandidateId, str],
                 ) -> None:
    if not winners:
        print('Nobody elected')
        return
    print('Elected:')
    for i, cand in enumerate(winners):
        print(str(i + 1).rjust(4), ' ', names.get(cand, str(cand)))


if __name__ == '__main__':
    args = argparser.parse_args()
    if not args.input_file and not args.use_stdin:
        argparser.print_usage()
    else:
        sys.exit(main(**vars(args)))
