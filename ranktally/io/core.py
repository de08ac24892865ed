"""Shared functionality for ballot/election file I/O. Internal."""

from __future__ import annotations

import dataclasses
import typing
from typing import Any, List, Dict, Tuple, Callable, Iterable, TextIO, Optional

from ranktally.candidate import CandidateEntry, CandidateId, candidate_ids
from ranktally.vote import Ballot


class NotSupportedInFormat(Exception):
    """Signals that the given element is not supported by the I/O format."""

    FORMAT: str = NotImplemented

    def __init__(self, what: str):
        super().__init__(f'{what} not supported by {self.FORMAT}')


class ParseError(Exception):
    """An input that is invalid according to the given format was detected."""
    pass


@dataclasses.dataclass
class ElectionData:
    """A container for data returnable from an election file.

    Ballots are canonical and ordered as submitted. The remaining fields are
    filled only as far as the file format carries them.
    """
    ballots: List[Ballot]
    n_seats: int = 1
    candidates: List[CandidateEntry] = dataclasses.field(default_factory=list)
    election_name: Optional[str] = None
    tie_break_seed: Optional[str] = None
    max_rank: Optional[int] = None
    receipts: Optional[List[str]] = None
    salts: Optional[List[bytes]] = None
    results: Optional[Any] = None
    metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def candidate_ids(self) -> List[CandidateId]:
        return candidate_ids(self.candidates)

    def candidate_names(self) -> Dict[CandidateId, str]:
        return {cand.id: cand.name for cand in self.candidates}


def loaders(line_loader: Callable[..., ElectionData]
            ) -> Tuple[Callable[..., ElectionData], Callable[..., ElectionData]]:
    """Create load() and loads() functions from an iterating function."""
    return_annot = typing.get_type_hints(line_loader).get('return')
    if return_annot is None:
        return_annot = Any

    def load(file: TextIO, **kwargs) -> return_annot:
        return line_loader(iter(file), **kwargs)

    def loads(text: str, **kwargs) -> return_annot:
        return line_loader(iter(text.split('\n')), **kwargs)

    return load, loads


def dumpers(line_dumper: Callable[..., Iterable[str]]
            ) -> Tuple[Callable[..., None], Callable[..., str]]:
    """Create dump() and dumps() functions from a line generator function."""

    def dump(out_file: TextIO, *args, **kwargs) -> None:
        for line in line_dumper(*args, **kwargs):
            if not line.endswith('\n'):
                line += '\n'
            out_file.write(line)

    def dumps(*args, **kwargs) -> str:
        return ''.join(
            line + ('' if line.endswith('\n') else '\n')
            for line in line_dumper(*args, **kwargs)
        )

    return dump, dumps
