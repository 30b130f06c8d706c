"""Listing options and helpers for sorted block enumeration.

Backends receive already-validated ``ListOptions``; ``select_stats`` applies
them to a sorted stat sequence for stores that cannot filter natively.
``StatCursor`` and ``merge_block_lists`` walk several sorted listings at once
without materializing any of them.
"""

from itertools import dropwhile, islice
from typing import Iterable, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .errors import InvalidArgumentError
from .multihash import Algorithm
from .utils import is_hex


class ListOptions(BaseModel):
    """Validated listing options. Unset fields apply no constraint."""
    model_config = ConfigDict(frozen=True)

    algorithm: Optional[Algorithm] = None
    after: Optional[str] = None      # Exclusive hex cursor
    limit: Optional[int] = None


def validate_list_options(options: Optional[Mapping] = None) -> ListOptions:
    """
    Validate raw listing options.

    Args:
        options: Mapping with any of ``algorithm``, ``after``, ``limit``

    Returns:
        ListOptions with normalized values

    Raises:
        InvalidArgumentError: Naming the offending key and value
    """
    if options is None:
        return ListOptions()
    if isinstance(options, ListOptions):
        return options
    if not isinstance(options, Mapping):
        raise InvalidArgumentError(f"List options must be a mapping, got {options!r}")

    clean = {}
    for key, value in options.items():
        if value is None:
            continue
        if key == "algorithm":
            try:
                clean[key] = Algorithm.parse(value)
            except InvalidArgumentError:
                raise InvalidArgumentError(
                    f"Option 'algorithm' must be a known digest algorithm tag, got {value!r}"
                ) from None
        elif key == "after":
            if not is_hex(value):
                raise InvalidArgumentError(
                    f"Option 'after' must be a lowercase hex string, got {value!r}"
                )
            clean[key] = value
        elif key == "limit":
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise InvalidArgumentError(
                    f"Option 'limit' must be a positive integer, got {value!r}"
                )
            clean[key] = value
        else:
            raise InvalidArgumentError(f"Unknown list option {key!r} with value {value!r}")
    return ListOptions(**clean)


def select_stats(options: ListOptions, stats: Iterable) -> Iterator:
    """Lazily apply listing options to an ascending stat sequence."""
    selected = iter(stats)
    if options.algorithm is not None:
        algorithm = options.algorithm
        selected = (s for s in selected if s.id.algorithm is algorithm)
    if options.after is not None:
        after = options.after
        selected = dropwhile(lambda s: s.id.hex <= after, selected)
    if options.limit is not None:
        selected = islice(selected, options.limit)
    return selected


class StatCursor:
    """Explicit cursor over a sorted stat sequence.

    ``current`` holds the next unconsumed stat, or None once exhausted.
    Only one element is ever held in memory.
    """

    def __init__(self, stats: Iterable):
        self._stats = iter(stats)
        self.current = None
        self.advance()

    @property
    def done(self) -> bool:
        return self.current is None

    def advance(self) -> None:
        self.current = next(self._stats, None)


def merge_block_lists(*lists: Iterable) -> Iterator:
    """
    Merge sorted stat listings into one sorted sequence.

    Yields one entry per unique id; when several listings hold the same id the
    entry from the first such listing wins. Inputs are consumed lazily and must
    already be in ascending id order.
    """
    cursors = [StatCursor(stats) for stats in lists]
    while True:
        live = [c for c in cursors if not c.done]
        if not live:
            return
        earliest = min(live, key=lambda c: c.current.id)
        entry = earliest.current
        for cursor in live:
            if cursor.current.id == entry.id:
                cursor.advance()
        yield entry
