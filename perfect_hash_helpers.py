from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple
import math


CONFIG: Dict = {}


def set_config_helpers(cfg: Dict):
    """Initialize module-level CONFIG (copy) so helpers use the same settings as caller."""
    global CONFIG
    if isinstance(cfg, dict):
        CONFIG = cfg.copy()
    else:
        CONFIG = dict(cfg)


def debug(*args, **kwargs):
    if CONFIG.get("debug_output", False):
        print(*args, **kwargs)


def fmt_num(num) -> str:
    """Format a counter compactly: verbatim below one million, else 1.5M style."""
    if num < 1_000_000:
        return str(num)

    power = 0
    while num >= 1_000 and power < 4:
        num /= 1_000
        power += 1

    return f"{num:.1f}{['', 'K', 'M', 'B', 'T'][power]}"


def sum_sq(values: Iterable[Any]) -> int:
    """Sum of n^4 over the numeric entries; nested sequences are skipped."""
    s = 0
    for n in values:
        if isinstance(n, (list, tuple)):
            continue
        k = n * n
        s += k * k
    return s


def permutations(values: Sequence) -> Iterator[List]:
    """
    Yield every ordering of values as a fresh list.

    Each element in turn is removed, the remainder is permuted recursively
    and the removed element is appended to every sub-permutation, so k
    values give exactly k! lists. Emission order is deterministic for a
    given input but is not lexicographic.
    """
    if len(values) <= 1:
        yield list(values)
        return

    for i in range(len(values)):
        value = values[i]
        rest = list(values[:i]) + list(values[i + 1 :])

        for perm in permutations(rest):
            perm.append(value)
            yield perm


class IntRange:
    """Half-open integer interval [low, high) that can be iterated repeatedly."""

    def __init__(self, low, high):
        for bound in (low, high):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise TypeError(f"IntRange bounds must be integers, got {bound!r}")
        self.low = low
        self.high = high

    @property
    def size(self) -> int:
        return math.floor(self.high - self.low)

    def __len__(self) -> int:
        return max(self.size, 0)

    def __iter__(self):
        return iter(range(self.low, self.high))

    def __repr__(self) -> str:
        return f"IntRange({self.low}, {self.high})"


def _reiterable(dimension: Iterable) -> Iterable:
    """One-shot iterators are materialized; inner dimensions are walked many times."""
    if iter(dimension) is dimension:
        return list(dimension)
    return dimension


def selections(*dimensions: Iterable) -> Iterator[Tuple]:
    """
    Yield every combination of one value per dimension as a tuple.

    Prefix dimensions are combined first and the last dimension runs in the
    inner loop, so the last dimension varies fastest. Tuples are produced on
    demand; only the current chain of partial tuples is held.
    """
    # the outermost dimension is walked once, so it may stay lazy
    dims = list(dimensions[:1]) + [_reiterable(d) for d in dimensions[1:]]

    def _select(index: int) -> Iterator[Tuple]:
        if index < 0:
            yield ()
            return

        for parent in _select(index - 1):
            for value in dims[index]:
                yield parent + (value,)

    yield from _select(len(dims) - 1)


def dimension_size(dimension: Iterable) -> int:
    """Number of values a dimension contributes to the product."""
    try:
        return len(dimension)
    except TypeError:
        return sum(1 for _ in dimension)


def estimate_total_iterations(dimensions: Sequence[Iterable]) -> int:
    """Size of the full Cartesian product of dimensions."""
    total = 1
    for d in dimensions:
        total *= dimension_size(d)
    return total


#
# CLASSES
#


class MaxCounter:
    """
    Keeps the highest score seen and every candidate that reached it.
    A strictly higher score clears the list; ties are appended in order.
    Scores of 0 are never retained.
    """

    def __init__(self):
        self.max_val = 0
        self.records: List[Any] = []

    def record(self, value: int, info: Any):
        if value > self.max_val:
            self.max_val = value
            self.records.clear()
            debug(f"[SEARCH] New best score={value} candidate={info}")

        if value == self.max_val and value > 0:
            self.records.append(info)

    def __repr__(self) -> str:
        return f"MaxCounter(max_val={self.max_val}, records={len(self.records)})"


def merge_counters(counters: Iterable[MaxCounter]) -> MaxCounter:
    """
    Combine independently filled counters into one.
    Counters whose local max is below the global max contribute nothing;
    tied lists are concatenated in the order the counters are given.
    """
    counters = list(counters)
    merged = MaxCounter()
    if not counters:
        return merged

    merged.max_val = max(c.max_val for c in counters)
    if merged.max_val <= 0:
        return merged

    for c in counters:
        if c.max_val == merged.max_val:
            merged.records.extend(c.records)
    return merged
