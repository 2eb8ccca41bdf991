import concurrent.futures
import multiprocessing
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from perfect_hash_implementation import (
    KEYWORDS,
    InvalidConfigurationError,
    base_hash,
    check_table_size,
    count_slots,
    java_hash,
)
from perfect_hash_helpers import (
    IntRange,
    MaxCounter,
    dimension_size,
    estimate_total_iterations,
    fmt_num,
    merge_counters,
    permutations,
    selections,
    set_config_helpers,
    sum_sq,
)


CONFIG: Dict = {}

_STOP_EVENT = None
_KEYBOARD_INTERRUPT_FLAG = False


def set_keyboard_interrupt() -> None:
    """Mark that a KeyboardInterrupt was seen."""
    global _KEYBOARD_INTERRUPT_FLAG
    _KEYBOARD_INTERRUPT_FLAG = True


def clear_keyboard_interrupt() -> None:
    """Clear the KeyboardInterrupt flag."""
    global _KEYBOARD_INTERRUPT_FLAG
    _KEYBOARD_INTERRUPT_FLAG = False


def was_keyboard_interrupted() -> bool:
    """Query whether a KeyboardInterrupt has been signalled."""
    return bool(_KEYBOARD_INTERRUPT_FLAG)


def _worker_initializer(stop_event, config_dict):
    """Initialize worker process with shared stop event and CONFIG."""
    global _STOP_EVENT
    _STOP_EVENT = stop_event
    set_config(config_dict)
    set_config_helpers(config_dict)


def _should_stop() -> bool:
    """Check if worker should stop (cooperative cancellation)."""
    return _STOP_EVENT is not None and _STOP_EVENT.is_set()


def set_config(cfg: Dict):
    """Initialize module-level CONFIG."""
    global CONFIG
    if isinstance(cfg, dict):
        CONFIG = cfg.copy()
    else:
        CONFIG = dict(cfg)


def debug(*args, **kwargs):
    """Print only when CONFIG['debug_output'] is True."""
    if CONFIG.get("debug_output", False):
        print(*args, **kwargs)


#
# HASH VARIANTS
#


class HashVariant:
    """
    One hash formula together with the search space of its parameters.
    Candidates are tuples laid out in the same order as the dimensions.
    """

    def __init__(
        self,
        name: str,
        description: str,
        dimensions_factory: Callable[[], List[Iterable]],
        hash_factory: Callable[[Tuple], Callable[[str], int]],
        table_size_index: int,
        sort_key: Callable[[Tuple], Any],
    ):
        self.name = name
        self.description = description
        self._dimensions_factory = dimensions_factory
        self._hash_factory = hash_factory
        self.table_size_index = table_size_index
        self.sort_key = sort_key

    def dimensions(self) -> List[Iterable]:
        """Build the dimensions from the current CONFIG."""
        return self._dimensions_factory()

    def build_hash(self, candidate: Tuple) -> Callable[[str], int]:
        return self._hash_factory(candidate)

    def table_size(self, candidate: Tuple) -> int:
        return candidate[self.table_size_index]

    def __repr__(self) -> str:
        return f"HashVariant({self.name!r})"


def _java_dimensions() -> List[Iterable]:
    low, high = CONFIG.get("java_base_range", (0, 1000))
    return [
        IntRange(low, high),
        list(CONFIG.get("java_slot_counts", [64, 128, 256])),
        list(permutations(CONFIG.get("java_positions", [0, 1, 2, 3]))),
    ]


def _java_candidate_hash(candidate: Tuple) -> Callable[[str], int]:
    base, _, perm = candidate
    return java_hash(base, perm)


def _base_dimensions() -> List[Iterable]:
    low, high = CONFIG.get("base_range", (0, 64))
    base_range = IntRange(low, high)
    return [
        list(CONFIG.get("base_slot_counts", [64])),
        list(permutations(CONFIG.get("base_positions", [0, 1, 2, 3, 4]))),
        base_range,
        base_range,
        base_range,
        base_range,
    ]


def _base_candidate_hash(candidate: Tuple) -> Callable[[str], int]:
    _, perm, base0, base1, base2, base3 = candidate
    return base_hash(perm, base0, base1, base2, base3)


def _base_sort_key(candidate: Tuple) -> int:
    # smaller tables first, then the smoothest bases
    return candidate[0] * 1000 + sum_sq(candidate)


VARIANTS: Dict[str, HashVariant] = {
    "java": HashVariant(
        name="java",
        description="base^3..base^0 weights over four sampled offsets",
        dimensions_factory=_java_dimensions,
        hash_factory=_java_candidate_hash,
        table_size_index=1,
        sort_key=lambda candidate: candidate[1],
    ),
    "base": HashVariant(
        name="base",
        description="four mixed-base weights over offsets 0-3 and the last character",
        dimensions_factory=_base_dimensions,
        hash_factory=_base_candidate_hash,
        table_size_index=0,
        sort_key=_base_sort_key,
    ),
}


def get_variant(name: str) -> HashVariant:
    if name not in VARIANTS:
        raise ValueError(
            f"Unknown hash variant '{name}' (expected one of {sorted(VARIANTS)})"
        )
    return VARIANTS[name]


def rank_records(variant: HashVariant, records: Iterable[Tuple]) -> List[Tuple]:
    """Stable sort of tied candidates by the variant's tie-break key."""
    return sorted(records, key=variant.sort_key)


def partition_dimension_index(dimensions: Sequence[Iterable]) -> Optional[int]:
    """
    Index of the outermost dimension with more than one value, or None.
    Every dimension before it is a singleton, so splitting it into contiguous
    chunks keeps the serial emission order when chunk results are concatenated.
    """
    for i, d in enumerate(dimensions):
        if dimension_size(d) > 1:
            return i
    return None


def partition_values(values: Sequence, parts: int) -> List[List]:
    """Split values into at most `parts` contiguous, near-equal chunks."""
    values = list(values)
    parts = max(1, min(parts, len(values)))
    step, extra = divmod(len(values), parts)
    chunks = []
    start = 0
    for i in range(parts):
        end = start + step + (1 if i < extra else 0)
        chunks.append(values[start:end])
        start = end
    return [c for c in chunks if c]


#
# SEARCH DRIVER
#


class PerfectHashSearcher:
    """
    Exhaustive search over one hash variant's parameter space.
    Scores every candidate against the key set and keeps all candidates that
    reach the highest number of distinct slots.
    """

    def __init__(
        self,
        variant,
        keys: Optional[Iterable[str]] = None,
        config: Optional[Dict] = None,
        stop_event=None,
    ):
        if config is not None:
            set_config(config)
            set_config_helpers(config)
        self.variant = get_variant(variant) if isinstance(variant, str) else variant
        self.keys = list(keys) if keys is not None else list(KEYWORDS)
        self.progress_interval = CONFIG.get("progress_interval", 1 << 20)
        self.stop_event = stop_event
        self.iterations = 0

        debug(
            f"PerfectHashSearcher(variant={self.variant.name}, keys={len(self.keys)}, "
            f"progress_interval={self.progress_interval})"
        )

    def validate(self, dimensions: Sequence[Iterable]):
        """Reject configurations that would make scores meaningless."""
        if not self.keys:
            raise InvalidConfigurationError("key set is empty")
        if (
            isinstance(self.progress_interval, bool)
            or not isinstance(self.progress_interval, int)
            or self.progress_interval <= 0
        ):
            raise InvalidConfigurationError(
                f"progress_interval must be a positive integer, got {self.progress_interval!r}"
            )
        for table_size in dimensions[self.variant.table_size_index]:
            check_table_size(table_size)

    def should_stop(self) -> bool:
        if self.stop_event is not None and self.stop_event.is_set():
            return True
        return _should_stop()

    def report_progress(self, iterations: int, estimate: int):
        if CONFIG.get("intermediate_output", True):
            print(f"iter {fmt_num(iterations)} / {fmt_num(estimate)}")

    def evaluate(
        self,
        dimensions: Sequence[Iterable],
        counter: MaxCounter,
        estimate: Optional[int] = None,
    ) -> bool:
        """
        Score every candidate of the product of dimensions into counter.
        Progress is printed (when estimate is given) and the stop flag is
        checked once per progress interval. Returns True if stopped early.
        """
        variant = self.variant
        keys = self.keys
        interval = self.progress_interval

        for candidate in selections(*dimensions):
            hash_fn = variant.build_hash(candidate)
            score = count_slots(hash_fn, variant.table_size(candidate), keys)
            counter.record(score, candidate)

            self.iterations += 1
            if self.iterations % interval == 0:
                if estimate is not None:
                    self.report_progress(self.iterations, estimate)
                if self.should_stop():
                    debug(f"[STOP] Stop requested after {self.iterations} iterations")
                    return True
        return False

    def search(self) -> Dict:
        """Run the whole search and return the best score with its ranked candidates."""
        clear_keyboard_interrupt()
        self.iterations = 0

        dimensions = self.variant.dimensions()
        self.validate(dimensions)
        estimate = estimate_total_iterations(dimensions)

        workers = CONFIG.get("search_workers", 1)
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise InvalidConfigurationError(
                f"search_workers must be a positive integer, got {workers!r}"
            )

        if workers > 1 and partition_dimension_index(dimensions) is not None:
            counter, stopped = self._search_parallel(dimensions, estimate, workers)
        else:
            counter, stopped = self._search_serial(dimensions, estimate)

        return {
            "variant": self.variant.name,
            "max_score": counter.max_val,
            "records": rank_records(self.variant, counter.records),
            "iterations": self.iterations,
            "estimate": estimate,
            "stopped": stopped,
            "interrupted": was_keyboard_interrupted(),
        }

    def _search_serial(
        self, dimensions: Sequence[Iterable], estimate: int
    ) -> Tuple[MaxCounter, bool]:
        counter = MaxCounter()
        try:
            stopped = self.evaluate(dimensions, counter, estimate)
        except KeyboardInterrupt:
            if CONFIG.get("intermediate_output", True):
                print(
                    f"\n[KEYBOARD-INTERRUPT] Ctrl+C detected after {fmt_num(self.iterations)} iterations, "
                    f"keeping results so far..."
                )
            set_keyboard_interrupt()
            stopped = True
        return counter, stopped

    def _search_parallel(
        self, dimensions: Sequence[Iterable], estimate: int, workers: int
    ) -> Tuple[MaxCounter, bool]:
        split_index = partition_dimension_index(dimensions)
        chunks = partition_values(
            list(dimensions[split_index]),
            workers * CONFIG.get("partitions_per_worker", 4),
        )
        worker_args = [
            (self.variant.name, self.keys, split_index, chunk)
            for chunk in chunks
        ]

        if CONFIG.get("intermediate_output", True):
            print(
                f"[SEARCH] Splitting dimension {split_index} into {len(worker_args)} "
                f"partitions across {min(workers, len(worker_args))} workers"
            )

        results: List[Optional[Tuple]] = [None] * len(worker_args)
        manager = multiprocessing.Manager()
        stop_event = manager.Event()
        stopped = False
        poll_seconds = CONFIG.get("stop_poll_seconds", 0.5)

        if self.should_stop():
            stop_event.set()

        try:
            with concurrent.futures.ProcessPoolExecutor(
                max_workers=min(workers, len(worker_args)),
                initializer=_worker_initializer,
                initargs=(stop_event, CONFIG),
            ) as executor:
                future_index = {
                    executor.submit(search_partition_worker, args): i
                    for i, args in enumerate(worker_args)
                }
                pending = set(future_index)

                try:
                    while pending:
                        # forward the caller's stop to the workers' shared event
                        if self.should_stop():
                            stop_event.set()
                            stopped = True
                            for f in pending:
                                f.cancel()
                            break

                        done, pending = concurrent.futures.wait(
                            pending,
                            timeout=poll_seconds,
                            return_when=concurrent.futures.FIRST_COMPLETED,
                        )
                        for future in done:
                            i = future_index[future]
                            results[i] = future.result()
                            self.iterations += results[i][2]
                            self.report_progress(self.iterations, estimate)
                            debug(
                                f"[WORKER] Partition {i + 1}/{len(worker_args)} done: "
                                f"max={results[i][0]} tied={len(results[i][1])}"
                            )

                except KeyboardInterrupt:
                    if CONFIG.get("intermediate_output", True):
                        print(
                            "\n[KEYBOARD-INTERRUPT] Ctrl+C detected, stopping workers..."
                        )
                    set_keyboard_interrupt()
                    stop_event.set()
                    stopped = True
                    for f in future_index:
                        f.cancel()

            # Workers that were still running have returned at their next stop check
            if stopped:
                recovered = 0
                for future, i in future_index.items():
                    if results[i] is not None or not future.done() or future.cancelled():
                        continue
                    if future.exception() is not None:
                        continue
                    results[i] = future.result()
                    self.iterations += results[i][2]
                    recovered += 1
                debug(f"[STOP] Recovered {recovered} partition results after stop")
        finally:
            manager.shutdown()

        counters = []
        for r in results:
            if r is None:
                continue
            max_val, records, _, worker_stopped = r
            stopped = stopped or worker_stopped
            counter = MaxCounter()
            counter.max_val = max_val
            counter.records = list(records)
            counters.append(counter)

        return merge_counters(counters), stopped


def search_partition_worker(args):
    """
    Module-level worker function for one slice of the split dimension.
    Args: (variant_name, keys, split_index, split_values)
    Returns: (max_score, records, iterations, stopped)
    """
    variant_name, keys, split_index, split_values = args

    if _should_stop():
        return 0, [], 0, True

    searcher = PerfectHashSearcher(variant_name, keys=keys)
    dimensions = searcher.variant.dimensions()
    dimensions[split_index] = list(split_values)

    counter = MaxCounter()
    stopped = searcher.evaluate(dimensions, counter)
    return counter.max_val, counter.records, searcher.iterations, stopped


def report_results(result: Dict, top_n: Optional[int] = None):
    """Print the best score and the first top_n ranked candidates."""
    if top_n is None:
        top_n = CONFIG.get("top_results", 10)

    records = result.get("records", [])
    print(
        f"\n[RESULT] variant={result.get('variant')} best score={result.get('max_score')} "
        f"({len(records)} candidate(s), {fmt_num(result.get('iterations', 0))} iterations)"
    )
    if result.get("interrupted"):
        print("[RESULT] Search was interrupted; results cover only the part searched.")
    elif result.get("stopped"):
        print("[RESULT] Search was stopped early; results cover only the part searched.")

    for rank, candidate in enumerate(records[:top_n], start=1):
        print(f"  {rank:2d}. {candidate}")
