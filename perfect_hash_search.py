from typing import Dict, Iterable, List, Optional

from perfect_hash_implementation import (
    KEYWORDS,
    base_hash,
    java_hash,
    slot_assignment,
)
from perfect_hash_helpers import set_config_helpers
from perfect_hash_utils import (
    PerfectHashSearcher,
    report_results,
    set_config,
)


CONFIG = {
    # GENERAL SETTINGS
    "debug_output": False,  # if True, print detailed debug info during search
    "intermediate_output": True,  # if True, print progress lines during search
    "progress_interval": 1024 * 1024,  # print progress (and check for stop) every N candidates
    "top_results": 10,  # how many ranked candidates to print at the end
    #
    # PARALLEL SEARCH SETTINGS
    "search_workers": 1,  # >1 splits the outermost varying dimension across worker processes
    "partitions_per_worker": 4,  # how many chunks of the split dimension each worker gets on average
    "stop_poll_seconds": 0.5,  # how often the parent checks for a stop request while workers run
    #
    # JAVA-STYLE HASH (one base, four sampled offsets)
    "java_base_range": (0, 1000),  # half-open range of bases
    "java_slot_counts": [64, 128, 256],  # table sizes to try
    "java_positions": [0, 1, 2, 3],  # character offsets permuted over the four weights
    #
    # MIXED-BASE HASH (four bases, offsets 0-3 plus last character)
    "base_range": (0, 64),  # half-open range for each of the four bases
    "base_slot_counts": [64],  # table sizes to try
    "base_positions": [0, 1, 2, 3, 4],  # sample indices permuted over the weights (4 = last character)
    #
    # KNOWN SOLUTION (print_solutions)
    "solution_variant": "java",
    "solution_params": (2, [2, 1, 0, 3]),  # arguments for the variant's hash builder
    "solution_table_size": 128,
}

set_config(CONFIG)
set_config_helpers(CONFIG)


def run_search(
    variant_name: str,
    keys: Optional[Iterable[str]] = None,
    cfg: Optional[Dict] = None,
) -> Dict:
    """Search one hash variant over the key set and print the best candidates."""
    cfg = CONFIG if cfg is None else cfg
    keys = list(KEYWORDS) if keys is None else list(keys)
    print("num words:", len(keys))

    searcher = PerfectHashSearcher(variant_name, keys=keys, config=cfg)
    result = searcher.search()
    report_results(result, top_n=cfg.get("top_results", 10))
    return result


def search_java_hash(keys: Optional[Iterable[str]] = None) -> Dict:
    return run_search("java", keys)


def search_base_hash(keys: Optional[Iterable[str]] = None) -> Dict:
    return run_search("base", keys)


def print_solutions(keys: Optional[Iterable[str]] = None) -> Dict[int, List[str]]:
    """Print which slot each key lands in under the configured known solution."""
    keys = list(KEYWORDS) if keys is None else list(keys)
    variant = CONFIG.get("solution_variant", "java")
    params = CONFIG.get("solution_params", (2, [2, 1, 0, 3]))
    table_size = CONFIG.get("solution_table_size", 128)

    if variant == "java":
        hash_fn = java_hash(*params)
    elif variant == "base":
        hash_fn = base_hash(*params)
    else:
        raise ValueError(f"Unknown solution variant '{variant}'")

    slots = slot_assignment(hash_fn, table_size, keys)
    collisions = sum(len(v) - 1 for v in slots.values())
    print(
        f"{variant}{tuple(params)} mod {table_size}: {len(slots)} slots used, "
        f"{collisions} collision(s)"
    )
    for slot, words in slots.items():
        print(f"  {slot:4d}: {', '.join(words)}")
    return slots


if __name__ == "__main__":

    # uncomment to run the other searches

    # search_java_hash()
    # print_solutions()

    search_base_hash()
