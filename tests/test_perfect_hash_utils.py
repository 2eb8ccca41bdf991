"""
Search driver - Unit and integration tests

Variant search spaces, validation, serial search against an independent
brute force, progress output, cooperative stop and the parallel path.
"""

import itertools
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

import perfect_hash_implementation
import perfect_hash_search
import perfect_hash_utils
from perfect_hash_implementation import (
    InvalidConfigurationError,
    base_hash,
    count_slots,
    java_hash,
    score_hash,
)
from perfect_hash_utils import (
    PerfectHashSearcher,
    get_variant,
    partition_dimension_index,
    partition_values,
    rank_records,
    report_results,
    set_config,
)
from perfect_hash_helpers import IntRange, estimate_total_iterations


KEYS = ["as", "do", "if", "in", "of", "for", "new", "try", "var", "case", "this"]


def make_config(**overrides):
    cfg = dict(perfect_hash_search.CONFIG)
    cfg.update(
        intermediate_output=False,
        progress_interval=1 << 20,
        java_base_range=(0, 6),
        java_slot_counts=[8, 16],
        base_range=(0, 2),
        base_slot_counts=[16],
    )
    cfg.update(overrides)
    return cfg


def brute_force_java(keys, bases, slot_counts):
    best, winners = 0, []
    for base, size, perm in itertools.product(
        bases, slot_counts, itertools.permutations([0, 1, 2, 3])
    ):
        score = len({java_hash(base, perm)(k) % size for k in keys})
        if score > best:
            best, winners = score, []
        if score == best:
            winners.append((base, size, tuple(perm)))
    return best, winners


def test_get_variant_unknown():
    with pytest.raises(ValueError):
        get_variant("crc16")


def test_java_dimensions_from_config():
    set_config(make_config())
    dims = get_variant("java").dimensions()

    assert isinstance(dims[0], IntRange)
    assert list(dims[0]) == [0, 1, 2, 3, 4, 5]
    assert dims[1] == [8, 16]
    assert len(dims[2]) == 24
    assert estimate_total_iterations(dims) == 6 * 2 * 24


def test_base_dimensions_from_config():
    set_config(make_config(base_range=(0, 3)))
    dims = get_variant("base").dimensions()

    assert len(dims) == 6
    assert dims[0] == [16]
    assert len(dims[1]) == 120
    assert estimate_total_iterations(dims) == 1 * 120 * 3**4


def test_rank_records():
    java = get_variant("java")
    records = [(5, 256, [0]), (1, 64, [1]), (3, 128, [2]), (2, 64, [3])]
    assert rank_records(java, records) == [
        (1, 64, [1]),
        (2, 64, [3]),
        (3, 128, [2]),
        (5, 256, [0]),
    ]

    base = get_variant("base")
    perm = [0, 1, 2, 3, 4]
    records = [(64, perm, 3, 1, 1, 1), (32, perm, 9, 9, 9, 9), (64, perm, 1, 1, 1, 2)]
    assert rank_records(base, records) == [
        (32, perm, 9, 9, 9, 9),
        (64, perm, 1, 1, 1, 2),
        (64, perm, 3, 1, 1, 1),
    ]


def test_partition_helpers():
    assert partition_dimension_index([[64], [1, 2], IntRange(0, 5)]) == 1
    assert partition_dimension_index([IntRange(0, 5), [1]]) == 0
    assert partition_dimension_index([[64], [1]]) is None

    assert partition_values(range(7), 3) == [[0, 1, 2], [3, 4], [5, 6]]
    assert partition_values([1, 2], 8) == [[1], [2]]


def test_serial_search_matches_brute_force():
    searcher = PerfectHashSearcher("java", keys=KEYS, config=make_config())
    result = searcher.search()

    best, winners = brute_force_java(KEYS, range(0, 6), [8, 16])
    assert result["max_score"] == best
    assert result["iterations"] == result["estimate"] == 6 * 2 * 24
    assert not result["stopped"]
    assert not result["interrupted"]

    found = [(b, s, tuple(p)) for b, s, p in result["records"]]
    assert sorted(found) == sorted(winners)
    sizes = [s for _, s, _ in found]
    assert sizes == sorted(sizes), "records must be ranked by table size"


def test_every_record_reaches_max_score():
    searcher = PerfectHashSearcher("base", keys=KEYS, config=make_config())
    result = searcher.search()

    assert result["iterations"] == 120 * 2**4
    assert result["records"]
    for size, perm, b0, b1, b2, b3 in result["records"]:
        hash_fn = base_hash(perm, b0, b1, b2, b3)
        assert score_hash(hash_fn, size, KEYS) == result["max_score"]


def test_search_defaults_to_keywords():
    searcher = PerfectHashSearcher(
        "java", config=make_config(java_base_range=(2, 3), java_slot_counts=[128])
    )
    assert len(searcher.keys) == 41
    result = searcher.search()
    assert 1 <= result["max_score"] <= 41


@pytest.mark.parametrize(
    "overrides",
    [
        {"java_slot_counts": [0]},
        {"java_slot_counts": [64, -8]},
        {"progress_interval": 0},
        {"search_workers": 0},
    ],
)
def test_invalid_configuration(overrides):
    searcher = PerfectHashSearcher("java", keys=KEYS, config=make_config(**overrides))
    with pytest.raises(InvalidConfigurationError):
        searcher.search()


def test_empty_key_set_rejected():
    searcher = PerfectHashSearcher("java", keys=[], config=make_config())
    with pytest.raises(InvalidConfigurationError):
        searcher.search()


def test_progress_lines(capsys):
    cfg = make_config(intermediate_output=True, progress_interval=100)
    PerfectHashSearcher("java", keys=KEYS, config=cfg).search()

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["iter 100 / 288", "iter 200 / 288"]


def test_stop_event_checked_per_interval():
    stop = threading.Event()
    stop.set()
    searcher = PerfectHashSearcher(
        "java", keys=KEYS, config=make_config(progress_interval=10), stop_event=stop
    )
    result = searcher.search()

    assert result["stopped"]
    assert result["iterations"] == 10


def test_parallel_search_matches_serial():
    cfg = make_config(java_base_range=(0, 12))
    serial = PerfectHashSearcher("java", keys=KEYS, config=cfg).search()

    cfg = make_config(java_base_range=(0, 12), search_workers=2, partitions_per_worker=3)
    parallel = PerfectHashSearcher("java", keys=KEYS, config=cfg).search()

    assert parallel["max_score"] == serial["max_score"]
    assert parallel["iterations"] == serial["iterations"] == serial["estimate"]
    assert parallel["records"] == serial["records"]
    assert not parallel["stopped"]


def test_report_results(capsys):
    set_config(make_config(top_results=2))
    result = {
        "variant": "java",
        "max_score": 3,
        "records": [(1, 64, [0, 1, 2, 3]), (2, 64, [0, 1, 2, 3]), (4, 128, [3, 2, 1, 0])],
        "iterations": 2_500_000,
        "estimate": 3_000_000,
        "stopped": False,
        "interrupted": False,
    }
    report_results(result)

    out = capsys.readouterr().out
    assert "best score=3" in out
    assert "2.5M iterations" in out
    assert "(2, 64, [0, 1, 2, 3])" in out
    assert "(4, 128" not in out


def test_serial_keyboard_interrupt_keeps_results(monkeypatch):
    calls = {"n": 0}

    def interrupt_on_50th(hash_fn, table_size, keys):
        calls["n"] += 1
        if calls["n"] == 50:
            raise KeyboardInterrupt
        return count_slots(hash_fn, table_size, keys)

    monkeypatch.setattr(perfect_hash_utils, "count_slots", interrupt_on_50th)
    result = PerfectHashSearcher("java", keys=KEYS, config=make_config()).search()

    assert result["interrupted"]
    assert result["stopped"]
    assert result["iterations"] == 49
    assert result["records"]
    for base, size, perm in result["records"]:
        assert score_hash(java_hash(base, perm), size, KEYS) == result["max_score"]


def test_interrupt_flag_cleared_on_next_search():
    perfect_hash_utils.set_keyboard_interrupt()
    result = PerfectHashSearcher("java", keys=KEYS, config=make_config()).search()
    assert not result["interrupted"]


def test_search_loop_skips_per_candidate_table_check(monkeypatch):
    calls = {"n": 0}
    real_check = perfect_hash_implementation.check_table_size

    def counting_check(table_size):
        calls["n"] += 1
        return real_check(table_size)

    monkeypatch.setattr(perfect_hash_implementation, "check_table_size", counting_check)
    result = PerfectHashSearcher("java", keys=KEYS, config=make_config()).search()

    assert result["iterations"] == 288
    assert calls["n"] == 0


def test_parallel_stop_event_reaches_workers(capsys):
    stop = threading.Event()
    stop.set()
    cfg = make_config(
        java_base_range=(0, 12),
        search_workers=2,
        partitions_per_worker=3,
        progress_interval=10,
        debug_output=True,
    )
    result = PerfectHashSearcher("java", keys=KEYS, config=cfg, stop_event=stop).search()

    # at most one progress interval per partition
    assert result["stopped"]
    assert result["iterations"] <= 10 * 6
    assert result["iterations"] < result["estimate"]
    assert "[STOP] Recovered" in capsys.readouterr().out


def test_parallel_keyboard_interrupt_recovers(monkeypatch):
    def interrupted_wait(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(perfect_hash_utils.concurrent.futures, "wait", interrupted_wait)
    cfg = make_config(
        java_base_range=(0, 12),
        search_workers=2,
        partitions_per_worker=3,
        progress_interval=10,
    )
    result = PerfectHashSearcher("java", keys=KEYS, config=cfg).search()

    assert result["interrupted"]
    assert result["stopped"]
    assert result["iterations"] < result["estimate"]
    for base, size, perm in result["records"]:
        assert score_hash(java_hash(base, perm), size, KEYS) == result["max_score"]
