"""
Candidate hash functions for a fixed set of reserved words
"""

from typing import Callable, Dict, Iterable, List, Sequence

DEBUG_OUTPUT = False

KEYWORDS = [
    "as",
    "do",
    "if",
    "in",
    "of",
    #
    "for",
    "new",
    "try",
    "var",
    #
    "async",
    "await",
    "break",
    "case",
    "catch",
    "class",
    "const",
    "continue",
    "debugger",
    "default",
    "delete",
    "else",
    "enum",
    "export",
    "extends",
    "false",
    "finally",
    "function",
    "import",
    "instanceof",
    "null",
    "return",
    "super",
    "switch",
    "this",
    "throw",
    "true",
    "typeof",
    "void",
    "while",
    "with",
    "yield",
]

LOW_KEY = ord("a")


class InvalidConfigurationError(ValueError):
    """Raised when a search is configured in a way that cannot be scored."""


def debug(*args, **kwargs):
    if DEBUG_OUTPUT:
        print(*args, **kwargs)


def char_code(word: str, index: int) -> int:
    """Return the code point at index, or 0 when index falls outside the word."""
    if index < 0 or index >= len(word):
        return 0
    return ord(word[index])


def sample(word: str, index: int) -> int:
    """Offset of the character at index from 'a'; positions past the end give 0."""
    code = char_code(word, index)
    return code - LOW_KEY if code else 0


def java_hash(base: int, slots: Sequence[int]) -> Callable[[str], int]:
    """
    Four sampled characters weighted by descending powers of one base.
    slots[0] gets base^3, slots[3] gets base^0.
    """
    s0, s1, s2, s3 = slots[0], slots[1], slots[2], slots[3]
    w0 = base * base * base
    w1 = base * base

    def hash_word(word: str) -> int:
        return (
            sample(word, s0) * w0
            + sample(word, s1) * w1
            + sample(word, s2) * base
            + sample(word, s3)
        )

    return hash_word


def base_hash(
    slots: Sequence[int], base0: int, base1: int, base2: int, base3: int
) -> Callable[[str], int]:
    """
    Samples offsets 0-3 and the last character, then weights four of them
    with mixed products of four bases. slots is a permutation of 0..4 that
    assigns samples to weights; the sample picked by slots[4] drops out.
    """
    s0, s1, s2, s3 = slots[0], slots[1], slots[2], slots[3]
    w0 = base0 * base0 * base0 * base2 * base2
    w1 = base0 * base0 * base2 * base1
    w2 = base0 * base1 * base1 * base3
    w3 = base1 * base1 * base1 * base3 * base3

    def hash_word(word: str) -> int:
        data = (
            sample(word, 0),
            sample(word, 1),
            sample(word, 2),
            sample(word, 3),
            sample(word, len(word) - 1),
        )
        return data[s0] * w0 + data[s1] * w1 + data[s2] * w2 + data[s3] * w3

    return hash_word


def check_table_size(table_size) -> int:
    """Return table_size if it is a usable modulus, else raise."""
    if isinstance(table_size, bool) or not isinstance(table_size, int):
        raise InvalidConfigurationError(
            f"table size must be an integer, got {table_size!r}"
        )
    if table_size <= 0:
        raise InvalidConfigurationError(
            f"table size must be positive, got {table_size}"
        )
    return table_size


def score_hash(
    hash_fn: Callable[[str], int], table_size: int, keys: Iterable[str]
) -> int:
    """Count the distinct slots the keys occupy under hash_fn mod table_size."""
    check_table_size(table_size)
    return count_slots(hash_fn, table_size, keys)


def count_slots(
    hash_fn: Callable[[str], int], table_size: int, keys: Iterable[str]
) -> int:
    """score_hash without the table size check, for already validated searches."""
    return len({hash_fn(k) % table_size for k in keys})


def slot_assignment(
    hash_fn: Callable[[str], int], table_size: int, keys: Iterable[str]
) -> Dict[int, List[str]]:
    """
    Map each occupied slot to the keys that land on it, in key order.
    Slots are normalized into [0, table_size) even for negative hash values.
    """
    check_table_size(table_size)
    slots: Dict[int, List[str]] = {}
    for k in keys:
        slot = ((hash_fn(k) % table_size) + table_size) % table_size
        slots.setdefault(slot, []).append(k)
        debug(f"{k!r} -> {slot}")
    return dict(sorted(slots.items()))
