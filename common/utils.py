"""
common.utils

Utility helper functions.
"""
from typing import Iterator, Tuple


def chunked(start: int, end: int, size: int) -> Iterator[Tuple[int, int]]:
    """
    Yield inclusive (start, end) subranges of at most `size` blocks.
    """
    if size < 1:
        raise ValueError("window size must be at least 1")
    cur = start
    while cur <= end:
        sub_end = min(cur + size - 1, end)
        yield (cur, sub_end)
        cur = sub_end + 1


def strip_0x(s: str) -> str:
    return s[2:] if isinstance(s, str) and s[:2] in ("0x", "0X") else s


def hex_to_int(v) -> int:
    """Accept ints, 0x-prefixed hex strings and base 10 strings."""
    if isinstance(v, bool):
        raise ValueError("bool is not a quantity")
    if isinstance(v, int):
        return v
    s = str(v).strip().lower()
    return int(s, 16) if s.startswith("0x") else int(s)
