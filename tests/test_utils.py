import pytest

from common.utils import chunked, hex_to_int, strip_0x


def test_chunked_covers_range_without_overlap():
    assert list(chunked(0, 9, 4)) == [(0, 3), (4, 7), (8, 9)]
    assert list(chunked(5, 5, 100)) == [(5, 5)]
    assert list(chunked(6, 5, 3)) == []


def test_chunked_rejects_zero_size():
    with pytest.raises(ValueError):
        list(chunked(0, 10, 0))


def test_hex_helpers():
    assert hex_to_int("0x1f") == 31
    assert hex_to_int("42") == 42
    assert hex_to_int(7) == 7
    assert strip_0x("0XAB") == "AB"
    with pytest.raises(ValueError):
        hex_to_int(True)
    with pytest.raises(ValueError):
        hex_to_int("0xzz")
