"""Tests for fixed-size character windowing."""
import pytest

from app.services.chunking import split_into_chunks


def test_empty_text_has_no_windows():
    assert split_into_chunks("", 500, 100) == []


def test_short_text_is_one_window():
    assert split_into_chunks("abc", 500, 100) == ["abc"]


def test_text_of_exactly_one_window():
    text = "x" * 500
    assert split_into_chunks(text, 500, 100) == [text]


@pytest.mark.parametrize("length", [501, 900, 1234, 5000])
def test_windows_cover_text_with_exact_overlap(length: int):
    text = "".join(chr(ord("a") + i % 26) for i in range(length))
    windows = split_into_chunks(text, 500, 100)

    # Every window but the last is full-size; the last ends at the end of the text
    assert all(len(w) == 500 for w in windows[:-1])
    assert 0 < len(windows[-1]) <= 500
    assert text.endswith(windows[-1])

    # Consecutive windows share exactly `overlap` characters
    for prev, nxt in zip(windows, windows[1:]):
        assert prev[-100:] == nxt[:100]

    # Reassembling without the overlaps yields the original text
    rebuilt = windows[0] + "".join(w[100:] for w in windows[1:])
    assert rebuilt == text


def test_window_starts_advance_by_size_minus_overlap():
    text = "0123456789" * 3
    windows = split_into_chunks(text, 10, 4)
    assert windows[0] == "0123456789"
    assert windows[1] == "6789012345"
    assert windows[-1] == text[-len(windows[-1]):]


def test_zero_overlap_partitions_text():
    text = "abcdefghij"
    assert split_into_chunks(text, 4, 0) == ["abcd", "efgh", "ij"]


def test_defaults_come_from_settings():
    text = "y" * 1200
    windows = split_into_chunks(text)
    assert len(windows[0]) == 500
    assert windows[1] == text[400:900]


@pytest.mark.parametrize(
    "size, overlap",
    [(0, 0), (-5, 0), (10, 10), (10, 11), (10, -1)],
)
def test_invalid_window_parameters_are_rejected(size: int, overlap: int):
    with pytest.raises(ValueError):
        split_into_chunks("some text", size, overlap)
