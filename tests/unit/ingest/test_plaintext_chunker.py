"""Tests for PlainTextChunker and split_windows."""

from __future__ import annotations

import pytest

from dualrag.ingest.base import MIN_CHUNK_CHARS, Chunk
from dualrag.ingest.plaintext import PlainTextChunker, split_windows


def test_plaintext_default_settings():
    chunker = PlainTextChunker()
    assert chunker.chunk_size == 512
    assert chunker.chunk_overlap == 50
    assert chunker.max_chars == 2048
    assert chunker.overlap_chars == 200


@pytest.mark.parametrize("size,overlap", [(0, 0), (10, -1)])
def test_plaintext_rejects_invalid_sizes(size, overlap):
    with pytest.raises(ValueError):
        PlainTextChunker(chunk_size=size, chunk_overlap=overlap)


def test_plaintext_empty_content():
    assert PlainTextChunker().chunk("", "a.txt") == []
    assert PlainTextChunker().chunk("  \n  ", "a.txt") == []


def test_plaintext_short_text_dropped():
    # below MIN_CHUNK_CHARS after trimming
    assert PlainTextChunker().chunk("Short text.", "a.txt") == []


def test_plaintext_single_chunk():
    text = "A paragraph that easily clears the minimum length."
    chunks = PlainTextChunker().chunk(text, "notes.txt")
    assert len(chunks) == 1
    assert isinstance(chunks[0], Chunk)
    assert chunks[0].text == text
    assert chunks[0].file_path == "notes.txt"


def test_plaintext_fixed_windows_without_breaks():
    chunks = PlainTextChunker(chunk_size=10, chunk_overlap=0).chunk("x" * 200, "a.txt")
    assert [len(c.text) for c in chunks] == [40] * 5
    assert [c.chunk_index for c in chunks] == list(range(5))


def test_plaintext_snaps_to_sentence_end():
    text = "a" * 29 + ". " + "b" * 60
    chunks = PlainTextChunker(chunk_size=10, chunk_overlap=0).chunk(text, "a.txt")
    assert chunks[0].text == "a" * 29 + "."
    assert chunks[1].text == "b" * 39
    assert chunks[2].text == "b" * 21


def test_plaintext_ignores_break_in_first_half():
    # "." at index 5 lies before the half-window mark: the window is not shortened
    text = "abcde." + "z" * 100
    windows = split_windows(text, 40, 0)
    assert windows[0] == (0, text[:40])


def test_plaintext_overlap_repeats_tail():
    text = "".join(chr(ord("a") + i % 26) for i in range(120))
    windows = split_windows(text, 40, 8)
    assert windows[1][0] == 32
    assert windows[0][1][-8:] == windows[1][1][:8]


@pytest.mark.parametrize("overlap", [0, 5, 39, 40, 200])
def test_plaintext_always_makes_progress(overlap):
    text = ("Sentence one. Another line\n" * 40).strip()
    windows = split_windows(text, 40, overlap)
    starts = [start for start, _ in windows]
    assert starts == sorted(set(starts))
    assert all(len(t) <= 40 for _, t in windows)
    assert all(len(t) >= MIN_CHUNK_CHARS for _, t in windows)


def test_plaintext_chunks_cover_text():
    words = " ".join(f"word{i}." for i in range(300))
    chunks = PlainTextChunker(chunk_size=16, chunk_overlap=4).chunk(words, "a.txt")
    joined = " ".join(c.text for c in chunks)
    for i in (0, 150, 299):
        assert f"word{i}." in joined


def test_plaintext_no_trailing_duplicate_with_overlap():
    text = "Document 0 has a sentence long enough to keep."
    chunks = PlainTextChunker(chunk_size=64, chunk_overlap=8).chunk(text, "a.txt")
    assert [c.text for c in chunks] == [text]


def test_plaintext_last_window_ends_at_text_end():
    text = "".join(chr(ord("a") + i % 26) for i in range(100))
    windows = split_windows(text, 40, 8)
    assert [start for start, _ in windows] == [0, 32, 64]
    assert windows[-1][1] == text[64:]
