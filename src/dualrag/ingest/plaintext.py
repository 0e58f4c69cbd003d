"""Plain text chunker: fixed window with overlap, snapped to sentence ends."""

from __future__ import annotations

import logging

from dualrag.ingest.base import MIN_CHUNK_CHARS, BaseChunker, Chunk

log = logging.getLogger(__name__)


def split_windows(text: str, max_chars: int, overlap_chars: int) -> list[tuple[int, str]]:
    """Split *text* into overlapping windows.

    The window end is pulled back to the last ``.`` or newline at or before it
    when that break lies past the half-window mark. The next window starts
    ``overlap_chars`` before the current end, or at the end itself when that
    would not move forward, so the start index strictly increases. The
    window that reaches the end of the text is the last one.

    Returns:
        ``(start, text)`` pairs for every kept window.
    """
    windows: list[tuple[int, str]] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + max_chars, length)

        if end < length:
            break_point = max(text.rfind(".", 0, end + 1), text.rfind("\n", 0, end + 1))
            if break_point > start + max_chars / 2:
                end = break_point + 1

        segment = text[start:end].strip()
        if len(segment) >= MIN_CHUNK_CHARS:
            windows.append((start, segment))
        if end >= length:
            break

        next_start = end - overlap_chars
        start = end if next_start <= start else next_start

    return windows


class PlainTextChunker(BaseChunker):
    """Split plain text (and extracted PDF text) into fixed-size windows."""

    def chunk(self, content: str, path: str = "") -> list[Chunk]:
        if not content.strip():
            return []
        windows = split_windows(content, self.max_chars, self.overlap_chars)
        log.debug("Plain text chunking: %d chars -> %d chunks", len(content), len(windows))
        return self._number([Chunk(text=t, file_path=path) for _, t in windows])
