"""Markdown chunker: one chunk per heading section, split at paragraphs when large."""

from __future__ import annotations

import logging
import re

from dualrag.ingest.base import MIN_CHUNK_CHARS, BaseChunker, Chunk

log = logging.getLogger(__name__)

# ATX headings, H1 through H6.
_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.+?)[ \t#]*$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")


class MarkdownChunker(BaseChunker):
    """Split Markdown on heading boundaries.

    Strategy:
    - Each heading starts a new section whose text begins with the
      normalised heading line (``## Title``).
    - Content before the first heading is a level-0 section with no heading.
    - Lines inside fenced code blocks are never treated as headings.
    - A section longer than the window is cut at the last blank line before
      the window end, provided that break lies past the half-window mark.
    - Sections shorter than ``MIN_CHUNK_CHARS`` after trimming are dropped.
    """

    def chunk(self, content: str, path: str = "") -> list[Chunk]:
        if not content.strip():
            return []

        chunks: list[Chunk] = []
        for heading, level, body in self._sections(content):
            for piece in self._split_section(body):
                if len(piece) >= MIN_CHUNK_CHARS:
                    chunks.append(Chunk(text=piece, file_path=path, heading=heading, level=level))

        log.debug("Markdown chunking: %d chars -> %d semantic chunks", len(content), len(chunks))
        return self._number(chunks)

    @staticmethod
    def _sections(content: str) -> list[tuple[str, int, str]]:
        """Return ``(heading, level, text)`` for the preamble and every section."""
        sections: list[tuple[str, int, str]] = []
        heading, level = "", 0
        lines: list[str] = []
        fence: str | None = None

        for line in content.splitlines():
            fence_match = _FENCE_RE.match(line)
            if fence_match:
                marker = fence_match.group(1)
                if fence is None:
                    fence = marker[0] * 3
                elif marker.startswith(fence):
                    fence = None
                lines.append(line)
                continue

            match = _HEADING_RE.match(line) if fence is None else None
            if match is None:
                lines.append(line)
                continue

            sections.append((heading, level, "\n".join(lines)))
            level = len(match.group(1))
            heading = match.group(2).strip()
            lines = [f"{'#' * level} {heading}", ""]

        sections.append((heading, level, "\n".join(lines)))
        return sections

    def _split_section(self, text: str) -> list[str]:
        max_chars = self.max_chars
        pieces: list[str] = []
        remaining = text.strip()

        while len(remaining) > max_chars:
            break_point = remaining.rfind("\n\n", 0, max_chars + 1)
            if break_point <= max_chars / 2:
                break
            pieces.append(remaining[:break_point].strip())
            remaining = remaining[break_point:].strip()

        pieces.append(remaining)
        return pieces
