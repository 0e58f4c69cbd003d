"""Code-aware chunker: splits at function/class boundaries without parsing.

Boundary detection and metadata extraction are line-based regex heuristics.
They are deliberately approximate: a missed boundary only means a larger
chunk, and missing metadata only means a less specific code context.
"""

from __future__ import annotations

import logging
import re

from dualrag.db.models import CodeContext
from dualrag.ingest.base import BaseChunker, Chunk
from dualrag.ingest.detect import detect_language

log = logging.getLogger(__name__)

_JS = frozenset(["javascript", "typescript"])
_CLIKE = frozenset(["java", "c++", "csharp"])

# ------------------------------------------------------------------
# Boundary patterns (matched against the stripped line)
# ------------------------------------------------------------------

_BOUNDARIES: dict[str, list[re.Pattern[str]]] = {
    "js": [
        re.compile(r"^(?:export\s+)?(?:async\s+)?function\s+\w+"),
        re.compile(r"^(?:export\s+)?class\s+\w+"),
        re.compile(r"^const\s+\w+\s*=\s*(?:async\s+)?\("),
    ],
    "python": [
        re.compile(r"^(?:async\s+)?def\s+\w+\s*\("),
        re.compile(r"^class\s+\w+"),
    ],
    "clike": [
        re.compile(r"^(?:public\s+|private\s+|protected\s+)?(?:class|interface)\s+\w+"),
        re.compile(r"^(?:public\s+|private\s+|protected\s+)?\w+\s+\w+\s*\([^)]*\)"),
    ],
}

# ------------------------------------------------------------------
# Metadata patterns
# ------------------------------------------------------------------

_JS_IMPORT = re.compile(r"^import\s+.*\s+from\s+['\"]([^'\"]+)['\"]")
_JS_REQUIRE = re.compile(r"require\(['\"]([^'\"]+)['\"]\)")
_JS_EXPORT = re.compile(r"export\s+(?:function|class|const|let|var)\s+(\w+)")
_JS_FUNC = re.compile(r"^(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\(")
_JS_CLASS = re.compile(r"^(?:export\s+)?class\s+(\w+)")

_PY_IMPORT = re.compile(r"^(?:from\s+(\S+)\s+)?import\s+(.+)")
_PY_FUNC = re.compile(r"^(?:async\s+)?def\s+(\w+)\s*\(")
_PY_CLASS = re.compile(r"^class\s+(\w+)")

_CLIKE_CLASS = re.compile(r"^(?:public\s+)?(?:class|interface)\s+(\w+)")
_CLIKE_METHOD = re.compile(r"^\w+\s+(\w+)\s*\([^)]*\)\s*\{?")
_CLIKE_KEYWORDS = frozenset(["if", "for", "while", "switch"])


def _family(language: str) -> str | None:
    if language in _JS:
        return "js"
    if language == "python":
        return "python"
    if language in _CLIKE:
        return "clike"
    return None


def is_boundary(line: str, language: str) -> bool:
    """True if the stripped *line* opens a function or class in *language*."""
    if not line:
        return False
    family = _family(language)
    if family is None:
        return False
    return any(p.match(line) for p in _BOUNDARIES[family])


def extract_code_metadata(code: str, language: str) -> CodeContext:
    """Pull imports, exports, function and class names out of *code* by regex."""
    ctx = CodeContext(language=language)
    family = _family(language)
    if family is None:
        return ctx

    for raw in code.split("\n"):
        line = raw.strip()
        if family == "js":
            if m := _JS_IMPORT.match(line):
                ctx.imports.append(m.group(1))
            if m := _JS_REQUIRE.search(line):
                ctx.imports.append(m.group(1))
            if line.startswith("export ") and (m := _JS_EXPORT.match(line)):
                ctx.exports.append(m.group(1))
            if m := _JS_FUNC.match(line):
                ctx.functions.append(m.group(1))
            if m := _JS_CLASS.match(line):
                ctx.classes.append(m.group(1))
        elif family == "python":
            if m := _PY_IMPORT.match(line):
                module = m.group(1) or m.group(2).split(",")[0].split(" as ")[0].strip()
                ctx.imports.append(module)
            if m := _PY_FUNC.match(line):
                ctx.functions.append(m.group(1))
            if m := _PY_CLASS.match(line):
                ctx.classes.append(m.group(1))
        else:
            if m := _CLIKE_CLASS.match(line):
                ctx.classes.append(m.group(1))
            m = _CLIKE_METHOD.match(line)
            if m and m.group(1) not in _CLIKE_KEYWORDS:
                ctx.functions.append(m.group(1))
    return ctx


def _overlap_tail(lines: list[str], overlap_chars: int) -> list[str]:
    """Longest run of whole trailing lines whose size (with newlines) fits."""
    tail: list[str] = []
    size = 0
    for line in reversed(lines):
        if size + len(line) + 1 > overlap_chars:
            break
        tail.insert(0, line)
        size += len(line) + 1
    return tail


class CodeChunker(BaseChunker):
    """Split source code at declaration boundaries or when a chunk grows too large.

    Each new chunk is seeded with the tail of the previous one (whole lines
    only, at most ``chunk_overlap`` tokens) so declarations keep their lead-in.
    """

    def chunk(self, content: str, path: str = "") -> list[Chunk]:
        if not content.strip():
            return []

        language = detect_language(path)
        if language is None:
            return [
                Chunk(text=content, file_path=path, code=CodeContext(language="unknown"))
            ]

        max_chars = self.max_chars
        texts: list[str] = []
        current: list[str] = []
        size = 0

        for line in content.split("\n"):
            line_size = len(line) + 1
            starts_new = current and (
                is_boundary(line.strip(), language) or size + line_size > max_chars
            )
            if starts_new:
                texts.append("\n".join(current))
                current = _overlap_tail(current, self.overlap_chars)
                size = sum(len(l) + 1 for l in current)
            current.append(line)
            size += line_size

        if current:
            texts.append("\n".join(current))

        chunks = [
            Chunk(text=t, file_path=path, code=extract_code_metadata(t, language))
            for t in texts
            if t.strip()
        ]
        log.debug("Code chunking (%s): %d chars -> %d chunks", language, len(content), len(chunks))
        return self._number(chunks)
