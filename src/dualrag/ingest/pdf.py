"""PDF text extraction via pypdf."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pypdf
from pypdf.errors import FileNotDecryptedError, PdfReadError, PyPdfError

from dualrag.errors import ParseError

log = logging.getLogger(__name__)

_PAGE_MARKER_RE = re.compile(r"Page \d+ of \d+", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class PdfText:
    """Normalised text of a PDF plus its page count and document info."""

    text: str
    pages: int
    info: dict[str, Any] = field(default_factory=dict)


def extract_pdf_text(path: str | Path) -> PdfText:
    """Extract and normalise all page text from the PDF at *path*.

    ``Page N of M`` footers are removed and every whitespace run collapses to
    a single space. Pages without a text layer contribute nothing.

    Raises:
        ParseError: ``PDF_PASSWORD_PROTECTED`` if the file is encrypted with a
            non-empty password, ``PDF_CORRUPTED`` if pypdf cannot read it, and
            ``PDF_PARSE_ERROR`` for any other extraction failure.
    """
    path = str(path)
    try:
        reader = pypdf.PdfReader(path)
        if reader.is_encrypted and not reader.decrypt(""):
            raise ParseError("PDF_PASSWORD_PROTECTED", path)
        parts = [page.extract_text() or "" for page in reader.pages]
        info = {
            str(k).lstrip("/"): str(v) for k, v in (reader.metadata or {}).items()
        }
        pages = len(reader.pages)
    except ParseError:
        raise
    except FileNotDecryptedError as exc:
        raise ParseError("PDF_PASSWORD_PROTECTED", path, str(exc)) from exc
    except PdfReadError as exc:
        raise ParseError("PDF_CORRUPTED", path, str(exc)) from exc
    except (PyPdfError, ValueError, KeyError, TypeError) as exc:
        raise ParseError("PDF_PARSE_ERROR", path, str(exc)) from exc

    text = _PAGE_MARKER_RE.sub("", "\n".join(parts))
    text = _WHITESPACE_RE.sub(" ", text).strip()
    log.debug("PDF parsed: %s, %d pages, %d chars", path, pages, len(text))
    return PdfText(text=text, pages=pages, info=info)
