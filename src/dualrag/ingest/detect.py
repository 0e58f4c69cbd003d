"""File-type detection, language detection and embedding model selection."""

from __future__ import annotations

from pathlib import Path

from dualrag.config import DEFAULT_CODE_MODEL, DEFAULT_TEXT_MODEL, IndexConfig

FILE_TYPES = ("code", "markdown", "text", "pdf")

# Extension -> language for files embedded in the code space.
LANGUAGE_MAP: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
    ".cpp": "c++",
    ".cc": "c++",
    ".hpp": "c++",
    ".c": "c",
    ".h": "c",
    ".cs": "csharp",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".r": "r",
    ".m": "objective-c",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "bash",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".vue": "vue",
    ".svelte": "svelte",
    ".sql": "sql",
    ".json": "json",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
}

FILE_TYPE_MAP: dict[str, str] = {
    **{ext: "code" for ext in LANGUAGE_MAP},
    ".md": "markdown",
    ".markdown": "markdown",
    ".pdf": "pdf",
    ".txt": "text",
    ".rst": "text",
    ".adoc": "text",
    ".tex": "text",
}

# Qwen3 embedding models expect an explicit end-of-text token.
_QWEN3_MARKER = "qwen3-embedding"
_QWEN3_SUFFIX = "<|endoftext|>"


def detect_file_type(path: str | Path) -> str:
    """Return ``code``, ``markdown``, ``text`` or ``pdf``; unknown extensions are text."""
    return FILE_TYPE_MAP.get(Path(path).suffix.lower(), "text")


def detect_language(path: str | Path) -> str | None:
    """Return the programming language for *path*, or None if it is not code."""
    return LANGUAGE_MAP.get(Path(path).suffix.lower())


def select_embedding_model(file_type: str, config: IndexConfig) -> str:
    """Pick the embedding model for a file.

    Manual modes always use their single model. Auto mode embeds code files in
    the code space and everything else in the text space.
    """
    if config.embedding_mode == "manual-text":
        return config.text_embedding_model or DEFAULT_TEXT_MODEL
    if config.embedding_mode == "manual-code":
        return config.code_embedding_model or DEFAULT_CODE_MODEL
    if file_type == "code":
        return config.code_embedding_model or DEFAULT_CODE_MODEL
    return config.text_embedding_model or DEFAULT_TEXT_MODEL


def prepare_prompt(text: str, model: str) -> str:
    """Apply model-specific prompt preparation before embedding."""
    if _QWEN3_MARKER in model:
        return text + _QWEN3_SUFFIX
    return text
