"""Core parser orchestration - selects the parser for each file."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from impactgraph.config import IndexerConfig
from impactgraph.exceptions import ParserError
from impactgraph.parser.models import EntityDescriptor, detect_language

logger = logging.getLogger("impactgraph.parser")


def parse_file(file_path: str, source: str | None = None) -> list[EntityDescriptor]:
    """Parse a single file into entity descriptors.

    Unsupported languages and files that fail to parse both yield an empty
    list; a parse failure never aborts the surrounding scan.
    """
    language = detect_language(file_path)
    if not language:
        return []

    if language == "python":
        from impactgraph.parser.python_parser import parse_python_file

        try:
            return parse_python_file(file_path, source)
        except ParserError as e:
            logger.warning(f"Skipping {file_path}: {e}")
            return []

    from impactgraph.parser.tree_sitter_parser import is_available, parse_java_file

    if language == "java" and is_available(language):
        try:
            return parse_java_file(file_path, source)
        except ParserError as e:
            logger.warning(f"Skipping {file_path}: {e}")
            return []

    # Language detected but no tree-sitter grammar installed
    return []


def parse_directory(
    root: str | Path,
    config: IndexerConfig | None = None,
    progress_callback: callable | None = None,
) -> list[EntityDescriptor]:
    """Parse all supported source files in a directory tree.

    Args:
        root: Root directory to scan.
        config: Indexer configuration for exclusion patterns.
        progress_callback: Optional callback(file_path, current, total) for progress.

    Returns:
        Descriptors for every entity found, with repository-relative file paths.
    """
    root = Path(root).resolve()
    if config is None:
        config = IndexerConfig()

    rel_paths = list(_iter_source_paths(root, config))
    return parse_files(root, rel_paths, config, progress_callback)


def collect_files(root: str | Path, config: IndexerConfig | None = None) -> list[Path]:
    """Absolute paths of every parseable file under ``root``."""
    root = Path(root).resolve()
    return [root / rel for rel in _iter_source_paths(root, config or IndexerConfig())]


def parse_files(
    root: str | Path,
    file_paths: list[str],
    config: IndexerConfig | None = None,
    progress_callback: callable | None = None,
) -> list[EntityDescriptor]:
    """Parse a specific set of files (by relative path).

    Like parse_directory but only processes the listed files. Missing files
    (e.g. deleted in the change being analysed) are skipped.
    """
    root = Path(root).resolve()
    if config is None:
        config = IndexerConfig()

    results: list[EntityDescriptor] = []
    total = len(file_paths)
    for i, rel_path in enumerate(file_paths):
        if progress_callback:
            progress_callback(rel_path, i + 1, total)
        if config.languages and detect_language(rel_path) not in config.languages:
            continue
        full_path = root / rel_path
        if not full_path.is_file():
            continue
        try:
            source = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Cannot read {rel_path}: {e}")
            continue
        results.extend(parse_file(rel_path, source))

    logger.debug(f"Parsed {len(results)} entities from {total} files under {root}")
    return results


def _iter_source_paths(root: Path, config: IndexerConfig) -> Iterator[str]:
    """Repository-relative POSIX paths of parseable files, directories walked in sorted order."""
    patterns = config.exclude_patterns + _read_gitignore(root)
    max_bytes = config.max_file_size_kb * 1024

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        dirnames[:] = sorted(d for d in dirnames if not _excluded(rel_dir / d, patterns))

        for filename in sorted(filenames):
            rel_path = rel_dir / filename
            language = detect_language(filename)
            if language is None or _excluded(rel_path, patterns):
                continue
            if config.languages and language not in config.languages:
                continue
            try:
                too_big = (root / rel_path).stat().st_size > max_bytes
            except OSError:
                continue
            if too_big:
                logger.debug(f"Skipping {rel_path.as_posix()}: over {config.max_file_size_kb} KB")
                continue
            yield rel_path.as_posix()


def _excluded(rel_path: Path, patterns: list[str]) -> bool:
    """True if the path or any one of its components matches a pattern."""
    text = rel_path.as_posix()
    return any(
        fnmatch.fnmatch(text, pattern)
        or any(fnmatch.fnmatch(part, pattern) for part in rel_path.parts)
        for pattern in patterns
    )


def _read_gitignore(root: Path) -> list[str]:
    """Top-level .gitignore entries usable as exclusion patterns; negations are skipped."""
    try:
        lines = (root / ".gitignore").read_text().splitlines()
    except OSError:
        return []
    entries = (line.strip() for line in lines)
    return [e.rstrip("/") for e in entries if e and not e.startswith(("#", "!"))]
