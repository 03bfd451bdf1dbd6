"""File-write boundary: decides what gets minified on the way to disk.

A static site generator hands every output file to an :class:`AssetWriter`.
Outside production builds, and for excluded or already-minified files, content
is written verbatim; everything else goes through the factory first.
"""

from __future__ import annotations

import dataclasses
import fnmatch
import logging
import os
import shutil
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from site_minifier.config import CompressionConfig
from site_minifier.factory import CompressorFactory
from site_minifier.log import LOG_PREFIX
from site_minifier.validation import validate_file_path

logger = logging.getLogger(__name__)

ENV_VARIABLE = "SITE_ENV"
PRODUCTION = "production"

DEFAULT_WORKERS = 4


def _document_kind(name: str) -> str | None:
    if name.endswith(".js"):
        return None if name.endswith(".min.js") else "js"
    if name.endswith(".json"):
        return "json"
    if name.endswith(".css"):
        return None if name.endswith(".min.css") else "css"
    return "html"


def _static_kind(name: str) -> str | None:
    if name.endswith(".xml"):
        return "html"
    kind = _document_kind(name)
    return None if kind == "html" else kind


class AssetWriter:
    """Writes generated pages and static files, minifying in production.

    Args:
        site_config: Full site configuration; options are read from its
            ``minifier`` section once, at construction.
        destination: Root of the generated site, used to evaluate ``exclude``
            globs against site-relative paths.
        factory: Shared compressor factory; a fresh one (with its own cache)
            is created when omitted.
        environ: Environment mapping consulted for ``SITE_ENV``; defaults to
            ``os.environ``.
    """

    def __init__(
        self,
        site_config: Mapping[str, Any] | None,
        destination: str | os.PathLike[str],
        factory: CompressorFactory | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = CompressionConfig(site_config)
        self.destination = Path(destination)
        self.factory = factory if factory is not None else CompressorFactory()
        self._environ = os.environ if environ is None else environ

    def is_production(self) -> bool:
        return self._environ.get(ENV_VARIABLE) == PRODUCTION

    def _relative(self, dest_path: str | os.PathLike[str]) -> str:
        path = Path(dest_path)
        try:
            return path.relative_to(self.destination).as_posix()
        except ValueError:
            return path.as_posix().lstrip("/")

    def is_excluded(self, dest_path: str | os.PathLike[str]) -> bool:
        patterns = self.config.exclude_patterns
        if not patterns:
            return False
        relative = self._relative(dest_path)
        return any(relative == pattern or fnmatch.fnmatch(relative, pattern) for pattern in patterns)

    def _enabled(self, kind: str) -> bool:
        if kind == "css":
            return bool(self.config.compress_css)
        if kind == "js":
            return bool(self.config.compress_javascript)
        if kind == "json":
            return bool(self.config.compress_json)
        return True

    def _should_minify(self, kind: str | None, dest_path: str | os.PathLike[str]) -> bool:
        return (
            kind is not None
            and self._enabled(kind)
            and self.is_production()
            and not self.is_excluded(dest_path)
        )

    def _minify(self, kind: str, content: str, dest_path: str | os.PathLike[str]) -> str:
        return self.factory.minify(kind, content, self.config, os.fspath(dest_path)).text

    @staticmethod
    def _write(dest: Path, content: str) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(content, encoding="utf-8")

    def write_document(self, dest_path: str | os.PathLike[str], content: str) -> bool:
        """Write a rendered page or document to *dest_path*.

        Returns False, writing nothing, when a file due for minification has
        an unsafe-looking path. Verbatim writes are not checked.
        """
        kind = _document_kind(Path(dest_path).name.lower())
        if self._should_minify(kind, dest_path):
            if not validate_file_path(dest_path):
                return False
            content = self._minify(kind, content, dest_path)

        self._write(Path(dest_path), content)
        return True

    def write_static(self, source_path: str | os.PathLike[str], dest_path: str | os.PathLike[str]) -> bool:
        """Copy a static file to *dest_path*, minifying JS, JSON, CSS and XML.

        Returns False, writing nothing, when a file due for minification has
        an unsafe-looking destination. Plain copies are not checked.
        """
        source = Path(source_path)
        dest = Path(dest_path)
        kind = _static_kind(dest.name.lower())

        if self._should_minify(kind, dest_path):
            if not validate_file_path(dest_path):
                return False
            try:
                content = source.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                logger.warning("%s Invalid encoding in static file: %s. Copying unchanged.", LOG_PREFIX, source)
            else:
                self._write(dest, self._minify(kind, content, dest_path))
                return True

        if source.resolve() == dest.resolve():
            return True
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        return True


@dataclasses.dataclass(frozen=True, slots=True)
class TreeSummary:
    """Counts from one :func:`minify_tree` run."""

    processed: int = 0
    skipped: int = 0
    refused: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.refused


def minify_tree(
    destination: str | os.PathLike[str],
    site_config: Mapping[str, Any] | None,
    workers: int = DEFAULT_WORKERS,
    factory: CompressorFactory | None = None,
) -> TreeSummary:
    """Minify an already-generated site directory in place.

    Runs as a production build regardless of ``SITE_ENV``. Files that would
    not be minified (unknown types, ``.min.*``, excluded paths, disabled
    types) are left untouched and counted as skipped.
    """
    root = Path(destination).resolve()
    writer = AssetWriter(site_config, root, factory=factory, environ={ENV_VARIABLE: PRODUCTION})

    candidates: list[Path] = []
    skipped = 0
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        kind = _static_kind(path.name.lower())
        if path.suffix.lower() in (".html", ".htm"):
            kind = "html"
        if writer._should_minify(kind, path):
            candidates.append(path)
        else:
            skipped += 1

    logger.info("%s Minifying %d of %d files under %s", LOG_PREFIX, len(candidates), len(candidates) + skipped, root)

    processed = 0
    refused = 0
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        for written in executor.map(lambda p: _minify_in_place(writer, p), candidates):
            if written:
                processed += 1
            else:
                refused += 1

    return TreeSummary(processed=processed, skipped=skipped, refused=refused)


def _minify_in_place(writer: AssetWriter, path: Path) -> bool:
    if path.suffix.lower() in (".html", ".htm"):
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("%s Invalid encoding in page: %s. Leaving unchanged.", LOG_PREFIX, path)
            return True
        return writer.write_document(path, content)
    return writer.write_static(path, path)
