"""Compressor construction and the content-compression entry points.

This is the only module that talks to the engines in
:mod:`site_minifier.engines`. Compressors are obtained through a
:class:`~site_minifier.cache.CompressorCache`; content that fails validation
or makes an engine raise comes back unchanged with a failure status.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Any

from site_minifier.cache import CompressorCache, generate_cache_key
from site_minifier.config import CompressionConfig
from site_minifier.engines import (
    CssCompressor,
    EnhancedCssCompressor,
    HtmlCompressor,
    JavaScriptCompressor,
    minify_json,
)
from site_minifier.errors import CompressorConstructionError, UnknownCompressorTypeError
from site_minifier.log import LOG_PREFIX
from site_minifier.validation import validate_file_content

logger = logging.getLogger(__name__)

# content kind -> label used in log messages
KIND_LABELS = {
    "css": "CSS",
    "js": "JavaScript",
    "json": "JSON",
    "html": "HTML",
}


class MinifyStatus(enum.Enum):
    COMPRESSED = "compressed"
    VALIDATION_FAILED = "validation_failed"
    COMPRESSION_FAILED = "compression_failed"


@dataclasses.dataclass(frozen=True, slots=True)
class MinifyResult:
    """Outcome of one compression call.

    ``text`` is always safe to write: on either failure status it is the
    original content.
    """

    text: str
    status: MinifyStatus
    kind: str
    file_path: str
    original_length: int
    compressed_length: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is MinifyStatus.COMPRESSED

    @property
    def saved(self) -> int:
        return self.original_length - self.compressed_length

    def __str__(self) -> str:
        return self.text


# ---------------------------------------------------------------------------
# Lock-free construction helpers
#
# These never touch the cache, so the HTML factory can call them while the
# cache lock is held.
# ---------------------------------------------------------------------------


def build_css_compressor(config: CompressionConfig) -> CssCompressor | EnhancedCssCompressor:
    if config.css_enhanced_mode:
        return EnhancedCssCompressor(config.css_enhanced_options)
    return CssCompressor()


def build_js_compressor(config: CompressionConfig) -> JavaScriptCompressor:
    return JavaScriptCompressor(config.terser_args)


def build_html_compressor(config: CompressionConfig) -> HtmlCompressor:
    args = config.html_compressor_args
    args["css_compressor"] = build_css_compressor(config)
    args["javascript_compressor"] = build_js_compressor(config)
    return HtmlCompressor(args)


def _construct(kind: str, builder, config: CompressionConfig) -> Any:
    try:
        return builder(config)
    except Exception as e:
        raise CompressorConstructionError(kind, e) from e


def _length(content: Any) -> int:
    try:
        return len(content)
    except TypeError:
        return 0


class CompressorFactory:
    """Builds (or reuses) compressors and runs them over content.

    One factory, and therefore one cache, is meant to be shared by every
    write in a build; all methods are thread-safe.
    """

    def __init__(self, cache: CompressorCache | None = None) -> None:
        self.cache = cache if cache is not None else CompressorCache()

    # --- Compressor acquisition ---------------------------------------------

    def create_css_compressor(self, config: CompressionConfig) -> CssCompressor | EnhancedCssCompressor:
        if config.css_enhanced_mode:
            key = generate_cache_key({"enhanced_mode": True, "options": config.css_enhanced_options})
        else:
            key = generate_cache_key({"enhanced_mode": False})
        return self.cache.get_or_create("css", key, lambda: _construct("css", build_css_compressor, config))

    def create_js_compressor(self, config: CompressionConfig) -> JavaScriptCompressor:
        key = generate_cache_key({"terser_args": config.terser_args})
        return self.cache.get_or_create("js", key, lambda: _construct("js", build_js_compressor, config))

    def create_html_compressor(self, config: CompressionConfig) -> HtmlCompressor:
        key = generate_cache_key({
            "html_args": config.html_compressor_args,
            "css_enhanced": config.css_enhanced_mode,
            "css_options": config.css_enhanced_options,
            "terser_args": config.terser_args,
        })
        return self.cache.get_or_create("html", key, lambda: _construct("html", build_html_compressor, config))

    # --- Compression ------------------------------------------------------

    def minify(self, kind: str, content: Any, config: CompressionConfig, file_path: str = "unknown") -> MinifyResult:
        """Compress *content* of the given *kind* (``css``, ``js``, ``json`` or ``html``).

        Raises:
            UnknownCompressorTypeError: *kind* is not one of the above.
            CompressorConstructionError: the engine rejected the configured options.
        """
        label = KIND_LABELS.get(kind)
        if label is None:
            raise UnknownCompressorTypeError(kind)

        original_length = _length(content)
        if not validate_file_content(content, label, file_path):
            logger.warning("%s Skipping %s compression for unsafe content: %s", LOG_PREFIX, label, file_path)
            return MinifyResult(
                text=content,
                status=MinifyStatus.VALIDATION_FAILED,
                kind=kind,
                file_path=file_path,
                original_length=original_length,
                compressed_length=original_length,
            )

        run = self._runner(kind, config)
        try:
            compressed = run(content)
        except Exception as e:
            logger.warning(
                "%s %s compression failed for %s: %s. Using original content.",
                LOG_PREFIX, label, file_path, e,
            )
            return MinifyResult(
                text=content,
                status=MinifyStatus.COMPRESSION_FAILED,
                kind=kind,
                file_path=file_path,
                original_length=original_length,
                compressed_length=original_length,
                error=str(e),
            )

        return MinifyResult(
            text=compressed,
            status=MinifyStatus.COMPRESSED,
            kind=kind,
            file_path=file_path,
            original_length=original_length,
            compressed_length=len(compressed),
        )

    def _runner(self, kind: str, config: CompressionConfig):
        if kind == "css":
            return self.create_css_compressor(config).compress
        if kind == "js":
            return self.create_js_compressor(config).compile
        if kind == "html":
            return self.create_html_compressor(config).compress
        return minify_json

    def compress_css(self, content: str, config: CompressionConfig, file_path: str = "unknown") -> str:
        return self.minify("css", content, config, file_path).text

    def compress_js(self, content: str, config: CompressionConfig, file_path: str = "unknown") -> str:
        return self.minify("js", content, config, file_path).text

    def compress_json(self, content: str, config: CompressionConfig, file_path: str = "unknown") -> str:
        return self.minify("json", content, config, file_path).text

    def compress_html(self, content: str, config: CompressionConfig, file_path: str = "unknown") -> str:
        return self.minify("html", content, config, file_path).text
