"""FastAPI REST API for site-minifier."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from site_minifier import (
    CompressionConfig,
    CompressorCache,
    CompressorConstructionError,
    CompressorFactory,
    MinifyResult,
    __version__,
)
from site_minifier.cache import MAX_CACHE_SIZE
from site_minifier.log import LOG_PREFIX

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Compressor cache
# ---------------------------------------------------------------------------

# Entries per compressor type (default: 10)
CACHE_SIZE = int(os.getenv("MINIFIER_CACHE_SIZE", str(MAX_CACHE_SIZE)))

compressor_cache = CompressorCache(max_size=CACHE_SIZE)
factory = CompressorFactory(compressor_cache)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

ContentKind = Literal["css", "js", "json", "html"]


class MinifyRequest(BaseModel):
    """Request body for the /minify endpoint."""

    kind: ContentKind = Field(..., description="Content type: css, js, json or html")
    content: str = Field(..., description="Content to minify")
    config: dict[str, Any] | None = Field(
        default=None, description="Minifier options (the \"minifier\" section of a site configuration)"
    )
    file_path: str = Field(default="request", description="Name used in log messages")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "kind": "css",
                "content": "body {  color: #ffffff;  }",
                "config": {"css_enhanced_mode": True, "css_advanced_color_optimization": True},
            }
        ]
    }}


class MinifyResponse(BaseModel):
    """Response body for the /minify endpoint."""

    text: str = Field(..., description="Minified content, or the original content on failure")
    status: str = Field(..., description="compressed, validation_failed or compression_failed")
    kind: str
    original_length: int
    compressed_length: int
    error: str | None = Field(default=None, description="Engine error message, if compression failed")


class BatchItem(BaseModel):
    """A single item in a batch minification request."""

    id: str = Field(..., description="Unique identifier for this item")
    kind: ContentKind
    content: str


class BatchRequest(BaseModel):
    """Request body for batch minification; all items share one config."""

    items: list[BatchItem] = Field(..., description="Items to minify")
    config: dict[str, Any] | None = Field(default=None)


class BatchItemResponse(MinifyResponse):
    """A single result in a batch minification response."""

    id: str


class BatchResponse(BaseModel):
    """Response body for batch minification."""

    items: list[BatchItemResponse]
    total_original_length: int
    total_compressed_length: int
    overall_savings_pct: float


class HealthResponse(BaseModel):
    """Response body for health check."""

    status: str = "ok"
    version: str


class CacheStatsResponse(BaseModel):
    """Response body for compressor cache statistics."""

    max_size: int
    hits: int
    misses: int
    evictions: int
    hit_ratio: float
    sizes: dict[str, int]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_config(options: dict[str, Any] | None) -> CompressionConfig:
    """Wrap request options the way they appear in a site configuration."""
    return CompressionConfig({"minifier": options or {}})


def _minify(kind: str, content: str, config: CompressionConfig, file_path: str) -> MinifyResult:
    try:
        return factory.minify(kind, content, config, file_path)
    except CompressorConstructionError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _result_to_response(result: MinifyResult) -> MinifyResponse:
    return MinifyResponse(
        text=result.text,
        status=result.status.value,
        kind=result.kind,
        original_length=result.original_length,
        compressed_length=result.compressed_length,
        error=result.error,
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan - drop cached compressors on shutdown."""
    logger.info("%s Compressor cache ready (%d entries per type)", LOG_PREFIX, CACHE_SIZE)

    yield

    compressor_cache.clear_all()


app = FastAPI(
    title="Site Minifier API",
    description=(
        "REST API for minifying HTML, CSS, JavaScript and JSON with the same "
        "validated configuration, preserve patterns and compressor cache used "
        "by static site builds."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Check API health and version."""
    return HealthResponse(status="ok", version=__version__)


@app.get("/cache/stats", response_model=CacheStatsResponse, tags=["Cache"])
async def cache_stats() -> CacheStatsResponse:
    """Get compressor cache statistics."""
    stats = compressor_cache.stats()
    return CacheStatsResponse(
        max_size=compressor_cache.max_size,
        hits=stats.hits,
        misses=stats.misses,
        evictions=stats.evictions,
        hit_ratio=compressor_cache.hit_ratio(),
        sizes=compressor_cache.cache_sizes(),
    )


@app.delete("/cache", response_model=CacheStatsResponse, tags=["Cache"])
async def clear_cache() -> CacheStatsResponse:
    """Drop every cached compressor and reset the statistics."""
    compressor_cache.clear_all()
    return await cache_stats()


@app.post("/minify", response_model=MinifyResponse, tags=["Minification"])
async def minify(req: MinifyRequest) -> MinifyResponse:
    """Minify one piece of content.

    Unsafe content and engine errors are not HTTP errors: the original
    content comes back with a failure status. Options an engine refuses
    outright produce a 422.
    """
    config = _build_config(req.config)
    return _result_to_response(_minify(req.kind, req.content, config, req.file_path))


@app.post("/minify/batch", response_model=BatchResponse, tags=["Minification"])
async def minify_batch(req: BatchRequest) -> BatchResponse:
    """Minify several items with one shared configuration.

    Returns per-item results and aggregate statistics.
    """
    config = _build_config(req.config)
    items: list[BatchItemResponse] = []
    total_orig = 0
    total_comp = 0

    for item in req.items:
        result = _minify(item.kind, item.content, config, item.id)
        items.append(BatchItemResponse(id=item.id, **_result_to_response(result).model_dump()))
        total_orig += result.original_length
        total_comp += result.compressed_length

    savings = (1.0 - total_comp / total_orig) * 100 if total_orig > 0 else 0.0
    return BatchResponse(
        items=items,
        total_original_length=total_orig,
        total_compressed_length=total_comp,
        overall_savings_pct=savings,
    )
