"""Site Minifier - safe, cached minification of generated static sites."""

from site_minifier.cache import CacheStatistics, CompressorCache, generate_cache_key
from site_minifier.config import CompressionConfig
from site_minifier.errors import CompressorConstructionError, MinifierError, UnknownCompressorTypeError
from site_minifier.factory import CompressorFactory, MinifyResult, MinifyStatus
from site_minifier.writer import AssetWriter, TreeSummary, minify_tree

__version__ = "0.1.0"

__all__ = [
    "AssetWriter",
    "CacheStatistics",
    "CompressionConfig",
    "CompressorCache",
    "CompressorConstructionError",
    "CompressorFactory",
    "MinifierError",
    "MinifyResult",
    "MinifyStatus",
    "TreeSummary",
    "UnknownCompressorTypeError",
    "generate_cache_key",
    "minify_tree",
]
