"""Minify a generated site directory in place.

Usage:
    python -m site_minifier _site
    python -m site_minifier _site --config _config.json --workers 8
    python -m site_minifier _site --verbose --log-file minify.log
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from site_minifier.cache import CompressorCache
from site_minifier.factory import CompressorFactory
from site_minifier.log import setup_logging
from site_minifier.writer import DEFAULT_WORKERS, minify_tree


def _load_site_config(path: Path | None) -> dict:
    if path is None:
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="site-minifier",
        description="Minify the HTML, CSS, JavaScript, JSON and XML files of a generated site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("destination", type=Path, help="Generated site directory (e.g. _site)")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="JSON site configuration; options are read from its \"minifier\" section",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Number of worker threads (default: {DEFAULT_WORKERS})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=str, default=None, help="Also log to a rotating file")
    args = parser.parse_args(argv)

    logger = setup_logging(verbose=args.verbose, log_file=args.log_file)

    if not args.destination.is_dir():
        logger.error("Site Minifier: %s is not a directory", args.destination)
        return 1

    try:
        site_config = _load_site_config(args.config)
    except (OSError, ValueError) as e:
        logger.error("Site Minifier: Could not read configuration %s: %s", args.config, e)
        return 1

    cache = CompressorCache()
    summary = minify_tree(args.destination, site_config, workers=args.workers, factory=CompressorFactory(cache))

    stats = cache.stats()
    logger.info(
        "Site Minifier: %d minified, %d skipped, %d refused (compressor cache: %d hits, %d misses)",
        summary.processed, summary.skipped, summary.refused, stats.hits, stats.misses,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
