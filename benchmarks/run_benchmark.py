#!/usr/bin/env python3
"""
Benchmark suite for site-minifier.

Measures, over a synthetic corpus, how long it takes to acquire a compressor
with a cold versus a warm cache, per-type compression time and size savings,
and the resulting cache hit ratio.

Usage:
    python benchmarks/run_benchmark.py                        # basic run
    python benchmarks/run_benchmark.py --iterations 50        # average over 50 runs
    python benchmarks/run_benchmark.py --enhanced-css         # enhanced CSS passes
    python benchmarks/run_benchmark.py --output results.json  # save to file
"""

from __future__ import annotations

import argparse
import datetime
import json
import platform
import statistics
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

# Ensure the src package is importable when running from repo root.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from site_minifier import CompressionConfig, CompressorCache, CompressorFactory  # noqa: E402


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class AcquisitionResult:
    """Time to obtain a compressor of one type from the cache."""

    kind: str
    cold_ms: float
    warm_mean_ms: float
    warm_median_ms: float
    speedup: float


@dataclass(slots=True)
class KindResult:
    """Compression result for one content type."""

    kind: str
    original_chars: int
    compressed_chars: int
    savings_pct: float
    mean_time_ms: float
    median_time_ms: float
    min_time_ms: float
    max_time_ms: float


@dataclass(slots=True)
class BenchmarkReport:
    """Full benchmark report."""

    timestamp: str
    python_version: str
    platform: str
    iterations: int
    enhanced_css: bool
    acquisition: list[AcquisitionResult] = field(default_factory=list)
    compression: list[KindResult] = field(default_factory=list)
    hits: int = 0
    misses: int = 0
    hit_ratio: float = 0.0


# ---------------------------------------------------------------------------
# Corpus
# ---------------------------------------------------------------------------

_CSS_RULE = """
.card-{i} {{
    margin-top: 10px;
    margin-right: 20px;
    margin-bottom: 10px;
    margin-left: 20px;
    color: rgba(255, 0, 0, 1);
    background-color: #ffffff;
}}
.card-{i} {{ padding: 0px; }}
"""

_JS_FUNCTION = """
/*! widget {i} */
function renderWidget{i}(element, options) {{
    // merge defaults
    var settings = Object.assign({{}}, {{ visible: true, index: {i} }}, options);
    if (settings.visible) {{
        element.innerHTML = "<span>" + settings.index + "</span>";
    }}
    return settings;
}}
"""

_HTML_SECTION = """
<section class="post">
    <!-- post {i} -->
    <h2 class="title">   Post number {i}   </h2>
    <p>
        Lorem ipsum dolor sit amet,    consectetur adipiscing elit.
    </p>
    <pre>
  keep   this   spacing {i}
    </pre>
</section>
"""


def _build_corpus(copies: int = 200) -> dict[str, str]:
    css = "".join(_CSS_RULE.format(i=i) for i in range(copies))
    js = "".join(_JS_FUNCTION.format(i=i) for i in range(copies))
    sections = "".join(_HTML_SECTION.format(i=i) for i in range(copies))
    html = (
        "<!DOCTYPE html>\n<html>\n<head>\n"
        f"<style type=\"text/css\">{_CSS_RULE.format(i=0)}</style>\n"
        f"<script type=\"text/javascript\">{_JS_FUNCTION.format(i=0)}</script>\n"
        f"</head>\n<body>\n{sections}\n</body>\n</html>\n"
    )
    items = [{"id": i, "title": f"Post number {i}", "tags": ["a", "b"], "draft": False} for i in range(copies)]
    return {
        "css": css,
        "js": js,
        "json": json.dumps({"posts": items}, indent=4),
        "html": html,
    }


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_SEP = "-" * 90
_HEADER_FMT = "  {:<6s} {:>10s} {:>10s} {:>8s} {:>10s} {:>10s}"
_ROW_FMT = "  {:<6s} {:>10,d} {:>10,d} {:>7.1f}% {:>9.2f}ms {:>9.2f}ms"
_ACQ_HEADER_FMT = "  {:<6s} {:>12s} {:>12s} {:>10s}"
_ACQ_ROW_FMT = "  {:<6s} {:>10.3f}ms {:>10.4f}ms {:>9.0f}x"


# ---------------------------------------------------------------------------
# Core benchmark logic
# ---------------------------------------------------------------------------


def benchmark_acquisition(
    config: CompressionConfig,
    *,
    iterations: int = 10,
) -> tuple[list[AcquisitionResult], CompressorCache]:
    """Time a cold (constructing) and repeated warm (cached) acquisition per type."""
    cache = CompressorCache()
    factory = CompressorFactory(cache)
    creators = {
        "css": factory.create_css_compressor,
        "js": factory.create_js_compressor,
        "html": factory.create_html_compressor,
    }

    results: list[AcquisitionResult] = []
    for kind, create in creators.items():
        t0 = time.perf_counter()
        create(config)
        cold = (time.perf_counter() - t0) * 1000

        timings: list[float] = []
        for _ in range(iterations):
            t0 = time.perf_counter()
            create(config)
            timings.append((time.perf_counter() - t0) * 1000)

        warm = statistics.mean(timings)
        results.append(AcquisitionResult(
            kind=kind,
            cold_ms=cold,
            warm_mean_ms=warm,
            warm_median_ms=statistics.median(timings),
            speedup=cold / warm if warm > 0 else 0.0,
        ))
    return results, cache


def benchmark_compression(
    corpus: dict[str, str],
    factory: CompressorFactory,
    config: CompressionConfig,
    *,
    iterations: int = 10,
) -> list[KindResult]:
    """Compress each corpus entry *iterations* times and return results."""
    results: list[KindResult] = []

    for kind, text in corpus.items():
        timings: list[float] = []
        compressed = text

        for _ in range(iterations):
            t0 = time.perf_counter()
            compressed = factory.minify(kind, text, config, f"corpus.{kind}").text
            t1 = time.perf_counter()
            timings.append((t1 - t0) * 1000)  # ms

        orig_len = len(text)
        comp_len = len(compressed)
        savings = (1.0 - comp_len / orig_len) * 100.0 if orig_len > 0 else 0.0

        results.append(KindResult(
            kind=kind,
            original_chars=orig_len,
            compressed_chars=comp_len,
            savings_pct=savings,
            mean_time_ms=statistics.mean(timings),
            median_time_ms=statistics.median(timings),
            min_time_ms=min(timings),
            max_time_ms=max(timings),
        ))

    return results


def run_benchmark(
    *,
    iterations: int = 10,
    enhanced_css: bool = False,
    output_path: Path | None = None,
) -> BenchmarkReport:
    """Run the full benchmark over the synthetic corpus."""
    options = {}
    if enhanced_css:
        options = {
            "css_enhanced_mode": True,
            "css_merge_duplicate_selectors": True,
            "css_optimize_shorthand_properties": True,
            "css_advanced_color_optimization": True,
        }
    config = CompressionConfig({"minifier": options})

    report = BenchmarkReport(
        timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        python_version=platform.python_version(),
        platform=platform.platform(),
        iterations=iterations,
        enhanced_css=enhanced_css,
    )

    print("\nsite-minifier benchmark")
    print(f"Python {platform.python_version()} on {platform.platform()}")
    print(f"Iterations: {iterations}")
    if enhanced_css:
        print("Enhanced CSS: ON")
    print(_SEP)

    print("\n  Compressor acquisition (cold = construct, warm = cache hit)")
    print(_ACQ_HEADER_FMT.format("Type", "Cold", "Warm", "Speedup"))
    acquisition, cache = benchmark_acquisition(config, iterations=iterations)
    for r in acquisition:
        print(_ACQ_ROW_FMT.format(r.kind, r.cold_ms, r.warm_mean_ms, r.speedup))
    report.acquisition = acquisition

    print("\n  Compression")
    print(_HEADER_FMT.format("Type", "Orig", "Comp", "Saved", "Mean(ms)", "Med(ms)"))
    compression = benchmark_compression(_build_corpus(), CompressorFactory(cache), config, iterations=iterations)
    for r in compression:
        print(_ROW_FMT.format(r.kind, r.original_chars, r.compressed_chars, r.savings_pct, r.mean_time_ms,
                              r.median_time_ms))
    report.compression = compression

    stats = cache.stats()
    report.hits = stats.hits
    report.misses = stats.misses
    report.hit_ratio = cache.hit_ratio()

    print(f"\n{_SEP}")
    print(f"  Cache: {stats.hits} hits, {stats.misses} misses, hit ratio {report.hit_ratio:.3f}")
    print()

    # Optionally write JSON
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
        print(f"  Results saved to {output_path}")
        print()

    return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Benchmark suite for site-minifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=10,
        help="Number of iterations to average timing over (default: 10)",
    )
    parser.add_argument(
        "--enhanced-css",
        action="store_true",
        help="Enable the enhanced CSS passes",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Path to save JSON results (e.g. benchmarks/results.json)",
    )
    args = parser.parse_args()

    run_benchmark(
        iterations=max(1, args.iterations),
        enhanced_css=args.enhanced_css,
        output_path=args.output,
    )


if __name__ == "__main__":
    main()
