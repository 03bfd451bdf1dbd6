"""Safety checks and time-bounded compilation for user-supplied preserve patterns.

Preserve patterns come straight from site configuration, so a pattern is
screened with cheap heuristics for catastrophic-backtracking shapes before it
is compiled, and compilation itself runs on a worker thread that the caller
only waits on for a bounded time. Rejections are logged and skipped; nothing
here fails the build.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any

from site_minifier.log import LOG_PREFIX

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 1000
MAX_GROUP_OPENINGS = 10
MAX_QUANTIFIERS = 20
DEFAULT_COMPILE_TIMEOUT = 1.0

# Shapes that commonly backtrack exponentially.
_REDOS_CHECKS = (
    re.compile(r"\([^)]*[+*]\)[+*]"),      # nested quantifiers: (a+)+, (a*)*
    re.compile(r"\([^)]*\|[^)]*\)[+*]"),   # repeated alternation: (a|a)*
)

# +, * and ? together with their lazy forms count as one token each.
_QUANTIFIER_RE = re.compile(r"[+*?]\??")


@dataclasses.dataclass(frozen=True, slots=True)
class CompiledPreservePattern:
    """A preserve pattern that passed the safety checks and compiled in time."""

    source: str
    regex: re.Pattern[str]

    def finditer(self, text: str) -> Iterator[re.Match[str]]:
        return self.regex.finditer(text)


def valid_regex_pattern(pattern: Any) -> bool:
    """Return True if *pattern* passes the complexity heuristics.

    The heuristics are conservative: they may reject some safe patterns, and
    passing them is not a proof that a pattern cannot backtrack badly.
    """
    if not isinstance(pattern, str) or not pattern.strip():
        return False
    if len(pattern) > MAX_PATTERN_LENGTH:
        return False
    if any(check.search(pattern) for check in _REDOS_CHECKS):
        return False
    if pattern.count("(") > MAX_GROUP_OPENINGS:
        return False
    if len(_QUANTIFIER_RE.findall(pattern)) > MAX_QUANTIFIERS:
        return False
    return True


def _create_regex_safely(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning("%s Invalid regex pattern %r: %s", LOG_PREFIX, pattern, e)
        return None


def compile_regex_with_timeout(pattern: str, timeout_seconds: float) -> re.Pattern[str] | None:
    """Compile *pattern* on a worker thread, waiting at most *timeout_seconds*.

    Returns the compiled pattern, or ``None`` if the engine rejected the syntax
    or the deadline passed. Python threads cannot be killed, so on timeout the
    worker is abandoned: its result lives only in its own future and is never
    read once the caller has given up on it.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="site-minifier-regex")
    try:
        future = executor.submit(_create_regex_safely, pattern)
        try:
            return future.result(timeout=timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning("%s Regex compilation timeout for pattern: %r", LOG_PREFIX, pattern)
            return None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def compile_preserve_patterns(
    patterns: Iterable[Any] | None,
    timeout_seconds: float = DEFAULT_COMPILE_TIMEOUT,
) -> list[CompiledPreservePattern]:
    """Compile every safe pattern in *patterns*, preserving input order.

    Unsafe, invalid or slow patterns are logged and left out. Never raises.
    """
    if patterns is None or isinstance(patterns, (str, bytes)):
        return []

    compiled: list[CompiledPreservePattern] = []
    try:
        candidates = list(patterns)
    except TypeError:
        return []

    for pattern in candidates:
        if not valid_regex_pattern(pattern):
            logger.warning("%s Skipping potentially unsafe regex pattern: %r", LOG_PREFIX, pattern)
            continue
        try:
            regex = compile_regex_with_timeout(pattern, timeout_seconds)
        except Exception as e:
            logger.warning("%s Failed to compile preserve pattern %r: %s", LOG_PREFIX, pattern, e)
            continue
        if regex is not None:
            compiled.append(CompiledPreservePattern(source=pattern, regex=regex))
    return compiled
