"""Validation and coercion of untrusted configuration values and file content.

Every validator follows the same contract: a value inside the accepted set
comes back in its canonical Python form, anything else comes back as ``None``
(or an empty list for arrays) after exactly one warning. ``None`` input means
"not configured" and is never warned about. Nothing in here raises.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections.abc import Mapping
from typing import Any

from site_minifier.log import LOG_PREFIX

logger = logging.getLogger(__name__)

# Maximum safe file size for processing (50 MiB)
MAX_SAFE_FILE_SIZE = 50 * 1024 * 1024

MAX_SAFE_STRING_LENGTH = 10_000
MAX_SAFE_ARRAY_SIZE = 1_000
MAX_SAFE_HASH_SIZE = 100

DEFAULT_INTEGER_MIN = 0
DEFAULT_INTEGER_MAX = 1_000_000

_TRUE_VALUES = ("true", "1")
_FALSE_VALUES = ("false", "0")

# Control characters other than tab, newline and carriage return.
_UNSAFE_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_TRAVERSAL_MARKERS = ("../", "..\\", "~/")

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def validate_boolean(value: Any, key: str = "unknown") -> bool | None:
    """Coerce *value* to a bool.

    Accepts ``True``/``False``, ``"true"``/``"false"``, ``"1"``/``"0"`` and
    ``1``/``0``. Returns ``None`` for anything else.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
    elif isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False

    logger.warning("%s Invalid boolean value for '%s': %r. Using default.", LOG_PREFIX, key, value)
    return None


def validate_integer(
    value: Any,
    key: str = "unknown",
    min_value: int = DEFAULT_INTEGER_MIN,
    max_value: int = DEFAULT_INTEGER_MAX,
) -> int | None:
    """Coerce *value* to an int within ``[min_value, max_value]``.

    Strings are parsed as base-10 integers; finite floats are truncated.
    Booleans are not integers here.
    """
    if value is None:
        return None

    int_value: int | None = None
    if isinstance(value, bool):
        int_value = None
    elif isinstance(value, int):
        int_value = value
    elif isinstance(value, float) and math.isfinite(value):
        int_value = int(value)
    elif isinstance(value, str):
        try:
            int_value = int(value.strip())
        except ValueError:
            int_value = None

    if int_value is None:
        logger.warning("%s Invalid integer value for '%s': %r. Using default.", LOG_PREFIX, key, value)
        return None

    if int_value < min_value or int_value > max_value:
        logger.warning(
            "%s Integer value for '%s' out of range [%d-%d]: %d. Using default.",
            LOG_PREFIX, key, min_value, max_value, int_value,
        )
        return None

    return int_value


def validate_string(value: Any, key: str = "unknown", max_length: int = MAX_SAFE_STRING_LENGTH) -> str | None:
    """Stringify *value*, rejecting over-long strings and unsafe control characters."""
    if value is None:
        return None

    try:
        str_value = value if isinstance(value, str) else str(value)
    except Exception as e:
        logger.warning("%s Value for '%s' has no string form: %s. Using default.", LOG_PREFIX, key, e)
        return None

    if len(str_value) > max_length:
        logger.warning(
            "%s String value for '%s' too long (%d > %d). Using default.",
            LOG_PREFIX, key, len(str_value), max_length,
        )
        return None

    if _UNSAFE_CONTROL_RE.search(str_value):
        logger.warning("%s String value for '%s' contains unsafe control characters. Using default.", LOG_PREFIX, key)
        return None

    return str_value


def validate_array(value: Any, key: str = "unknown", max_size: int = MAX_SAFE_ARRAY_SIZE) -> list[str]:
    """Coerce *value* to a list of non-empty strings.

    A scalar becomes a one-element list; a mapping is rejected with a
    warning. Oversized lists are truncated to
    *max_size* (one warning); ``None``, empty and over-long elements are
    dropped silently.
    """
    if value is None:
        return []

    if isinstance(value, Mapping):
        logger.warning("%s Expected a list for '%s', got a mapping. Using default.", LOG_PREFIX, key)
        return []

    items = list(value) if isinstance(value, _SEQUENCE_TYPES) else [value]

    if len(items) > max_size:
        logger.warning(
            "%s Array value for '%s' too large (%d > %d). Truncating.",
            LOG_PREFIX, key, len(items), max_size,
        )
        items = items[:max_size]

    valid: list[str] = []
    for element in items:
        if element is None:
            continue
        try:
            text = element if isinstance(element, str) else str(element)
        except Exception:
            continue
        if not text or len(text) > MAX_SAFE_STRING_LENGTH:
            continue
        valid.append(text)
    return valid


def _string_keyed(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    return {str(k): _string_keyed(v) if isinstance(v, Mapping) else v for k, v in mapping.items()}


def validate_hash(
    value: Any,
    key: str = "unknown",
    max_size: int = MAX_SAFE_HASH_SIZE,
    allow_nested: bool = False,
) -> dict[str, Any] | None:
    """Coerce *value* to a dict with string keys and scalar values.

    Oversized mappings are rejected outright rather than truncated. Keys that
    are not strings are dropped. String values go through
    :func:`validate_string`; numbers, booleans and ``None`` pass through;
    nested mappings pass through as plain dicts with string keys only when
    *allow_nested* is set; any other value type is dropped with a warning.
    """
    if value is None:
        return None
    if not isinstance(value, Mapping):
        logger.warning("%s Expected a mapping for '%s', got %s. Using default.", LOG_PREFIX, key, type(value).__name__)
        return None

    if len(value) > max_size:
        logger.warning(
            "%s Hash value for '%s' too large (%d > %d). Using default.",
            LOG_PREFIX, key, len(value), max_size,
        )
        return None

    validated: dict[str, Any] = {}
    for k, v in value.items():
        if not isinstance(k, str) or not k:
            continue
        entry_key = f"{key}[{k}]"

        if isinstance(v, str):
            checked = validate_string(v, entry_key)
            if checked is not None:
                validated[k] = checked
        elif v is None or isinstance(v, (bool, int, float)):
            validated[k] = v
        elif allow_nested and isinstance(v, Mapping):
            validated[k] = _string_keyed(v)
        else:
            logger.warning("%s Unsupported value type for '%s': %s. Skipping.", LOG_PREFIX, entry_key, type(v).__name__)

    return validated


def validate_file_content(content: Any, file_type: str = "unknown", file_path: str = "unknown") -> bool:
    """Return True when *content* is small enough and validly encoded text.

    Structural validity (balanced braces, parseable JSON) is deliberately not
    checked: the engines have real parsers and report their own errors.
    """
    if content is None:
        return False

    if isinstance(content, bytes):
        raw = content
    elif isinstance(content, str):
        # Lone surrogates (undecodable input) survive surrogatepass so the
        # size check can run before the encoding check.
        raw = content.encode("utf-8", "surrogatepass")
    else:
        return False

    if len(raw) > MAX_SAFE_FILE_SIZE:
        logger.warning(
            "%s File too large for safe processing: %s (%d bytes > %d)",
            LOG_PREFIX, file_path, len(raw), MAX_SAFE_FILE_SIZE,
        )
        return False

    try:
        if isinstance(content, bytes):
            content.decode("utf-8")
        else:
            content.encode("utf-8")
    except UnicodeError:
        logger.warning("%s Invalid encoding in %s file: %s. Skipping minification.", LOG_PREFIX, file_type, file_path)
        return False

    return True


def validate_file_path(path: Any) -> bool:
    """Reject empty paths, directory traversal markers and NUL bytes.

    This does not resolve symlinks or normalise the path.
    """
    if path is None:
        return False
    try:
        path_str = os.fspath(path)
    except TypeError:
        return False
    if isinstance(path_str, bytes):
        try:
            path_str = path_str.decode("utf-8")
        except UnicodeDecodeError:
            return False
    if not path_str:
        return False

    if any(marker in path_str for marker in _TRAVERSAL_MARKERS):
        logger.warning("%s Unsafe file path detected: %r", LOG_PREFIX, path_str)
        return False

    if "\0" in path_str:
        logger.warning("%s File path contains null byte: %r", LOG_PREFIX, path_str)
        return False

    return True
