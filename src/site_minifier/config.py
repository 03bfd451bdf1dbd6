"""Validated, pre-computed view of the plugin's site configuration.

``CompressionConfig`` is built once from the untrusted ``minifier`` section of
a site configuration. Every recognised option is validated at construction;
invalid entries are simply absent afterwards, so every accessor can fall back
to its documented default. Configurations that were already well formed
produce exactly the same compressor arguments they always did.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Mapping
from functools import cached_property
from typing import Any

from site_minifier import validation
from site_minifier.log import LOG_PREFIX
from site_minifier.patterns import CompiledPreservePattern, compile_preserve_patterns

logger = logging.getLogger(__name__)

CONFIG_ROOT = "minifier"

# HTML compression options
HTML_REMOVE_SPACES_INSIDE_TAGS = "remove_spaces_inside_tags"
HTML_REMOVE_MULTI_SPACES = "remove_multi_spaces"
HTML_REMOVE_COMMENTS = "remove_comments"
HTML_REMOVE_INTERTAG_SPACES = "remove_intertag_spaces"
HTML_REMOVE_QUOTES = "remove_quotes"
HTML_COMPRESS_CSS = "compress_css"
HTML_COMPRESS_JAVASCRIPT = "compress_javascript"
HTML_SIMPLE_DOCTYPE = "simple_doctype"
HTML_REMOVE_SCRIPT_ATTRIBUTES = "remove_script_attributes"
HTML_REMOVE_STYLE_ATTRIBUTES = "remove_style_attributes"
HTML_REMOVE_LINK_ATTRIBUTES = "remove_link_attributes"
HTML_REMOVE_FORM_ATTRIBUTES = "remove_form_attributes"
HTML_REMOVE_INPUT_ATTRIBUTES = "remove_input_attributes"
HTML_REMOVE_JAVASCRIPT_PROTOCOL = "remove_javascript_protocol"
HTML_REMOVE_HTTP_PROTOCOL = "remove_http_protocol"
HTML_REMOVE_HTTPS_PROTOCOL = "remove_https_protocol"
HTML_PRESERVE_LINE_BREAKS = "preserve_line_breaks"
HTML_SIMPLE_BOOLEAN_ATTRIBUTES = "simple_boolean_attributes"
HTML_COMPRESS_JS_TEMPLATES = "compress_js_templates"

# File type toggles (the CSS/JS keys double as the inline HTML toggles)
COMPRESS_CSS = "compress_css"
COMPRESS_JAVASCRIPT = "compress_javascript"
COMPRESS_JSON = "compress_json"

# Enhanced CSS compression
CSS_ENHANCED_MODE = "css_enhanced_mode"
CSS_MERGE_DUPLICATE_SELECTORS = "css_merge_duplicate_selectors"
CSS_OPTIMIZE_SHORTHAND_PROPERTIES = "css_optimize_shorthand_properties"
CSS_ADVANCED_COLOR_OPTIMIZATION = "css_advanced_color_optimization"
CSS_PRESERVE_IE_HACKS = "css_preserve_ie_hacks"
CSS_COMPRESS_VARIABLES = "css_compress_variables"

# JavaScript engine arguments; uglifier_args is the legacy name
TERSER_ARGS = "terser_args"
UGLIFIER_ARGS = "uglifier_args"

PRESERVE_PATTERNS = "preserve_patterns"
PRESERVE_PHP = "preserve_php"
EXCLUDE = "exclude"

MAX_CONFIG_KEY_LENGTH = 100
MAX_COMPRESSOR_ARGS = 20
MAX_COMPRESSOR_STRING_LENGTH = 500
COMPRESSOR_NUMBER_RANGE = (-1000, 1000)
ECMA_VERSION_RANGE = (3, 2020)

PHP_PRESERVE_PATTERN = re.compile(r"<\?php.*?\?>", re.IGNORECASE | re.DOTALL)

# Terser option policies
_STRICT_BOOLEAN_ARGS = frozenset({"eval", "with", "toplevel"})
_BOOLEAN_OR_HASH_ARGS = frozenset({"compress", "mangle", "output"})
_NUMERIC_OR_BOOLEAN_ARGS = frozenset({"ecma", "ie8", "safari10"})
_DEPRECATED_ARGS = frozenset({"harmony"})


class OptionKind(enum.Enum):
    """How a recognised option is validated at construction time."""

    BOOLEAN = "boolean"
    # Coerced lazily by the accessor, so bare strings keep working.
    ARRAY = "array"
    COMPRESSOR_ARGS = "compressor_args"


OPTION_KINDS: dict[str, OptionKind] = {
    **{
        key: OptionKind.BOOLEAN
        for key in (
            HTML_REMOVE_SPACES_INSIDE_TAGS, HTML_REMOVE_MULTI_SPACES, HTML_REMOVE_COMMENTS,
            HTML_REMOVE_INTERTAG_SPACES, HTML_REMOVE_QUOTES, HTML_COMPRESS_CSS,
            HTML_COMPRESS_JAVASCRIPT, HTML_SIMPLE_DOCTYPE, HTML_REMOVE_SCRIPT_ATTRIBUTES,
            HTML_REMOVE_STYLE_ATTRIBUTES, HTML_REMOVE_LINK_ATTRIBUTES, HTML_REMOVE_FORM_ATTRIBUTES,
            HTML_REMOVE_INPUT_ATTRIBUTES, HTML_REMOVE_JAVASCRIPT_PROTOCOL, HTML_REMOVE_HTTP_PROTOCOL,
            HTML_REMOVE_HTTPS_PROTOCOL, HTML_PRESERVE_LINE_BREAKS, HTML_SIMPLE_BOOLEAN_ATTRIBUTES,
            HTML_COMPRESS_JS_TEMPLATES, COMPRESS_JSON, CSS_ENHANCED_MODE,
            CSS_MERGE_DUPLICATE_SELECTORS, CSS_OPTIMIZE_SHORTHAND_PROPERTIES,
            CSS_ADVANCED_COLOR_OPTIMIZATION, CSS_PRESERVE_IE_HACKS, CSS_COMPRESS_VARIABLES,
            PRESERVE_PHP,
        )
    },
    PRESERVE_PATTERNS: OptionKind.ARRAY,
    EXCLUDE: OptionKind.ARRAY,
    TERSER_ARGS: OptionKind.COMPRESSOR_ARGS,
    UGLIFIER_ARGS: OptionKind.COMPRESSOR_ARGS,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_compressor_args(value: Any, key: str) -> dict[str, Any] | None:
    """Validate a Terser-style option mapping.

    Returns ``None`` rather than an empty dict when nothing survives, so that
    "has arguments" means at least one validated option.
    """
    validated = validation.validate_hash(value, key, MAX_COMPRESSOR_ARGS, allow_nested=True)
    if not validated:
        return None

    safe_args: dict[str, Any] = {}
    for name, v in validated.items():
        entry_key = f"{key}[{name}]"

        if name in _DEPRECATED_ARGS:
            logger.info("%s Filtering out legacy '%s' option from %s", LOG_PREFIX, name, key)
            continue

        if name in _STRICT_BOOLEAN_ARGS:
            checked = validation.validate_boolean(v, entry_key)
        elif name in _BOOLEAN_OR_HASH_ARGS:
            # Nested option structures are the engine's contract, not ours.
            checked = v if isinstance(v, dict) else validation.validate_boolean(v, entry_key)
        elif name in _NUMERIC_OR_BOOLEAN_ARGS:
            if _is_number(v):
                checked = validation.validate_integer(v, entry_key, *ECMA_VERSION_RANGE)
            else:
                checked = validation.validate_boolean(v, entry_key)
        elif isinstance(v, str):
            checked = validation.validate_string(v, entry_key, MAX_COMPRESSOR_STRING_LENGTH)
        elif _is_number(v):
            checked = validation.validate_integer(v, entry_key, *COMPRESSOR_NUMBER_RANGE)
        elif v is None or isinstance(v, bool):
            safe_args[name] = v
            continue
        else:
            logger.warning("%s Unsupported option type for %s: %s", LOG_PREFIX, entry_key, type(v).__name__)
            continue

        if checked is not None:
            safe_args[name] = checked

    return safe_args or None


class BooleanOption:
    """Read-only boolean accessor backed by a validated configuration key."""

    def __init__(self, key: str, default: bool | None = None) -> None:
        self.key = key
        self.default = default

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: CompressionConfig | None, owner: type) -> Any:
        if instance is None:
            return self
        return instance.get_boolean(self.key, self.default)


class CompressionConfig:
    """Typed accessors over one site configuration.

    Instances are immutable once built and may be shared between threads.

    Args:
        site_config: The host's full site configuration; only the
            ``minifier`` section is read. ``None`` or a non-mapping section
            means "all defaults".
    """

    # HTML compression toggles (None means "leave the engine default")
    remove_spaces_inside_tags = BooleanOption(HTML_REMOVE_SPACES_INSIDE_TAGS)
    remove_multi_spaces = BooleanOption(HTML_REMOVE_MULTI_SPACES)
    remove_comments = BooleanOption(HTML_REMOVE_COMMENTS, True)
    remove_intertag_spaces = BooleanOption(HTML_REMOVE_INTERTAG_SPACES)
    remove_quotes = BooleanOption(HTML_REMOVE_QUOTES)
    compress_css_in_html = BooleanOption(HTML_COMPRESS_CSS, True)
    compress_javascript_in_html = BooleanOption(HTML_COMPRESS_JAVASCRIPT, True)
    simple_doctype = BooleanOption(HTML_SIMPLE_DOCTYPE)
    remove_script_attributes = BooleanOption(HTML_REMOVE_SCRIPT_ATTRIBUTES)
    remove_style_attributes = BooleanOption(HTML_REMOVE_STYLE_ATTRIBUTES)
    remove_link_attributes = BooleanOption(HTML_REMOVE_LINK_ATTRIBUTES)
    remove_form_attributes = BooleanOption(HTML_REMOVE_FORM_ATTRIBUTES)
    remove_input_attributes = BooleanOption(HTML_REMOVE_INPUT_ATTRIBUTES)
    remove_javascript_protocol = BooleanOption(HTML_REMOVE_JAVASCRIPT_PROTOCOL)
    remove_http_protocol = BooleanOption(HTML_REMOVE_HTTP_PROTOCOL)
    remove_https_protocol = BooleanOption(HTML_REMOVE_HTTPS_PROTOCOL)
    preserve_line_breaks = BooleanOption(HTML_PRESERVE_LINE_BREAKS)
    simple_boolean_attributes = BooleanOption(HTML_SIMPLE_BOOLEAN_ATTRIBUTES)
    compress_js_templates = BooleanOption(HTML_COMPRESS_JS_TEMPLATES)

    # File type toggles
    compress_css = BooleanOption(COMPRESS_CSS, True)
    compress_javascript = BooleanOption(COMPRESS_JAVASCRIPT, True)
    compress_json = BooleanOption(COMPRESS_JSON, True)

    # Enhanced CSS toggles
    css_enhanced_mode = BooleanOption(CSS_ENHANCED_MODE, False)
    css_merge_duplicate_selectors = BooleanOption(CSS_MERGE_DUPLICATE_SELECTORS, False)
    css_optimize_shorthand_properties = BooleanOption(CSS_OPTIMIZE_SHORTHAND_PROPERTIES, False)
    css_advanced_color_optimization = BooleanOption(CSS_ADVANCED_COLOR_OPTIMIZATION, False)
    css_preserve_ie_hacks = BooleanOption(CSS_PRESERVE_IE_HACKS, True)
    css_compress_variables = BooleanOption(CSS_COMPRESS_VARIABLES, False)

    preserve_php = BooleanOption(PRESERVE_PHP, False)

    # accessor name -> html compressor argument name
    HTML_ARGUMENT_ACCESSORS: dict[str, str] = {
        "remove_spaces_inside_tags": "remove_spaces_inside_tags",
        "remove_multi_spaces": "remove_multi_spaces",
        "remove_comments": "remove_comments",
        "remove_intertag_spaces": "remove_intertag_spaces",
        "remove_quotes": "remove_quotes",
        "compress_css_in_html": "compress_css",
        "compress_javascript_in_html": "compress_javascript",
        "simple_doctype": "simple_doctype",
        "remove_script_attributes": "remove_script_attributes",
        "remove_style_attributes": "remove_style_attributes",
        "remove_link_attributes": "remove_link_attributes",
        "remove_form_attributes": "remove_form_attributes",
        "remove_input_attributes": "remove_input_attributes",
        "remove_javascript_protocol": "remove_javascript_protocol",
        "remove_http_protocol": "remove_http_protocol",
        "remove_https_protocol": "remove_https_protocol",
        "preserve_line_breaks": "preserve_line_breaks",
        "simple_boolean_attributes": "simple_boolean_attributes",
        "compress_js_templates": "compress_js_templates",
    }

    def __init__(self, site_config: Mapping[str, Any] | None = None) -> None:
        site_config = site_config if isinstance(site_config, Mapping) else {}
        raw = site_config.get(CONFIG_ROOT)
        self._options: dict[str, Any] = {}
        self.extra: dict[str, Any] = {}
        self._validate_configuration(raw if isinstance(raw, Mapping) else {})
        self._terser_args = self._compute_terser_args()

    def _validate_configuration(self, raw_config: Mapping[str, Any]) -> None:
        for key, value in raw_config.items():
            validated_key = validation.validate_string(key, "config_key", MAX_CONFIG_KEY_LENGTH)
            if validated_key is None:
                continue

            kind = OPTION_KINDS.get(validated_key)
            if kind is None:
                # Unknown keys are tolerated for forward compatibility.
                self.extra[validated_key] = value
                continue

            if kind is OptionKind.BOOLEAN:
                validated_value = validation.validate_boolean(value, validated_key)
            elif kind is OptionKind.COMPRESSOR_ARGS:
                validated_value = validate_compressor_args(value, validated_key)
            else:
                validated_value = value

            if validated_value is not None:
                self._options[validated_key] = validated_value

    def _compute_terser_args(self) -> dict[str, Any] | None:
        legacy = self._options.get(UGLIFIER_ARGS) or {}
        current = self._options.get(TERSER_ARGS) or {}
        merged = {**legacy, **current}
        return merged or None

    def get_boolean(self, key: str, default: bool | None = None) -> bool | None:
        if key not in self._options:
            return default
        validated = validation.validate_boolean(self._options[key], key)
        return default if validated is None else validated

    def get_array(self, key: str) -> list[str]:
        return validation.validate_array(self._options.get(key), key)

    @property
    def options(self) -> dict[str, Any]:
        """A copy of the validated recognised options."""
        return dict(self._options)

    # --- Enhanced CSS ---------------------------------------------------

    @property
    def css_enhanced_options(self) -> dict[str, bool] | None:
        if not self.css_enhanced_mode:
            return None
        return {
            "merge_duplicate_selectors": self.css_merge_duplicate_selectors,
            "optimize_shorthand_properties": self.css_optimize_shorthand_properties,
            "advanced_color_optimization": self.css_advanced_color_optimization,
            "preserve_ie_hacks": self.css_preserve_ie_hacks,
            "compress_css_variables": self.css_compress_variables,
        }

    # --- JavaScript -----------------------------------------------------

    @property
    def terser_args(self) -> dict[str, Any] | None:
        return dict(self._terser_args) if self._terser_args is not None else None

    @property
    def has_terser_args(self) -> bool:
        return self._terser_args is not None

    # --- Patterns and exclusions ----------------------------------------

    @property
    def preserve_patterns(self) -> list[str]:
        return self.get_array(PRESERVE_PATTERNS)

    @property
    def exclude_patterns(self) -> list[str]:
        return self.get_array(EXCLUDE)

    @property
    def php_preserve_pattern(self) -> re.Pattern[str]:
        return PHP_PRESERVE_PATTERN

    @cached_property
    def compiled_preserve_patterns(self) -> list[CompiledPreservePattern]:
        return compile_preserve_patterns(self.preserve_patterns)

    # --- HTML -----------------------------------------------------------

    @property
    def html_compressor_args(self) -> dict[str, Any]:
        """Arguments for the HTML compressor, freshly built on every call."""
        args: dict[str, Any] = {
            "remove_comments": True,
            "compress_css": True,
            "compress_javascript": True,
            "preserve_patterns": [],
        }
        for accessor, arg_name in self.HTML_ARGUMENT_ACCESSORS.items():
            value = getattr(self, accessor)
            if value is not None:
                args[arg_name] = value

        if self.preserve_php:
            args["preserve_patterns"].append(self.php_preserve_pattern)
        args["preserve_patterns"].extend(p.regex for p in self.compiled_preserve_patterns)
        return args

    def __repr__(self) -> str:
        return f"{type(self).__name__}(options={sorted(self._options)!r}, extra={sorted(self.extra)!r})"
