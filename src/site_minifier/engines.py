"""Compression engines behind the factory.

Thin wrappers give each third-party minifier the shape the factory expects:
CSS and HTML compressors expose ``compress(text)``, the JavaScript compressor
exposes ``compile(text)``. Any of them may raise on input they cannot handle;
catching that is the factory's job.
"""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Mapping
from typing import Any

import htmlmin
import rcssmin
import rjsmin
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------


class CssCompressor:
    """Standard CSS compression via ``rcssmin``."""

    def __init__(self, line_break: int | None = None, keep_bang_comments: bool = False) -> None:
        self.line_break = line_break
        self.keep_bang_comments = keep_bang_comments

    def compress(self, css: str, line_break: int | None = None) -> str:
        """Compress *css*; a falsy *line_break* keeps the output on one line."""
        compressed = rcssmin.cssmin(css, keep_bang_comments=self.keep_bang_comments)
        max_line_length = line_break if line_break is not None else self.line_break
        if max_line_length:
            compressed = _break_lines(compressed, max_line_length)
        return compressed


def _break_lines(css: str, max_line_length: int) -> str:
    """Insert a newline after the first ``}`` past every *max_line_length* characters."""
    lines: list[str] = []
    start = 0
    for match in re.finditer(r"\}", css):
        if match.end() - start >= max_line_length:
            lines.append(css[start:match.end()])
            start = match.end()
    lines.append(css[start:])
    return "\n".join(line for line in lines if line)


class CssEnhancedOptions(BaseModel):
    """Optional passes run after standard CSS compression."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    merge_duplicate_selectors: bool = Field(default=False, description="Merge adjacent rules with identical selectors")
    optimize_shorthand_properties: bool = Field(default=False, description="Collapse margin/padding longhands")
    advanced_color_optimization: bool = Field(default=False, description="Shortest form for every color value")
    preserve_ie_hacks: bool = Field(default=True, description="Keep *prop, _prop and \\9 hacks")
    compress_css_variables: bool = Field(default=False, description="Collapse whitespace in custom properties")


@dataclasses.dataclass(slots=True)
class _CssBlock:
    """One top-level construct of a stylesheet.

    ``body`` is ``None`` for statements (``@import ...;``, comments);
    ``children`` is set for at-rules that contain further rules.
    """

    prelude: str
    body: str | None = None
    children: list[_CssBlock] | None = None


_NESTING_AT_RULES = (
    "@media", "@supports", "@document", "@-moz-document", "@layer", "@container", "@scope",
    "@keyframes", "@-webkit-keyframes",
)

_HEX6_RE = re.compile(r"#([0-9a-fA-F]{6})(?![0-9a-fA-F])")
_RGB_RE = re.compile(
    r"rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*(?:1(?:\.0*)?|100%)\s*)?\)",
    re.IGNORECASE,
)
_VAR_REF_RE = re.compile(r"var\(\s*(--[\w-]+)\s*(,\s*)?")
_WHITESPACE_RE = re.compile(r"\s+")
_OPAQUE_VALUE_RE = re.compile(r"(url\([^)]*\)|\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*')", re.IGNORECASE)

# Hex values with a shorter (or equal-length, more readable) CSS name.
_HEX_TO_NAME = {
    "#f00": "red", "#ff0000": "red",
    "#c0c0c0": "silver", "#808080": "gray", "#800000": "maroon",
    "#800080": "purple", "#008000": "green", "#808000": "olive",
    "#000080": "navy", "#008080": "teal", "#ffa500": "orange",
    "#f0ffff": "azure", "#f5f5dc": "beige", "#ffe4c4": "bisque",
    "#a52a2a": "brown", "#ff7f50": "coral", "#ffd700": "gold",
    "#4b0082": "indigo", "#fffff0": "ivory", "#f0e68c": "khaki",
    "#faf0e6": "linen", "#da70d6": "orchid", "#cd853f": "peru",
    "#ffc0cb": "pink", "#dda0dd": "plum", "#fa8072": "salmon",
    "#a0522d": "sienna", "#fffafa": "snow", "#d2b48c": "tan",
    "#ff6347": "tomato", "#ee82ee": "violet", "#f5deb3": "wheat",
}
# Names longer than their hex form.
_NAME_TO_HEX = {
    "white": "#fff", "black": "#000", "yellow": "#ff0",
    "fuchsia": "#f0f", "magenta": "#f0f", "cyan": "#0ff", "aqua": "#0ff",
}
_NAME_RE = re.compile(r"(?<![\w#-])(" + "|".join(_NAME_TO_HEX) + r")(?![\w-])", re.IGNORECASE)

_COLOR_PROPERTIES = frozenset({
    "color", "background", "border", "border-top", "border-right", "border-bottom",
    "border-left", "outline", "fill", "stroke", "box-shadow", "text-shadow",
    "column-rule", "text-decoration",
})

_BOX_SHORTHANDS = ("margin", "padding")
_BOX_SIDES = ("top", "right", "bottom", "left")


def _scan_css(css: str, start: int, stop_at_close: bool) -> tuple[list[_CssBlock], int] | None:
    """Split *css* into blocks starting at *start*.

    Returns the blocks and the index just past the closing brace (or the end of
    input), or ``None`` when braces or strings are unbalanced.
    """
    blocks: list[_CssBlock] = []
    i = start
    n = len(css)
    token_start = i

    while i < n:
        ch = css[i]
        if ch in "\"'":
            end = _skip_string(css, i)
            if end is None:
                return None
            i = end
            continue
        if css.startswith("/*", i):
            end = css.find("*/", i + 2)
            if end == -1:
                return None
            if not css[token_start:i].strip():
                blocks.append(_CssBlock(prelude=css[i:end + 2]))
                token_start = end + 2
            i = end + 2
            continue
        if ch == ";":
            blocks.append(_CssBlock(prelude=css[token_start:i + 1]))
            i += 1
            token_start = i
            continue
        if ch == "{":
            prelude = css[token_start:i]
            if prelude.lstrip().lower().startswith(_NESTING_AT_RULES):
                nested = _scan_css(css, i + 1, stop_at_close=True)
                if nested is None:
                    return None
                children, i = nested
                blocks.append(_CssBlock(prelude=prelude, children=children))
            else:
                end = _find_block_end(css, i + 1)
                if end is None:
                    return None
                blocks.append(_CssBlock(prelude=prelude, body=css[i + 1:end]))
                i = end + 1
            token_start = i
            continue
        if ch == "}":
            if not stop_at_close:
                return None
            if css[token_start:i].strip():
                blocks.append(_CssBlock(prelude=css[token_start:i]))
            return blocks, i + 1
        i += 1

    if stop_at_close:
        return None
    if css[token_start:].strip():
        blocks.append(_CssBlock(prelude=css[token_start:]))
    return blocks, n


def _skip_string(css: str, i: int) -> int | None:
    quote = css[i]
    j = i + 1
    while j < len(css):
        if css[j] == "\\":
            j += 2
            continue
        if css[j] == quote:
            return j + 1
        j += 1
    return None


def _find_block_end(css: str, i: int) -> int | None:
    """Index of the ``}`` closing a declaration block that starts at *i*."""
    depth = 1
    while i < len(css):
        ch = css[i]
        if ch in "\"'":
            end = _skip_string(css, i)
            if end is None:
                return None
            i = end
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def _split_declarations(body: str) -> list[str]:
    """Split a declaration block on ``;`` outside strings and parentheses."""
    parts: list[str] = []
    depth = 0
    i = 0
    token_start = 0
    while i < len(body):
        ch = body[i]
        if ch in "\"'":
            end = _skip_string(body, i)
            i = end if end is not None else len(body)
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == ";" and depth == 0:
            parts.append(body[token_start:i])
            token_start = i + 1
        i += 1
    parts.append(body[token_start:])
    return [p for p in parts if p.strip()]


def _split_property(declaration: str) -> tuple[str, str] | None:
    name, sep, value = declaration.partition(":")
    if not sep:
        return None
    return name.strip(), value.strip()


def _shorten_hex(match: re.Match[str]) -> str:
    value = match.group(1).lower()
    if value[0] == value[1] and value[2] == value[3] and value[4] == value[5]:
        return f"#{value[0]}{value[2]}{value[4]}"
    return f"#{value}"


def _rgb_to_hex(match: re.Match[str]) -> str:
    channels = [int(match.group(i)) for i in (1, 2, 3)]
    if any(c > 255 for c in channels):
        return match.group(0)
    return "#" + "".join(f"{c:02x}" for c in channels)


def _optimize_color_value(name: str, value: str) -> str:
    # url() references and strings are copied through untouched.
    pieces = _OPAQUE_VALUE_RE.split(value)
    return "".join(
        piece if index % 2 else _optimize_color_text(name, piece)
        for index, piece in enumerate(pieces)
    )


def _optimize_color_text(name: str, value: str) -> str:
    value = _RGB_RE.sub(_rgb_to_hex, value)
    value = _HEX6_RE.sub(_shorten_hex, value)
    lowered = name.lower()
    if lowered in _COLOR_PROPERTIES or lowered.endswith("-color"):
        value = _NAME_RE.sub(lambda m: _NAME_TO_HEX[m.group(1).lower()], value)
        value = re.sub(
            r"#[0-9a-fA-F]{3,6}(?![0-9a-fA-F])",
            lambda m: _HEX_TO_NAME.get(m.group(0).lower(), m.group(0)),
            value,
        )
    return value


def _shortest_box_value(values: list[str]) -> str:
    top, right, bottom, left = values
    if right == left:
        if top == bottom:
            return top if top == right else f"{top} {right}"
        return f"{top} {right} {bottom}"
    return f"{top} {right} {bottom} {left}"


def _collapse_box_shorthands(declarations: list[tuple[str, str]]) -> list[tuple[str, str]]:
    for shorthand in _BOX_SHORTHANDS:
        names = [f"{shorthand}-{side}" for side in _BOX_SIDES]
        found = {name: value for name, value in declarations if name.lower() in names}
        lowered = [name.lower() for name, _ in declarations]
        if shorthand in lowered or any(lowered.count(n) != 1 for n in names):
            continue
        if any("!important" in found[n].lower() for n in names):
            continue
        values = [found[n] for n in names]
        first = min(lowered.index(n) for n in names)
        collapsed: list[tuple[str, str]] = []
        for index, (name, value) in enumerate(declarations):
            if index == first:
                collapsed.append((shorthand, _shortest_box_value(values)))
            elif name.lower() not in names:
                collapsed.append((name, value))
        declarations = collapsed
    return declarations


def _is_ie_hack(name: str, value: str) -> bool:
    return name.startswith(("*", "_")) or value.endswith("\\9")


def _optimize_body(body: str, options: CssEnhancedOptions) -> str:
    declarations: list[tuple[str, str]] = []
    for raw in _split_declarations(body):
        parsed = _split_property(raw)
        if parsed is None:
            # Not a declaration we understand; keep it verbatim.
            declarations.append((raw, ""))
            continue
        name, value = parsed
        if not options.preserve_ie_hacks and _is_ie_hack(name, value):
            continue
        if options.compress_css_variables:
            if name.startswith("--"):
                value = _WHITESPACE_RE.sub(" ", value).strip()
            value = _VAR_REF_RE.sub(lambda m: f"var({m.group(1)}{',' if m.group(2) else ''}", value)
        if options.advanced_color_optimization and not name.startswith("--"):
            value = _optimize_color_value(name, value)
        declarations.append((name, value))

    if options.optimize_shorthand_properties:
        declarations = _collapse_box_shorthands(declarations)

    return ";".join(f"{name}:{value}" if value else name for name, value in declarations)


def _optimize_blocks(blocks: list[_CssBlock], options: CssEnhancedOptions) -> list[_CssBlock]:
    optimized: list[_CssBlock] = []
    for block in blocks:
        if block.children is not None:
            optimized.append(_CssBlock(prelude=block.prelude, children=_optimize_blocks(block.children, options)))
            continue
        if block.body is None:
            optimized.append(block)
            continue

        body = block.body
        if not block.prelude.lstrip().startswith("@"):
            body = _optimize_body(body, options)

        previous = optimized[-1] if optimized else None
        if (
            options.merge_duplicate_selectors
            and previous is not None
            and previous.body is not None
            and previous.children is None
            and previous.prelude == block.prelude
            and not block.prelude.lstrip().startswith("@")
        ):
            previous.body = ";".join(part for part in (previous.body, body) if part)
            continue
        optimized.append(_CssBlock(prelude=block.prelude, body=body))
    return optimized


def _serialize_blocks(blocks: list[_CssBlock]) -> str:
    parts: list[str] = []
    for block in blocks:
        if block.children is not None:
            parts.append(f"{block.prelude}{{{_serialize_blocks(block.children)}}}")
        elif block.body is not None:
            parts.append(f"{block.prelude}{{{block.body}}}")
        else:
            parts.append(block.prelude)
    return "".join(parts)


def compress_enhanced(css: str, options: Mapping[str, Any] | CssEnhancedOptions | None = None) -> str:
    """Standard compression followed by the passes enabled in *options*.

    Stylesheets the block scanner cannot follow (unbalanced braces or
    strings) get standard compression only.
    """
    if not isinstance(options, CssEnhancedOptions):
        options = CssEnhancedOptions.model_validate(dict(options or {}))

    compressed = rcssmin.cssmin(css)
    scanned = _scan_css(compressed, 0, stop_at_close=False)
    if scanned is None:
        return compressed
    blocks, _ = scanned
    return _serialize_blocks(_optimize_blocks(blocks, options))


class EnhancedCssCompressor:
    """``compress`` interface over :func:`compress_enhanced` for a fixed option set."""

    def __init__(self, options: Mapping[str, Any] | CssEnhancedOptions | None = None) -> None:
        self.options = (
            options if isinstance(options, CssEnhancedOptions)
            else CssEnhancedOptions.model_validate(dict(options or {}))
        )

    def compress(self, css: str, line_break: int | None = None) -> str:
        return compress_enhanced(css, self.options)


# ---------------------------------------------------------------------------
# JavaScript
# ---------------------------------------------------------------------------


class JavaScriptCompressor:
    """JavaScript minification via ``rjsmin``.

    Accepts Terser-style options. ``rjsmin`` does not rename or rewrite code,
    so only comment handling is honoured: like Terser's default, license
    comments (``/*! ... */``) are kept unless ``output``/``format``
    ``comments`` is false.
    """

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        if options is not None and not isinstance(options, Mapping):
            raise TypeError(f"JavaScript compressor options must be a mapping, got {type(options).__name__}")
        self.options = dict(options or {})
        self.keep_bang_comments = self._keeps_comments(self.options)

    @staticmethod
    def _keeps_comments(options: Mapping[str, Any]) -> bool:
        for key in ("output", "format"):
            section = options.get(key)
            if isinstance(section, Mapping) and "comments" in section:
                return section["comments"] not in (False, "false", None)
        return True

    def compile(self, source: str) -> str:
        return rjsmin.jsmin(source, keep_bang_comments=self.keep_bang_comments)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

_JSON_TOKEN_RE = re.compile(
    r'"(?:[^"\\]|\\.)*"|//[^\n]*|/\*.*?\*/|[ \t\n\r]+|[^"/ \t\n\r]+|.',
    re.DOTALL,
)


def minify_json(text: str) -> str:
    """Drop whitespace and comments outside strings; raise ValueError if the result is not JSON."""
    parts: list[str] = []
    for match in _JSON_TOKEN_RE.finditer(text):
        token = match.group(0)
        if token[0] in " \t\n\r" or token.startswith(("//", "/*")):
            continue
        parts.append(token)
    minified = "".join(parts)
    json.loads(minified)
    return minified


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


class HtmlCompressorOptions(BaseModel):
    """Options accepted by :class:`HtmlCompressor`; unknown keys are an error."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    remove_spaces_inside_tags: bool = True
    remove_multi_spaces: bool = True
    remove_comments: bool = True
    remove_intertag_spaces: bool = False
    remove_quotes: bool = False
    compress_css: bool = False
    compress_javascript: bool = False
    simple_doctype: bool = False
    remove_script_attributes: bool = False
    remove_style_attributes: bool = False
    remove_link_attributes: bool = False
    remove_form_attributes: bool = False
    remove_input_attributes: bool = False
    remove_javascript_protocol: bool = False
    remove_http_protocol: bool = False
    remove_https_protocol: bool = False
    preserve_line_breaks: bool = False
    simple_boolean_attributes: bool = False
    compress_js_templates: bool = False
    preserve_patterns: list[Any] = Field(default_factory=list)
    css_compressor: Any = None
    javascript_compressor: Any = None

    @field_validator("preserve_patterns")
    @classmethod
    def _compile_patterns(cls, patterns: list[Any]) -> list[re.Pattern[str]]:
        compiled: list[re.Pattern[str]] = []
        for pattern in patterns:
            if isinstance(pattern, re.Pattern):
                compiled.append(pattern)
            elif isinstance(pattern, str):
                compiled.append(re.compile(pattern))
            else:
                raise ValueError(f"preserve pattern must be a str or compiled pattern, got {type(pattern).__name__}")
        return compiled


_PLACEHOLDER = "%%%SITE_MINIFIER PRESERVE {}%%%"
_PLACEHOLDER_RE = re.compile(r"%%%SITE_MINIFIER PRESERVE (\d+)%%%")

_CONDITIONAL_COMMENT_RE = re.compile(r"<!--\[if\b.*?<!\[endif\]-->", re.IGNORECASE | re.DOTALL)
_PRE_RE = re.compile(r"<(pre|textarea)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(r"(<script\b[^>]*>)(.*?)(</script\s*>)", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"(<style\b[^>]*>)(.*?)(</style\s*>)", re.IGNORECASE | re.DOTALL)
_TYPE_ATTR_RE = re.compile(r"\btype\s*=\s*[\"']?([^\"'\s>]+)", re.IGNORECASE)
_COMMENT_RE = re.compile(r"<!--(?!!).*?-->", re.DOTALL)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[a-zA-Z][^<>]*>")
_BOOLEAN_ATTRIBUTE_RE = re.compile(
    r"\b(checked|selected|disabled|readonly|multiple|nowrap|noresize|defer|async|hidden|"
    r"required|autofocus|autoplay|controls|loop|muted|novalidate|ismap|compact|declare|noshade|nohref)"
    r"\s*=\s*([\"'])\1\2",
    re.IGNORECASE,
)

_JS_TYPES = frozenset({
    "", "text/javascript", "application/javascript", "application/x-javascript",
    "text/ecmascript", "application/ecmascript", "module",
})
_TEMPLATE_TYPES = frozenset({
    "text/template", "text/x-template", "text/html", "text/x-handlebars-template",
    "text/x-jquery-tmpl", "text/ng-template", "text/x-mustache",
})

_SCRIPT_ATTRIBUTE_RES = (
    re.compile(r"\s+type\s*=\s*([\"']?)text/javascript\1", re.IGNORECASE),
    re.compile(r"\s+language\s*=\s*([\"']?)javascript\1", re.IGNORECASE),
)
_STYLE_ATTRIBUTE_RE = re.compile(r"\s+type\s*=\s*([\"']?)text/css\1", re.IGNORECASE)
_LINK_TAG_RE = re.compile(r"<link\b[^>]*\brel\s*=\s*[\"']?stylesheet[\"']?[^>]*>", re.IGNORECASE)
_FORM_TAG_RE = re.compile(r"<form\b[^>]*>", re.IGNORECASE)
_FORM_METHOD_RE = re.compile(r"\s+method\s*=\s*([\"']?)get\1(?=[\s/>])", re.IGNORECASE)
_INPUT_TAG_RE = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
_INPUT_TYPE_RE = re.compile(r"\s+type\s*=\s*([\"']?)text\1(?=[\s/>])", re.IGNORECASE)
_JS_PROTOCOL_RE = re.compile(r"(\son[a-z]+\s*=\s*[\"']?)javascript:", re.IGNORECASE)
_URL_ATTRIBUTE_TEMPLATE = r"(<[^>]*?\s(?:href|src|cite|action)\s*=\s*[\"']?){}(//)"
_HTTP_PROTOCOL_RE = re.compile(_URL_ATTRIBUTE_TEMPLATE.format("http:"), re.IGNORECASE)
_HTTPS_PROTOCOL_RE = re.compile(_URL_ATTRIBUTE_TEMPLATE.format("https:"), re.IGNORECASE)
_REL_EXTERNAL_RE = re.compile(r"\brel\s*=\s*[\"']?[^\"'>]*\bexternal\b", re.IGNORECASE)


_UNQUOTABLE_VALUE_RE = re.compile(r"(\s[\w:.-]+)\s*=\s*(?:\"([^\"'`=<>\s]+)\"|'([^\"'`=<>\s]+)')(?=[\s>])")


class HtmlCompressor:
    """HTML compression: ``htmlmin`` for whitespace and comments, plus html-compressor style attribute passes.

    Raises ``pydantic.ValidationError`` at construction for unknown options.
    """

    def __init__(self, options: Mapping[str, Any] | HtmlCompressorOptions | None = None) -> None:
        self.options = (
            options if isinstance(options, HtmlCompressorOptions)
            else HtmlCompressorOptions.model_validate(dict(options or {}))
        )

    def compress(self, html: str) -> str:
        opts = self.options
        blocks: list[str] = []

        def protect(text: str) -> str:
            blocks.append(text)
            return _PLACEHOLDER.format(len(blocks) - 1)

        text = html
        for pattern in opts.preserve_patterns:
            text = pattern.sub(lambda m: protect(m.group(0)), text)
        text = _CONDITIONAL_COMMENT_RE.sub(lambda m: protect(m.group(0)), text)
        text = _PRE_RE.sub(lambda m: protect(m.group(0)), text)
        text = _SCRIPT_RE.sub(lambda m: protect(self._process_script(m)), text)
        text = _STYLE_RE.sub(lambda m: protect(self._process_style(m)), text)

        if opts.remove_multi_spaces and not opts.preserve_line_breaks:
            text = htmlmin.minify(
                text,
                remove_comments=opts.remove_comments,
                remove_empty_space=opts.remove_intertag_spaces,
                reduce_empty_attributes=False,
                reduce_boolean_attributes=False,
                remove_optional_attribute_quotes=False,
                convert_charrefs=False,
            ).strip()
        else:
            text = self._collapse_whitespace(text)

        text = self._apply_attribute_passes(text)

        # Blocks can hold placeholders of blocks protected before them.
        for _ in range(len(blocks)):
            restored = _PLACEHOLDER_RE.sub(lambda m: blocks[int(m.group(1))], text)
            if restored == text:
                break
            text = restored
        return text

    def _process_script(self, match: re.Match[str]) -> str:
        opts = self.options
        open_tag, body, close_tag = match.groups()
        type_match = _TYPE_ATTR_RE.search(open_tag)
        script_type = type_match.group(1).lower() if type_match else ""

        if script_type in _JS_TYPES:
            if opts.compress_javascript and opts.javascript_compressor is not None and body.strip():
                body = opts.javascript_compressor.compile(body)
            if opts.remove_script_attributes:
                for attribute_re in _SCRIPT_ATTRIBUTE_RES:
                    open_tag = attribute_re.sub("", open_tag)
        elif script_type in _TEMPLATE_TYPES and opts.compress_js_templates:
            body = HtmlCompressor(opts.model_copy(update={"compress_js_templates": False})).compress(body)
        return f"{open_tag}{body}{close_tag}"

    def _process_style(self, match: re.Match[str]) -> str:
        opts = self.options
        open_tag, body, close_tag = match.groups()
        if opts.compress_css and opts.css_compressor is not None and body.strip():
            body = opts.css_compressor.compress(body)
        if opts.remove_style_attributes:
            open_tag = _STYLE_ATTRIBUTE_RE.sub("", open_tag)
        return f"{open_tag}{body}{close_tag}"

    def _collapse_whitespace(self, text: str) -> str:
        opts = self.options
        if opts.remove_comments:
            text = _COMMENT_RE.sub("", text)
        if opts.remove_multi_spaces:
            if opts.preserve_line_breaks:
                text = re.sub(r"[ \t\f\v]+", " ", text)
                text = re.sub(r" ?\n\s*", "\n", text)
            else:
                text = re.sub(r"\s+", " ", text)
        if opts.remove_intertag_spaces:
            text = re.sub(r">[ \t\f\v]+<", "><", text) if opts.preserve_line_breaks else re.sub(r">\s+<", "><", text)
        return text.strip()

    def _apply_attribute_passes(self, text: str) -> str:
        opts = self.options
        if opts.simple_doctype:
            text = _DOCTYPE_RE.sub("<!DOCTYPE html>", text, count=1)
        if opts.remove_spaces_inside_tags:
            text = _TAG_RE.sub(_squeeze_tag, text)
        if opts.simple_boolean_attributes:
            text = _TAG_RE.sub(lambda m: _BOOLEAN_ATTRIBUTE_RE.sub(r"\1", m.group(0)), text)
        if opts.remove_quotes:
            text = _TAG_RE.sub(lambda m: _UNQUOTABLE_VALUE_RE.sub(_unquote, m.group(0)), text)
        if opts.remove_link_attributes:
            text = _LINK_TAG_RE.sub(lambda m: _STYLE_ATTRIBUTE_RE.sub("", m.group(0)), text)
        if opts.remove_form_attributes:
            text = _FORM_TAG_RE.sub(lambda m: _FORM_METHOD_RE.sub("", m.group(0)), text)
        if opts.remove_input_attributes:
            text = _INPUT_TAG_RE.sub(lambda m: _INPUT_TYPE_RE.sub("", m.group(0)), text)
        if opts.remove_javascript_protocol:
            text = _JS_PROTOCOL_RE.sub(r"\1", text)
        if opts.remove_http_protocol:
            text = _strip_protocol(_HTTP_PROTOCOL_RE, text)
        if opts.remove_https_protocol:
            text = _strip_protocol(_HTTPS_PROTOCOL_RE, text)
        return text


def _squeeze_tag(match: re.Match[str]) -> str:
    tag = match.group(0)
    if '"' in tag or "'" in tag:
        # Only collapse whitespace between attributes, never inside values.
        pieces = re.split(r"(\"[^\"]*\"|'[^']*')", tag)
        tag = "".join(p if i % 2 else re.sub(r"\s+", " ", p) for i, p in enumerate(pieces))
    else:
        tag = re.sub(r"\s+", " ", tag)
    return re.sub(r"\s+(/?>)$", r"\1", tag)


def _strip_protocol(pattern: re.Pattern[str], text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        if _REL_EXTERNAL_RE.search(match.group(1)):
            return match.group(0)
        return match.group(1) + match.group(2)

    return pattern.sub(replace, text)


def _unquote(match: re.Match[str]) -> str:
    return f"{match.group(1)}={match.group(2) or match.group(3)}"
