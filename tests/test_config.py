"""Tests for the configuration module."""

import logging

import pytest

from site_minifier.config import (
    PHP_PRESERVE_PATTERN,
    CompressionConfig,
    validate_compressor_args,
)


def _config(**options):
    return CompressionConfig({"minifier": options})


def _warnings(caplog):
    return [r for r in caplog.records if r.levelno == logging.WARNING]


class TestDefaults:
    @pytest.mark.parametrize("site_config", [None, {}, {"minifier": None}, {"minifier": "yes"}, ["not", "a", "map"]])
    def test_missing_or_malformed_section(self, site_config):
        config = CompressionConfig(site_config)
        assert config.compress_css is True
        assert config.compress_javascript is True
        assert config.compress_json is True
        assert config.options == {}

    def test_html_toggle_defaults(self):
        config = CompressionConfig()
        assert config.remove_comments is True
        assert config.compress_css_in_html is True
        assert config.compress_javascript_in_html is True
        assert config.simple_doctype is None
        assert config.preserve_line_breaks is None

    def test_enhanced_css_defaults(self):
        config = CompressionConfig()
        assert config.css_enhanced_mode is False
        assert config.css_preserve_ie_hacks is True
        assert config.css_enhanced_options is None

    def test_no_terser_args(self):
        config = CompressionConfig()
        assert config.terser_args is None
        assert config.has_terser_args is False

    def test_no_patterns(self):
        config = CompressionConfig()
        assert config.preserve_patterns == []
        assert config.exclude_patterns == []
        assert config.compiled_preserve_patterns == []


class TestBooleanOptions:
    def test_string_true(self):
        assert _config(compress_css="true").compress_css is True

    def test_string_false(self):
        assert _config(compress_json="0").compress_json is False

    def test_invalid_falls_back_to_default(self, caplog):
        config = _config(compress_json="maybe")
        assert config.compress_json is True
        assert len(_warnings(caplog)) == 1

    def test_invalid_value_not_stored(self):
        assert "compress_json" not in _config(compress_json="maybe").options

    def test_unknown_keys_go_to_extra(self):
        config = _config(future_option=[1, 2])
        assert config.extra == {"future_option": [1, 2]}
        assert config.options == {}

    def test_overlong_key_ignored(self, caplog):
        config = _config(**{"k" * 101: True})
        assert config.extra == {}
        assert "too long" in caplog.text


class TestTerserArgs:
    def test_harmony_filtered(self, caplog):
        caplog.set_level(logging.INFO, logger="site_minifier")
        config = _config(compress_css="true", terser_args={"harmony": True, "compress": True})
        assert config.compress_css is True
        assert config.terser_args == {"compress": True}
        assert "Filtering out legacy 'harmony' option from terser_args" in caplog.text

    def test_only_invalid_args_means_none(self):
        config = _config(terser_args={"harmony": True})
        assert config.terser_args is None
        assert config.has_terser_args is False

    def test_nested_hash_kept(self):
        config = _config(terser_args={"mangle": {"reserved": ["$"]}, "output": {"comments": False}})
        assert config.terser_args == {"mangle": {"reserved": ["$"]}, "output": {"comments": False}}

    def test_nested_keys_stringified(self):
        config = _config(terser_args={"compress": {1: True, "passes": 2}})
        assert config.terser_args == {"compress": {"1": True, "passes": 2}}

    def test_legacy_uglifier_args(self):
        assert _config(uglifier_args={"toplevel": True}).terser_args == {"toplevel": True}

    def test_terser_args_win_over_legacy(self):
        config = _config(uglifier_args={"toplevel": True, "ie8": True}, terser_args={"toplevel": False})
        assert config.terser_args == {"toplevel": False, "ie8": True}

    def test_terser_args_returns_copy(self):
        config = _config(terser_args={"compress": True})
        config.terser_args["compress"] = False
        assert config.terser_args == {"compress": True}

    def test_not_a_mapping(self, caplog):
        assert _config(terser_args="compress").terser_args is None
        assert "Expected a mapping" in caplog.text


class TestValidateCompressorArgs:
    def test_strict_boolean(self):
        assert validate_compressor_args({"eval": "true", "with": "nope"}, "t") == {"eval": True}

    def test_ecma_range(self):
        assert validate_compressor_args({"ecma": 2015}, "t") == {"ecma": 2015}
        assert validate_compressor_args({"ecma": 1}, "t") is None

    def test_numeric_or_boolean(self):
        assert validate_compressor_args({"ie8": False, "safari10": "1"}, "t") == {"ie8": False, "safari10": True}

    def test_generic_string_bounded(self):
        assert validate_compressor_args({"name": "ok", "long": "x" * 501}, "t") == {"name": "ok"}

    def test_generic_number_bounded(self):
        assert validate_compressor_args({"passes": 3, "huge": 5000, "low": -1000}, "t") == {"passes": 3, "low": -1000}

    def test_unsupported_types(self, caplog):
        assert validate_compressor_args({"list": [1, 2], "keep": None}, "t") == {"keep": None}
        assert "Unsupported value type" in caplog.text

    def test_too_many_args(self):
        assert validate_compressor_args({f"k{i}": i for i in range(21)}, "t") is None


class TestPatternsAndExclusions:
    def test_preserve_patterns_compiled(self, caplog):
        config = _config(preserve_patterns=["(a+)+", "<!-- X -->.*?<!-- /X -->"])
        compiled = config.compiled_preserve_patterns
        assert len(compiled) == 1
        assert compiled[0].regex.search("<!-- X --> keep <!-- /X -->")
        assert len(_warnings(caplog)) == 1

    def test_bare_string_exclude(self):
        assert _config(exclude="*.min.css").exclude_patterns == ["*.min.css"]

    def test_exclude_list(self):
        assert _config(exclude=["a.css", None, "b/*.js"]).exclude_patterns == ["a.css", "b/*.js"]

    def test_bare_string_preserve_pattern(self):
        assert _config(preserve_patterns="<%.*?%>").preserve_patterns == ["<%.*?%>"]

    def test_mapping_exclude_rejected(self, caplog):
        assert _config(exclude={"a": "*.css"}).exclude_patterns == []
        assert len(_warnings(caplog)) == 1


class TestHtmlCompressorArgs:
    def test_defaults(self):
        assert CompressionConfig().html_compressor_args == {
            "remove_comments": True,
            "compress_css": True,
            "compress_javascript": True,
            "preserve_patterns": [],
        }

    def test_configured_toggles(self):
        args = _config(preserve_line_breaks=True, compress_css=False, simple_doctype="true").html_compressor_args
        assert args["preserve_line_breaks"] is True
        assert args["compress_css"] is False
        assert args["simple_doctype"] is True

    def test_preserve_php(self):
        assert _config(preserve_php=True).html_compressor_args["preserve_patterns"] == [PHP_PRESERVE_PATTERN]

    def test_user_patterns_after_php(self):
        args = _config(preserve_php=True, preserve_patterns=["{{.*?}}"]).html_compressor_args
        assert args["preserve_patterns"][0] is PHP_PRESERVE_PATTERN
        assert args["preserve_patterns"][1].pattern == "{{.*?}}"

    def test_fresh_dict_each_call(self):
        config = _config(preserve_php=True)
        config.html_compressor_args["preserve_patterns"].clear()
        assert config.html_compressor_args["preserve_patterns"] == [PHP_PRESERVE_PATTERN]


class TestCssEnhancedOptions:
    def test_enabled(self):
        config = _config(css_enhanced_mode=True, css_merge_duplicate_selectors="1")
        assert config.css_enhanced_options == {
            "merge_duplicate_selectors": True,
            "optimize_shorthand_properties": False,
            "advanced_color_optimization": False,
            "preserve_ie_hacks": True,
            "compress_css_variables": False,
        }

    def test_sub_toggles_ignored_without_mode(self):
        assert _config(css_merge_duplicate_selectors=True).css_enhanced_options is None
