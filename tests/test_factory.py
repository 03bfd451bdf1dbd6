"""Tests for compressor construction and the compression entry points."""

import logging

import pytest

from site_minifier import factory as factory_module
from site_minifier.cache import CompressorCache
from site_minifier.config import CompressionConfig
from site_minifier.engines import CssCompressor, EnhancedCssCompressor, HtmlCompressor
from site_minifier.errors import CompressorConstructionError, UnknownCompressorTypeError
from site_minifier.factory import CompressorFactory, MinifyResult, MinifyStatus
from site_minifier.validation import MAX_SAFE_FILE_SIZE


def _config(**options):
    return CompressionConfig({"minifier": options})


def _warnings(caplog):
    return [r for r in caplog.records if r.levelno == logging.WARNING]


@pytest.fixture
def factory():
    return CompressorFactory(CompressorCache())


class TestCompressorAcquisition:
    def test_css_standard(self, factory):
        assert isinstance(factory.create_css_compressor(CompressionConfig()), CssCompressor)

    def test_css_enhanced(self, factory):
        compressor = factory.create_css_compressor(_config(css_enhanced_mode=True))
        assert isinstance(compressor, EnhancedCssCompressor)

    def test_same_config_same_object(self, factory):
        assert factory.create_js_compressor(CompressionConfig()) is factory.create_js_compressor(CompressionConfig())

    def test_normalised_configs_share_compressor(self, factory):
        first = factory.create_js_compressor(_config(terser_args={"compress": "true"}))
        second = factory.create_js_compressor(_config(terser_args={"compress": True}))
        assert first is second
        assert factory.cache.stats().hits == 1

    def test_different_configs_differ(self, factory):
        first = factory.create_js_compressor(_config(terser_args={"output": {"comments": False}}))
        second = factory.create_js_compressor(CompressionConfig())
        assert first is not second
        assert factory.cache.cache_sizes()["js"] == 2

    def test_html_cached(self, factory):
        config = _config(preserve_php=True)
        compressor = factory.create_html_compressor(config)
        assert isinstance(compressor, HtmlCompressor)
        assert factory.create_html_compressor(_config(preserve_php=True)) is compressor

    def test_html_long_preserve_patterns_not_shared(self, factory):
        prefix = "<!-- KEEP -->" + "x" * 250
        first = factory.create_html_compressor(_config(preserve_patterns=[prefix + "AAA"]))
        second = factory.create_html_compressor(_config(preserve_patterns=[prefix + "BBB"]))
        assert first is not second
        assert factory.cache.cache_sizes()["html"] == 2

    def test_html_gets_inline_compressors(self, factory):
        compressor = factory.create_html_compressor(CompressionConfig())
        assert compressor.options.css_compressor is not None
        assert compressor.options.javascript_compressor is not None

    def test_construction_error(self, factory, monkeypatch):
        def broken(config):
            raise ValueError("unsupported option")

        monkeypatch.setattr(factory_module, "build_js_compressor", broken)

        with pytest.raises(CompressorConstructionError, match="unsupported option"):
            factory.create_js_compressor(CompressionConfig())
        assert factory.cache.cache_sizes()["total"] == 0

    def test_construction_error_propagates_from_minify(self, factory, monkeypatch):
        def broken(config):
            raise ValueError("unsupported option")

        monkeypatch.setattr(factory_module, "build_js_compressor", broken)

        with pytest.raises(CompressorConstructionError):
            factory.minify("html", "<p>x</p>", CompressionConfig())


class TestMinify:
    def test_css(self, factory):
        result = factory.minify("css", "body {  color: red;  }", CompressionConfig(), "style.css")
        assert result.ok
        assert result.text == "body{color:red}"
        assert result.status is MinifyStatus.COMPRESSED
        assert result.saved == result.original_length - len("body{color:red}")

    def test_js(self, factory):
        assert factory.compress_js("var  a = 1 ;\n", CompressionConfig()) == "var a=1;"

    def test_js_nested_args_with_integer_keys(self, factory):
        config = _config(terser_args={"compress": {1: True, "passes": 2}})
        assert factory.compress_js("var  a = 1 ;\n", config) == "var a=1;"

    def test_json(self, factory):
        assert factory.compress_json('{ "a" : [1, 2] }', CompressionConfig()) == '{"a":[1,2]}'

    def test_invalid_json_returns_original(self, factory, caplog):
        result = factory.minify("json", "{not json", CompressionConfig(), "data.json")
        assert result.status is MinifyStatus.COMPRESSION_FAILED
        assert result.text == "{not json"
        assert result.error
        assert "JSON compression failed for data.json" in caplog.text

    def test_html_preserves_php(self, factory):
        html = "<div>\n  <?php echo   $x; ?>\n</div>"
        assert "<?php echo   $x; ?>" in factory.compress_html(html, _config(preserve_php=True))

    def test_html_preserve_patterns(self, factory):
        html = "<div>\n  <!-- KEEP -->  a   b  <!-- /KEEP -->\n</div>"
        config = _config(preserve_patterns=["<!-- KEEP -->.*?<!-- /KEEP -->"])
        assert "<!-- KEEP -->  a   b  <!-- /KEEP -->" in factory.compress_html(html, config)

    def test_enhanced_css(self, factory):
        config = _config(css_enhanced_mode=True, css_merge_duplicate_selectors=True)
        assert factory.compress_css(".a{top:0}.a{left:0}", config) == ".a{top:0;left:0}"

    def test_unknown_kind(self, factory):
        with pytest.raises(UnknownCompressorTypeError):
            factory.minify("xml", "<a/>", CompressionConfig())

    def test_oversized_content(self, factory, caplog):
        content = "a" * (MAX_SAFE_FILE_SIZE + 1)
        result = factory.minify("css", content, CompressionConfig(), "huge.css")
        assert result.status is MinifyStatus.VALIDATION_FAILED
        assert result.text is content
        assert len(_warnings(caplog)) == 2
        assert factory.cache.stats().lookups == 0

    def test_none_content(self, factory):
        result = factory.minify("js", None, CompressionConfig())
        assert result.status is MinifyStatus.VALIDATION_FAILED
        assert result.text is None

    def test_engine_failure_falls_back(self, factory, monkeypatch, caplog):
        def explode(self, css, line_break=None):
            raise RuntimeError("boom")

        monkeypatch.setattr(CssCompressor, "compress", explode)

        result = factory.minify("css", "a { top: 0 }", CompressionConfig(), "a.css")
        assert result.status is MinifyStatus.COMPRESSION_FAILED
        assert result.text == "a { top: 0 }"
        assert result.error == "boom"
        warnings = _warnings(caplog)
        assert len(warnings) == 1
        assert "CSS compression failed for a.css: boom" in warnings[0].getMessage()


class TestMinifyResult:
    def test_str_is_text(self):
        result = MinifyResult(
            text="a{}",
            status=MinifyStatus.COMPRESSED,
            kind="css",
            file_path="a.css",
            original_length=6,
            compressed_length=3,
        )
        assert str(result) == "a{}"
        assert result.saved == 3
        assert result.ok

    def test_failure_not_ok(self):
        result = MinifyResult(
            text="x",
            status=MinifyStatus.COMPRESSION_FAILED,
            kind="js",
            file_path="x.js",
            original_length=1,
            compressed_length=1,
            error="bad",
        )
        assert not result.ok
        assert result.saved == 0
