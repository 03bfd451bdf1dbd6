"""Tests for the file-write boundary and in-place tree minification."""

import json

import pytest

from site_minifier.cache import CompressorCache
from site_minifier.factory import CompressorFactory
from site_minifier.writer import ENV_VARIABLE, PRODUCTION, AssetWriter, minify_tree

CSS = "body {  color: red;  }"
JS = "function foo ( a ) {\n  return a + 1;\n}\n"


def _writer(tmp_path, production=True, **options):
    environ = {ENV_VARIABLE: PRODUCTION} if production else {}
    return AssetWriter({"minifier": options}, tmp_path, environ=environ)


class TestWriteDocument:
    def test_not_production_writes_verbatim(self, tmp_path):
        writer = _writer(tmp_path, production=False)
        assert writer.write_document(tmp_path / "style.css", CSS)
        assert (tmp_path / "style.css").read_text() == CSS

    def test_other_environment_writes_verbatim(self, tmp_path):
        writer = AssetWriter({}, tmp_path, environ={ENV_VARIABLE: "development"})
        assert writer.is_production() is False

    def test_css_minified(self, tmp_path):
        assert _writer(tmp_path).write_document(tmp_path / "style.css", CSS)
        assert (tmp_path / "style.css").read_text() == "body{color:red}"

    def test_min_css_verbatim(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "style.min.css", CSS)
        assert (tmp_path / "style.min.css").read_text() == CSS

    def test_min_js_verbatim(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "app.min.js", JS)
        assert (tmp_path / "app.min.js").read_text() == JS

    def test_css_disabled(self, tmp_path):
        _writer(tmp_path, compress_css=False).write_document(tmp_path / "style.css", CSS)
        assert (tmp_path / "style.css").read_text() == CSS

    def test_excluded(self, tmp_path):
        writer = _writer(tmp_path, exclude=["assets/*.css"])
        writer.write_document(tmp_path / "assets" / "style.css", CSS)
        assert (tmp_path / "assets" / "style.css").read_text() == CSS

    def test_js_minified(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "app.js", JS)
        assert (tmp_path / "app.js").read_text() == "function foo(a){return a+1;}"

    def test_json_minified(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "feed.json", json.dumps({"a": [1, 2]}, indent=2))
        assert (tmp_path / "feed.json").read_text() == '{"a":[1,2]}'

    def test_html_minified(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "index.html", "<div>\n   <p>Hi   there</p>\n</div>")
        result = (tmp_path / "index.html").read_text()
        assert "<p>Hi there</p>" in result
        assert "\n" not in result

    def test_page_without_extension_is_html(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "about", "<p>a   b</p>")
        assert (tmp_path / "about").read_text() == "<p>a b</p>"

    def test_invalid_json_written_unchanged(self, tmp_path, caplog):
        _writer(tmp_path).write_document(tmp_path / "bad.json", "{ not json }")
        assert (tmp_path / "bad.json").read_text() == "{ not json }"
        assert "JSON compression failed" in caplog.text

    def test_unsafe_path_refused(self, tmp_path):
        writer = _writer(tmp_path)
        assert writer.write_document(str(tmp_path / "sub") + "/../evil.html", "<p>x</p>") is False
        assert not (tmp_path / "evil.html").exists()

    def test_not_production_path_not_checked(self, tmp_path):
        writer = _writer(tmp_path, production=False)
        assert writer.write_document(f"{tmp_path}/~/index.html", "<p>hi</p>") is True
        assert (tmp_path / "~" / "index.html").read_text() == "<p>hi</p>"

    def test_min_file_path_not_checked(self, tmp_path):
        assert _writer(tmp_path).write_document(f"{tmp_path}/~/app.min.js", JS) is True
        assert (tmp_path / "~" / "app.min.js").read_text() == JS

    def test_creates_parent_directories(self, tmp_path):
        _writer(tmp_path).write_document(tmp_path / "a" / "b" / "c.css", CSS)
        assert (tmp_path / "a" / "b" / "c.css").exists()


class TestWriteStatic:
    def test_binary_copied(self, tmp_path):
        source = tmp_path / "src.png"
        source.write_bytes(b"\x89PNG\r\n\x1a\n\x00\xff")
        assert _writer(tmp_path).write_static(source, tmp_path / "out" / "img.png")
        assert (tmp_path / "out" / "img.png").read_bytes() == b"\x89PNG\r\n\x1a\n\x00\xff"

    def test_js_minified(self, tmp_path):
        source = tmp_path / "src.js"
        source.write_text(JS)
        _writer(tmp_path).write_static(source, tmp_path / "out" / "app.js")
        assert (tmp_path / "out" / "app.js").read_text() == "function foo(a){return a+1;}"

    def test_xml_minified_as_html(self, tmp_path):
        source = tmp_path / "feed.src"
        source.write_text("<feed>\n  <!-- generated -->\n  <entry>a</entry>\n</feed>")
        _writer(tmp_path).write_static(source, tmp_path / "feed.xml")
        result = (tmp_path / "feed.xml").read_text()
        assert "<entry>a</entry>" in result
        assert "generated" not in result
        assert "\n" not in result

    def test_not_production_copied(self, tmp_path):
        source = tmp_path / "src.css"
        source.write_text(CSS)
        _writer(tmp_path, production=False).write_static(source, tmp_path / "out.css")
        assert (tmp_path / "out.css").read_text() == CSS

    def test_invalid_encoding_copied(self, tmp_path, caplog):
        source = tmp_path / "src.css"
        source.write_bytes(b"a { content: '\xff' }")
        _writer(tmp_path).write_static(source, tmp_path / "out.css")
        assert (tmp_path / "out.css").read_bytes() == b"a { content: '\xff' }"
        assert "Invalid encoding" in caplog.text

    def test_unsafe_destination(self, tmp_path):
        source = tmp_path / "src.js"
        source.write_text(JS)
        assert _writer(tmp_path).write_static(source, "../out.js") is False

    def test_binary_copy_path_not_checked(self, tmp_path):
        source = tmp_path / "src.png"
        source.write_bytes(b"\x89PNG")
        assert _writer(tmp_path).write_static(source, f"{tmp_path}/~/img.png") is True
        assert (tmp_path / "~" / "img.png").read_bytes() == b"\x89PNG"


class TestExclusion:
    @pytest.mark.parametrize(
        ("relative", "expected"),
        [
            ("vendor/lib.js", True),
            ("vendor/deep/lib.js", True),
            ("robots.txt", True),
            ("assets/app.js", False),
        ],
    )
    def test_globs(self, tmp_path, relative, expected):
        writer = _writer(tmp_path, exclude=["vendor/*", "robots.txt"])
        assert writer.is_excluded(tmp_path / relative) is expected

    def test_no_patterns(self, tmp_path):
        assert _writer(tmp_path).is_excluded(tmp_path / "a.css") is False


class TestMinifyTree:
    def _site(self, root):
        (root / "assets").mkdir()
        (root / "index.html").write_text("<div>\n   <p>Home</p>\n</div>")
        (root / "assets" / "style.css").write_text(CSS)
        (root / "assets" / "style.min.css").write_text(CSS)
        (root / "assets" / "app.js").write_text(JS)
        (root / "assets" / "logo.png").write_bytes(b"\x89PNG")
        (root / "feed.json").write_text('{ "a" : 1 }')

    def test_minifies_in_place(self, tmp_path):
        self._site(tmp_path)
        summary = minify_tree(tmp_path, {})

        assert summary.processed == 4
        assert summary.skipped == 2
        assert summary.refused == 0
        assert summary.total == 6
        assert (tmp_path / "assets" / "style.css").read_text() == "body{color:red}"
        assert (tmp_path / "assets" / "style.min.css").read_text() == CSS
        assert (tmp_path / "feed.json").read_text() == '{"a":1}'
        assert "\n" not in (tmp_path / "index.html").read_text()

    def test_respects_exclude(self, tmp_path):
        self._site(tmp_path)
        summary = minify_tree(tmp_path, {"minifier": {"exclude": ["assets/*"]}})
        assert summary.processed == 2
        assert (tmp_path / "assets" / "app.js").read_text() == JS

    def test_shared_factory_reuses_compressors(self, tmp_path):
        self._site(tmp_path)
        (tmp_path / "other.css").write_text(CSS)
        cache = CompressorCache()
        minify_tree(tmp_path, {}, workers=2, factory=CompressorFactory(cache))
        assert cache.cache_sizes()["css"] == 1
        assert cache.stats().hits >= 1
