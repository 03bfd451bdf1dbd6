"""Tests for the command line entry point."""

import json

from site_minifier.__main__ import main


class TestMain:
    def test_minifies_directory(self, tmp_path):
        (tmp_path / "style.css").write_text("a {  top: 0;  }")
        assert main([str(tmp_path)]) == 0
        assert (tmp_path / "style.css").read_text() == "a{top:0}"

    def test_reads_config(self, tmp_path):
        site = tmp_path / "site"
        site.mkdir()
        (site / "style.css").write_text("a {  top: 0;  }")
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"minifier": {"compress_css": False}}))

        assert main([str(site), "--config", str(config)]) == 0
        assert (site / "style.css").read_text() == "a {  top: 0;  }"

    def test_not_a_directory(self, tmp_path):
        assert main([str(tmp_path / "missing")]) == 1

    def test_unreadable_config(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text("{ broken")
        assert main([str(tmp_path), "-c", str(config)]) == 1
