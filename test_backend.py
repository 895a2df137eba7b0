#!/usr/bin/env python3
"""
Backend Testing Script for Tagwright

Tests the pieces around the rewriter: logging and error tracking, build
configuration, the site builder with its manifest, and the command line.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from tagwright.cli import main
from tagwright.core.controller import BuildConfig, SiteBuilder
from tagwright.core.errors import AssetNotFound
from tagwright.core.logger import ErrorTracker, TagwrightLogger
from tagwright.utils.file_manager import FileManager
from tagwright.utils.manifest import Manifest, ManifestRecord

from fakes import HELLO_BYTES, HELLO_HASH


@pytest.fixture
def site(tmp_path):
    """A small site: three documents (one referencing a missing asset) and a web root."""
    source = tmp_path / "site"
    (source / "blog").mkdir(parents=True)
    (source / "index.html").write_text(
        '<html><head><script src="/js/site.js" asset-append-version="true"></script></head><body></body></html>',
        encoding="utf-8",
    )
    (source / "blog" / "post.html").write_text(
        '<html><head><link rel="stylesheet" href="~/css/site.css" asset-append-version></head></html>',
        encoding="utf-8",
    )
    (source / "broken.html").write_text(
        '<html><head><script src="/js/missing.js" asset-append-version="true"></script></head></html>',
        encoding="utf-8",
    )
    (source / "notes.txt").write_text("not a document", encoding="utf-8")

    web_root = tmp_path / "wwwroot"
    (web_root / "js").mkdir(parents=True)
    (web_root / "css").mkdir()
    (web_root / "js" / "site.js").write_bytes(HELLO_BYTES)
    (web_root / "css" / "site.css").write_bytes(b"body{}")

    return {
        "source": str(source),
        "web_root": str(web_root),
        "output": str(tmp_path / "dist"),
        "logs": str(tmp_path / "logs"),
    }


def make_config(site, **kwargs):
    return BuildConfig(source_dir=site["source"], web_root=site["web_root"], output_dir=site["output"],
                       log_dir=site["logs"], **kwargs)


def test_logging_system(tmp_path):
    """Log files are written per application, errors also to their own file."""
    logs = TagwrightLogger(str(tmp_path), app_name="tagwright_test")
    root = logging.getLogger("tagwright_test")
    try:
        logger = logs.get_logger("core")
        logger.info("Logging system test - INFO level")
        logger.error("Logging system test - ERROR level")

        assert logger.name == "tagwright_test.core"
        assert "INFO level" in (tmp_path / "tagwright_test.log").read_text(encoding="utf-8")
        errors = (tmp_path / "tagwright_test_errors.log").read_text(encoding="utf-8")
        assert "ERROR level" in errors
        assert "INFO level" not in errors
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)


def test_error_tracker_report(tmp_path):
    tracker = ErrorTracker(logging.getLogger("tagwright.test"))
    try:
        raise AssetNotFound("/js/missing.js")
    except AssetNotFound as e:
        error_id = tracker.log_error(e, context="rewrite", source="broken.html")
    tracker.log_warning("document has no asset tags", source="plain.html")

    assert error_id.startswith("ERR_")
    summary = tracker.get_error_summary()
    assert summary["total_errors"] == 1
    assert summary["total_warnings"] == 1
    assert summary["error_types"] == {"AssetNotFound": 1}
    assert summary["failed_sources"] == ["broken.html"]

    report = tmp_path / "errors.txt"
    tracker.save_error_report(str(report))
    text = report.read_text(encoding="utf-8")
    assert "Asset not found: /js/missing.js" in text
    assert "Source: broken.html" in text
    assert "Traceback" in text


def test_build_config_load(tmp_path, monkeypatch):
    monkeypatch.setenv("TAGWRIGHT_SITE", "templates")
    config_file = tmp_path / "tagwright.yaml"
    config_file.write_text(
        "source-dir: ${TAGWRIGHT_SITE}\n"
        "web_root: wwwroot\n"
        "path-base: /app\n"
        "concurrency: '2'\n",
        encoding="utf-8",
    )

    config = BuildConfig.load(str(config_file), output_dir="dist", web_root=None)

    assert config.source_dir == "templates"
    assert config.web_root == "wwwroot"
    assert config.output_dir == "dist"
    assert config.path_base == "/app"
    assert config.concurrency == 2
    assert config.include == "**/*.html"
    assert config.attribute_prefix == "asset-"


@pytest.mark.parametrize("text, message", [
    ("source_dir: a\nweb_root: b\ncolour: red\n", "Unknown build settings: colour"),
    ("source_dir: a\n", "Missing build settings: web_root"),
    ("source_dir: ${TAGWRIGHT_UNSET_VARIABLE}\nweb_root: b\n", "Missing build settings: source_dir"),
])
def test_build_config_rejects_bad_files(tmp_path, monkeypatch, text, message):
    monkeypatch.delenv("TAGWRIGHT_UNSET_VARIABLE", raising=False)
    config_file = tmp_path / "tagwright.yaml"
    config_file.write_text(text, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        BuildConfig.load(str(config_file))


@pytest.mark.parametrize("concurrency", [1, 3])
def test_site_builder_run(site, concurrency):
    events = []
    builder = SiteBuilder(make_config(site, concurrency=concurrency))

    stats = builder.run(progress=events.append)

    assert stats == {"discovered": 3, "rewritten": 2, "tags": 2, "failed": 1}
    output = Path(site["output"])
    assert f'src="/js/site.js?v={HELLO_HASH}"' in (output / "index.html").read_text(encoding="utf-8")
    assert "/css/site.css?v=" in (output / "blog" / "post.html").read_text(encoding="utf-8")
    assert not (output / "broken.html").exists()
    assert not (output / "notes.txt").exists()

    rewritten, failed = builder.manifest.get_status_sets()
    assert rewritten == {"index.html", "blog/post.html"}
    assert failed == {"broken.html"}
    assert builder.errors.errors[0].source == "broken.html"
    assert builder.errors.get_error_summary()["missing_assets"] == ["/js/missing.js"]

    assert events[0] == {"type": "discovery", "total": 3}
    assert events[-1]["type"] == "counters"
    assert len([e for e in events if e["type"] == "document"]) == 3


def test_site_builder_with_app_base(site):
    builder = SiteBuilder(make_config(site, app_base="/app"))

    builder.run()

    post = (Path(site["output"]) / "blog" / "post.html").read_text(encoding="utf-8")
    assert "/app/css/site.css?v=" in post


def test_site_builder_records_undecodable_document(site):
    (Path(site["source"]) / "latin1.html").write_bytes(b"<html><body>caf\xe9</body></html>")
    builder = SiteBuilder(make_config(site, concurrency=3))

    stats = builder.run()

    assert stats["discovered"] == 4
    assert stats["failed"] == 2
    assert stats["rewritten"] == 2
    _, failed = builder.manifest.get_status_sets()
    assert failed == {"broken.html", "latin1.html"}
    assert builder.errors.get_error_summary()["error_types"]["UnicodeDecodeError"] == 1


def test_site_builder_stop_before_run(site):
    builder = SiteBuilder(make_config(site))
    builder.stop()

    stats = builder.run()

    assert stats["discovered"] == 3
    assert stats["rewritten"] == 0
    assert builder.manifest.latest_status() == {}


def test_file_manager_keeps_documents_inside_output(tmp_path):
    files = FileManager(str(tmp_path / "dist"))

    saved = files.save_document("<html></html>", "blog/post.html")
    assert saved == str((tmp_path / "dist" / "blog" / "post.html").resolve())
    assert files.get_output_stats()["html_files"] == 1

    with pytest.raises(ValueError):
        files.get_output_path("../escape.html")
    assert files.save_document("<html></html>", "../escape.html") is None


def test_manifest_skips_partial_lines(tmp_path):
    manifest = Manifest(str(tmp_path))
    manifest.append(ManifestRecord(source="index.html", status="started"))
    manifest.append(ManifestRecord(source="index.html", status="rewritten", tags_rewritten=2))
    with open(manifest.path, "a", encoding="utf-8") as f:
        f.write('{"source": "broken.html", "sta')

    assert manifest.latest_status() == {"index.html": "rewritten"}
    assert manifest.summary()["tags"] == 2
    assert [r.status for r in manifest.iter_records()] == ["started", "rewritten"]


def test_cli_build_and_status(site, capsys):
    code = main(["build", "--source", site["source"], "--web-root", site["web_root"],
                 "--output", site["output"], "--log-dir", site["logs"]])

    out = capsys.readouterr().out
    assert code == 1
    assert "discovered=3 rewritten=2 tags=2 failed=1" in out
    assert (Path(site["output"]) / "errors.txt").exists()

    assert main(["status", "--output", site["output"]]) == 0
    out = capsys.readouterr().out
    assert "documents=3 rewritten=2 failed=1" in out
    assert "failed: broken.html" in out


def test_cli_build_requires_source_and_web_root(capsys):
    assert main(["build"]) == 2
    assert "--source and --web-root are required" in capsys.readouterr().err


def test_cli_version(site, capsys):
    code = main(["version", "--web-root", site["web_root"], "--app-base", "/app", "--path-base", "/app",
                 "~/js/site.js", "https://cdn.example.com/x.js", "/js/missing.js"])

    captured = capsys.readouterr()
    assert code == 1
    assert captured.out.splitlines() == [
        f"/app/js/site.js?v={HELLO_HASH}",
        "https://cdn.example.com/x.js",
    ]
    assert "Asset not found" in captured.err


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
