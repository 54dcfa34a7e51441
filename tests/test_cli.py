"""Tests for the command line interface."""
import json
import logging
from unittest.mock import patch

import pytest

from site2md.cli import build_parser, main
from site2md.exceptions import FetchError
from site2md.schemas.batch import BatchState, ConversionResult

PAGES = {
    "https://example.com/": '<html><head><title>Home</title></head><body><p>Welcome</p><a href="/docs">Docs</a></body></html>',
    "https://example.com/docs": "<html><head><title>Docs</title></head><body><p>Read me</p></body></html>",
}


class FakeFetchClient:
    calls: list[str] = []

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def fetch_text(self, url, timeout_ms=None):
        FakeFetchClient.calls.append(url)
        if url not in PAGES:
            raise FetchError(url, "HTTP 404", kind="http", status=404)
        return PAGES[url]

    async def fetch_bytes(self, url, timeout_ms=None):
        return b"%PDF"


@pytest.fixture(autouse=True)
def fake_client():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    FakeFetchClient.calls = []
    with patch("site2md.services.fetcher.FetchClient", FakeFetchClient):
        yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _run(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


def test_modules_import():
    import importlib

    for name in ("site2md.cli", "site2md.services.content", "site2md.services.batch", "site2md.services.output"):
        importlib.import_module(name)


class TestParser:
    def test_site_arguments(self):
        args = build_parser().parse_args(
            ["site", "https://example.com", "--max-depth", "1", "--split", "5", "--no-links", "--raw"]
        )
        assert args.command == "site"
        assert args.max_depth == 1
        assert args.split == 5
        assert args.no_links and args.raw
        assert not args.no_title
        assert args.mode == "merged"

    def test_convert_arguments(self):
        args = build_parser().parse_args(["-o", "json", "convert", "https://a.com", "https://b.com", "--mode", "separate"])
        assert args.output == "json"
        assert args.urls == ["https://a.com", "https://b.com"]
        assert args.mode == "separate"

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["convert", "--mode", "zip"])

    def test_no_command(self):
        assert _run([]) == 1


class TestCrawlCommand:
    def test_json_output(self, capsys):
        assert _run(["-o", "json", "crawl", "https://example.com/", "--delay-ms", "0"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["urls"] == ["https://example.com/", "https://example.com/docs"]
        assert payload["visited_count"] == 2

    def test_output_file(self, tmp_path):
        out = tmp_path / "urls.txt"
        assert _run(["crawl", "https://example.com/", "--delay-ms", "0", "--output-file", str(out)]) == 0
        assert out.read_text(encoding="utf-8").split() == ["https://example.com/", "https://example.com/docs"]

    def test_invalid_seed(self):
        assert _run(["crawl", "ftp://example.com/"]) == 2


class TestConvertCommand:
    def test_merged_from_file(self, tmp_path):
        url_file = tmp_path / "site.txt"
        url_file.write_text("https://example.com/\n\nhttps://example.com/docs\n", encoding="utf-8")
        out = tmp_path / "out"
        code = _run(["convert", "--file", str(url_file), "--out", str(out), "--batch-delay-ms", "0"])
        assert code == 0
        text = (out / "site_merged.md").read_text(encoding="utf-8")
        assert "## https://example.com/\n\n# Home" in text
        assert "\n\n---\n\n## https://example.com/docs" in text

    def test_separate_json_summary(self, tmp_path, capsys):
        out = tmp_path / "out"
        code = _run([
            "-o", "json", "convert", "https://example.com/docs", "https://example.com/missing",
            "--out", str(out), "--mode", "separate", "--retries", "1", "--batch-delay-ms", "0",
        ])
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["succeeded"] == 1
        assert payload["failed"] == 1
        assert payload["failed_urls"] == [{"url": "https://example.com/missing", "error": "Page not found (404)"}]
        assert (out / "example.com_docs.md").exists()

    def test_no_urls(self):
        assert _run(["convert"]) == 2

    def test_resume_from_state(self, tmp_path):
        state = BatchState(
            items=["https://example.com/", "https://example.com/docs"],
            current_index=1,
            paused=True,
            results=[ConversionResult(url="https://example.com/", markdown="saved earlier")],
        )
        state_file = tmp_path / "batch.json"
        state_file.write_text(json.dumps(state.to_dict()), encoding="utf-8")
        out = tmp_path / "out"

        code = _run([
            "convert", "--state", str(state_file), "--resume",
            "--out", str(out), "--mode", "separate", "--batch-delay-ms", "0",
        ])
        assert code == 0
        assert FakeFetchClient.calls == ["https://example.com/docs"]
        assert (out / "example.com.md").read_text(encoding="utf-8") == "## https://example.com/\n\nsaved earlier"
        saved = json.loads(state_file.read_text(encoding="utf-8"))
        assert saved["current_index"] == 2

    def test_resume_requires_state(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["convert", "--resume", "--state", str(tmp_path / "nope.json")])

    def test_resume_rejects_new_urls(self, tmp_path, capsys):
        state_file = tmp_path / "batch.json"
        state_file.write_text(json.dumps(BatchState(items=["https://example.com/"]).to_dict()), encoding="utf-8")
        url_file = tmp_path / "more.txt"
        url_file.write_text("https://example.com/docs\n", encoding="utf-8")

        assert _run(["convert", "https://example.com/docs", "--state", str(state_file), "--resume"]) == 2
        assert _run(["convert", "--file", str(url_file), "--state", str(state_file), "--resume"]) == 2
        assert "--resume" in capsys.readouterr().err
        assert FakeFetchClient.calls == []


class TestInterrupt:
    def test_ctrl_c_while_crawling(self, capsys):
        async def interrupted(args):
            raise KeyboardInterrupt

        with patch("site2md.cli._cmd_crawl", interrupted):
            assert _run(["crawl", "https://example.com/"]) == 130
        assert "Interrupted" in capsys.readouterr().err


class TestSiteCommand:
    def test_crawl_then_convert(self, tmp_path):
        out = tmp_path / "out"
        code = _run([
            "site", "https://example.com/", "--delay-ms", "0", "--batch-delay-ms", "0",
            "--out", str(out), "--mode", "separate", "--no-title",
        ])
        assert code == 0
        assert sorted(p.name for p in out.iterdir()) == ["example.com.md", "example.com_docs.md"]
        assert "Read me" in (out / "example.com_docs.md").read_text(encoding="utf-8")
