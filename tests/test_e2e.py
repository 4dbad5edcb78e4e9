"""End-to-end tests for scrapbox-codeblocks."""

import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from scrapbox_codeblocks import cli as cli_module
from scrapbox_codeblocks.cli import cli
from scrapbox_codeblocks.source.rest import ScrapboxClient


class TestE2E:
    """End-to-end integration tests."""

    @pytest.fixture
    def runner(self):
        """Create CLI runner."""
        return CliRunner()

    @pytest.fixture
    def fixtures_dir(self):
        """Get fixtures directory path."""
        return Path(__file__).parent / "fixtures"

    @pytest.fixture
    def mock_pages(self, monkeypatch):
        """Serve pages from a mock transport instead of the network."""
        pages = {}
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            page = pages.get(request.url.path)
            if page is None:
                return httpx.Response(
                    404, json={"name": "NotFoundError", "message": "Page not found."}
                )
            return httpx.Response(200, json=page)

        def make_client(base_url="https://scrapbox.io", sid=None, timeout=10.0):
            transport = httpx.MockTransport(handler)
            return ScrapboxClient(base_url=base_url, sid=sid, timeout=timeout,
                                  client=httpx.Client(transport=transport))

        monkeypatch.setattr(cli_module, "ScrapboxClient", make_client)
        return pages, requests

    def test_text_file_table(self, runner, fixtures_dir):
        """Test listing blocks of a text page."""
        result = runner.invoke(cli, ["extract", str(fixtures_dir / "sample_page.txt")])

        assert result.exit_code == 0
        assert "hello.py" in result.output
        assert "Makefile" in result.output
        assert "Found 3 code block(s)" in result.output
        assert "broken" not in result.output

    def test_json_output(self, runner, fixtures_dir):
        """Test JSON output for a text page."""
        result = runner.invoke(cli, ["extract", str(fixtures_dir / "sample_page.txt"), "--json"])

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["count"] == 3
        first = output["blocks"][0]
        assert first["filename"] == "hello.py"
        assert first["lang"] == "py"
        assert [line["text"] for line in first["body"]] == [
            "def hello():",
            '    return "hello"',
            "print(hello())",
        ]
        assert first["next_line"]["text"] == "Text between blocks."
        assert output["blocks"][1]["lang"] == "sh"
        assert output["blocks"][1]["next_line"]["text"] == " after build"
        assert output["blocks"][2]["body"][1]["text"] == "\techo done"

    def test_lang_filter(self, runner, fixtures_dir):
        """Test filtering by language."""
        result = runner.invoke(
            cli, ["extract", str(fixtures_dir / "sample_page.txt"), "--lang", "sh", "--json"]
        )

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["count"] == 1
        assert output["blocks"][0]["filename"] == "build"

    def test_body_output(self, runner, fixtures_dir):
        """Test printing block bodies."""
        result = runner.invoke(
            cli, ["extract", str(fixtures_dir / "sample_page.txt"), "--filename", "hello.py",
                  "--body"]
        )

        assert result.exit_code == 0
        assert 'return "hello"' in result.output
        assert "make all" not in result.output

    def test_page_json_file(self, runner, fixtures_dir):
        """Test reading page JSON."""
        result = runner.invoke(
            cli, ["extract", str(fixtures_dir / "sample_page.json"), "--lang", "css", "--json"]
        )

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["blocks"][0]["filename"] == "style"
        assert output["blocks"][0]["title_line"]["id"] == "61a0000000000000000000a3"

    def test_no_code_blocks(self, runner, fixtures_dir):
        """Test a page without code blocks."""
        result = runner.invoke(cli, ["extract", str(fixtures_dir / "no_blocks.txt")])

        assert result.exit_code == 1
        assert "No code blocks found" in result.output

    def test_filter_matches_nothing(self, runner, fixtures_dir):
        """Test a filter matching no block."""
        result = runner.invoke(
            cli, ["extract", str(fixtures_dir / "sample_page.txt"), "--lang", "rust", "--json"]
        )

        assert result.exit_code == 1
        assert json.loads(result.output) == {"count": 0, "blocks": []}

    @pytest.mark.parametrize("option", [[], ["--body"]])
    def test_bracketed_filename(self, runner, tmp_path, option):
        """Test filenames that look like console markup are printed as-is."""
        path = tmp_path / "brackets.txt"
        path.write_text("code:a[/b].js\n x\ncode:[bold]c(py)\n y\n", encoding="utf-8")

        result = runner.invoke(cli, ["extract", str(path), *option])

        assert result.exit_code == 0
        assert "a[/b].js" in result.output
        assert "[bold]c" in result.output

    def test_nonexistent_file(self, runner):
        """Test error handling for nonexistent file."""
        result = runner.invoke(cli, ["extract", "nonexistent.txt"])

        assert result.exit_code != 0

    def test_missing_source(self, runner):
        """Test that a source or a page is required."""
        result = runner.invoke(cli, ["extract"])

        assert result.exit_code == 2
        assert "--project" in result.output

    def test_source_and_page_conflict(self, runner, fixtures_dir):
        """Test SOURCE cannot be combined with --project/--title."""
        result = runner.invoke(
            cli, ["extract", str(fixtures_dir / "sample_page.txt"), "-P", "p", "-t", "x"]
        )

        assert result.exit_code == 2

    def test_invalid_page_json(self, runner, tmp_path):
        """Test a JSON file that is not a page."""
        path = tmp_path / "bad.json"
        path.write_text('{"title": "x"}', encoding="utf-8")

        result = runner.invoke(cli, ["extract", str(path)])

        assert result.exit_code == 2
        assert "Error" in result.output

    def test_fetch_page(self, runner, fixtures_dir, mock_pages):
        """Test fetching a page by title."""
        pages, requests = mock_pages
        page = json.loads((fixtures_dir / "sample_page.json").read_text(encoding="utf-8"))
        pages["/api/pages/proj/Sample_page"] = page

        result = runner.invoke(
            cli, ["extract", "--project", "proj", "--title", "Sample page", "--json"],
            env={"SCRAPBOX_SID": "s3cret"},
        )

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert [b["filename"] for b in output["blocks"]] == ["index.js", "style"]
        assert requests[0].headers["cookie"] == "connect.sid=s3cret"

    def test_fetch_missing_page(self, runner, mock_pages):
        """Test a missing page is an error, not an empty result."""
        result = runner.invoke(cli, ["extract", "-P", "proj", "-t", "missing"])

        assert result.exit_code == 2
        assert "NotFoundError" in result.output
        assert "No code blocks" not in result.output
