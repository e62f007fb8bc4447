"""Tests for the command line interface."""

import logging
from unittest.mock import patch

import pytest

from conftest import SITE, FakeListServer, api_xml
from wikibot.cli import main, parse_params
from wikibot.config import ENV_OVERRIDES
from wikibot.errors import DiscoveryError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # main() configures the package logger; detach its handlers again
    logger = logging.getLogger("wikibot")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def connected(client):
    """Make main() use the mock-backed client instead of discovering a site."""
    with patch("wikibot.cli.WikiClient.from_config", return_value=client) as mock_from_config:
        yield mock_from_config


class TestParseParams:
    """Tests for parse_params."""

    def test_pairs(self):
        assert parse_params(["apnamespace=10", "apprefix=A=B"]) == {"apnamespace": "10", "apprefix": "A=B"}

    def test_empty_value_allowed(self):
        assert parse_params(["apfrom="]) == {"apfrom": ""}


class TestMain:
    """Tests for main."""

    def test_list(self, connected, endpoint, capsys):
        """list should print one title per line."""
        server = FakeListServer("allpages", "ap", [5])
        endpoint.transport.exchange.side_effect = server

        assert main(["--site", SITE, "--quiet", "list", "allpages", "--param", "apnamespace=10", "--limit", "2"]) == 0

        assert capsys.readouterr().out.splitlines() == ["Page 0", "Page 1"]
        assert server.calls[0]["body"] == {"apnamespace": "10"}

    def test_bad_param(self, connected):
        """A --param without "=" should be a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--site", SITE, "list", "allpages", "--param", "apnamespace"])
        assert exc_info.value.code == 2

    def test_no_site(self, capsys):
        """Running without any wiki configured should fail cleanly."""
        assert main(["info"]) == 1
        assert "no wiki given" in capsys.readouterr().err

    def test_site_passed_to_client(self, connected, endpoint):
        endpoint.transport.exchange.return_value = ""

        main(["--site", SITE, "--quiet", "--refresh", "raw", "Main Page"])

        config = connected.call_args[0][0]
        assert config["wiki"]["site_url"] == SITE
        assert config["cache"]["refresh"] is True

    def test_info(self, connected, capsys):
        assert main(["--site", SITE, "--quiet", "info"]) == 0
        out = capsys.readouterr().out
        assert "Example Wiki" in out
        assert "Category" in out

    def test_templates(self, connected, endpoint, capsys):
        endpoint.transport.exchange.return_value = "{{Infobox}} {{PAGENAME}} {{Nav}}"

        assert main(["--site", SITE, "--quiet", "templates", "Sword"]) == 0

        assert capsys.readouterr().out.splitlines() == ["Infobox", "Nav"]

    def test_raw_to_file(self, connected, endpoint, tmp_path):
        """raw --out should save the text under a safe filename."""
        endpoint.transport.exchange.return_value = "Some text"

        assert main(["--site", SITE, "--quiet", "raw", "Help:Contents", "--out", str(tmp_path / "dump")]) == 0

        saved = tmp_path / "dump" / "Help_COLON_Contents.txt"
        assert saved.read_text(encoding="utf-8") == "Some text"

    def test_tree_pages_only(self, connected, endpoint, capsys):
        endpoint.transport.exchange.return_value = api_xml(
            '<query><categorymembers><cm ns="0" title="Sword" /></categorymembers></query>'
        )

        assert main(["--site", SITE, "--quiet", "tree", "Weapons", "--pages-only"]) == 0

        assert capsys.readouterr().out.splitlines() == ["Sword"]

    def test_logs_in_with_configured_account(self, connected, endpoint, monkeypatch):
        monkeypatch.setenv("WIKIBOT_USERNAME", "Bot")
        monkeypatch.setenv("WIKIBOT_PASSWORD", "secret")
        endpoint.transport.exchange.return_value = "text"

        with patch.object(endpoint, "login") as mock_login:
            main(["--site", SITE, "--quiet", "raw", "Main Page"])

        mock_login.assert_called_once_with("Bot", "secret", None)

    def test_library_errors_return_1(self):
        """Errors from the library should be logged and give exit status 1."""
        with patch("wikibot.cli.WikiClient.from_config", side_effect=DiscoveryError("no wiki here")):
            assert main(["--site", SITE, "--quiet", "info"]) == 1
