"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from unittest.mock import Mock
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

# Add project root to path for all tests
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wikibot.client import WikiClient
from wikibot.endpoint import Endpoint, SiteInfo
from wikibot.transport import Transport

SITE = "https://wiki.example.org"


def make_response(text="", status_code=200, url=None, cookies=None, history=None):
    """Build a stand-in for requests.Response."""
    response = Mock()
    response.text = text
    response.status_code = status_code
    response.url = url or f"{SITE}/"
    response.cookies = cookies if cookies is not None else []
    response.history = history or []
    if status_code >= 400:
        response.raise_for_status = Mock(
            side_effect=requests.HTTPError(f"{status_code} Error for url: {response.url}", response=response)
        )
    else:
        response.raise_for_status = Mock()
    return response


def api_xml(inner: str, **attributes) -> str:
    """Wrap XML in an <api> document."""
    attrs = "".join(f' {key}="{value}"' for key, value in attributes.items())
    return f'<?xml version="1.0"?><api{attrs}>{inner}</api>'


def query_of(url: str) -> dict:
    """Flatten the query string of a URL into a dict."""
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


class FakeListServer:
    """Serves a listing in pages of fixed sizes, like api.php does."""

    def __init__(self, list_kind: str, prefix: str, page_sizes: list[int], tag: str = "p"):
        self.list_kind = list_kind
        self.prefix = prefix
        self.page_sizes = page_sizes
        self.tag = tag
        self.calls = []

    def __call__(self, url, body=None, collect_cookies=False, allow_redirects=True):
        query = query_of(url)
        self.calls.append({"query": query, "body": body})
        page = int(query.get(f"{self.prefix}continue", "0"))
        first = sum(self.page_sizes[:page])
        items = "".join(
            f'<{self.tag} ns="0" title="Page {n}" />' for n in range(first, first + self.page_sizes[page])
        )
        cursor = ""
        if page + 1 < len(self.page_sizes):
            cursor = f'<continue {self.prefix}continue="{page + 1}" continue="-||" />'
        return api_xml(f"{cursor}<query><{self.list_kind}>{items}</{self.list_kind}></query>")


@pytest.fixture
def temp_log_dir(tmp_path):
    """Provide a temporary directory for log files."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def site_info():
    """Site info of a typical wiki with a structured endpoint."""
    return SiteInfo(
        site=SITE,
        wiki_path="/wiki/",
        index_path="/w/",
        name="Example Wiki",
        generator="MediaWiki 1.39.3",
        language="en",
        namespaces={
            -1: "Special",
            1: "Talk",
            6: "File",
            10: "Template",
            14: "Category",
        },
        has_api=True,
    )


@pytest.fixture
def endpoint(site_info):
    """Endpoint whose transport is a mock; set transport.exchange per test."""
    transport = Mock(spec=Transport)
    transport.base_url = SITE
    return Endpoint(site_info, transport)


@pytest.fixture
def client(endpoint):
    """WikiClient on top of the mock endpoint."""
    return WikiClient(endpoint)
