#!/usr/bin/env python3
"""
Endpoint discovery and namespace handling for one wiki installation.

An Endpoint couples a Transport with the facts discovered about the site:
its URL paths, version, capitalization rule, language and namespace table.
Discovery results are cached as JSON so later runs skip the probe.

Usage:
    from wikibot.endpoint import Endpoint

    endpoint = Endpoint.discover("https://wiki.example.org", cache_dir="./cache")
    print(endpoint.info.version, endpoint.namespace_name(14))
"""

import json
import logging
import re
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote, urlencode, urlsplit

from bs4 import BeautifulSoup

from wikibot.errors import (
    ApiError,
    DiscoveryError,
    LoginError,
    MalformedResponseError,
    TransportError,
)
from wikibot.filename_utils import normalize_site_url, url_to_cache_filename
from wikibot.responses import check_api_response, extract_first, local_name, parse_xml, xml_attribute
from wikibot.transport import Transport

TEMPLATE_NAMESPACE = 10
CATEGORY_NAMESPACE = 14

# Canonical English names, used when the site does not localize a namespace
DEFAULT_NAMESPACES = {
    -2: "Media",
    -1: "Special",
    1: "Talk",
    2: "User",
    3: "User talk",
    4: "Project",
    5: "Project talk",
    6: "File",
    7: "File talk",
    8: "MediaWiki",
    9: "MediaWiki talk",
    10: "Template",
    11: "Template talk",
    12: "Help",
    13: "Help talk",
    14: "Category",
    15: "Category talk",
}

# Names accepted as prefixes although sites no longer report them
NAMESPACE_ALIASES = {
    6: ("Image",),
    7: ("Image talk",),
}

_INDEX_HREF_RE = re.compile(r"^(/[^\"\s<>?]*?)index\.php(\?|/|$)", re.IGNORECASE)
_WG_SCRIPT_RE = re.compile(r"wgScript[\"']?\s*[=:]\s*[\"'](/[^\"'\s<>?]*?)index\.php", re.IGNORECASE)


@dataclass(frozen=True)
class SiteInfo:
    """Everything discovered about a wiki installation."""

    site: str
    wiki_path: str = "/wiki/"
    index_path: str = "/w/"
    name: str = ""
    generator: str = ""
    capitalization: str = "first-letter"
    language: str = ""
    lang_direction: str = "ltr"
    namespaces: dict = field(default_factory=dict)
    has_api: bool = False

    @property
    def version(self) -> tuple:
        """Server version parsed from the generator string (e.g., (1, 39, 3))."""
        digits = re.sub(r"[^\d.]", "", self.generator).strip(".")
        return tuple(int(part) for part in digits.split(".") if part)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["namespaces"] = {str(key): name for key, name in self.namespaces.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SiteInfo":
        values = dict(data)
        values["namespaces"] = {int(key): name for key, name in data.get("namespaces", {}).items()}
        known = cls.__dataclass_fields__
        return cls(**{key: value for key, value in values.items() if key in known})


def parse_probe(final_url: str, html: str) -> dict:
    """
    Read site paths and language from the main page.

    Args:
        final_url: URL the main page request ended at after redirects
        html: Main page HTML

    Returns:
        Dict with site, wiki_path, index_path (None if not found),
        language and lang_direction
    """
    parts = urlsplit(final_url)
    site = f"{parts.scheme}://{parts.netloc}"
    path = parts.path

    wiki_path = ""
    index_path = None
    if path.endswith("/index.php") and parts.query:
        index_path = path[: -len("index.php")]
    else:
        match = re.match(r"(/.+?/).+", path)
        if match:
            wiki_path = match.group(1)
    if not wiki_path and not index_path and not path.strip("/"):
        wiki_path = "/"

    soup = BeautifulSoup(html, "html.parser")

    if index_path is None:
        for tag in soup.find_all(href=True):
            href_match = _INDEX_HREF_RE.match(tag["href"])
            if href_match:
                index_path = href_match.group(1)
                break
    if index_path is None:
        script_match = _WG_SCRIPT_RE.search(html)
        if script_match:
            index_path = script_match.group(1)

    root = soup.find("html")
    language = root.get("lang", "") if root else ""
    direction = root.get("dir", "") if root else ""

    return {
        "site": site,
        "wiki_path": wiki_path or "/wiki/",
        "index_path": index_path,
        "language": language,
        "lang_direction": direction or "ltr",
    }


def parse_siteinfo(text: str) -> dict:
    """
    Parse an api.php meta=siteinfo (general|namespaces) XML response.

    Returns:
        Dict with name, generator, capitalization, language, lang_direction,
        namespaces and, where reported, wiki_path and index_path
    """
    root = check_api_response(text)
    general = root.find("query/general")
    if general is None:
        raise MalformedResponseError("siteinfo response has no <general> element")

    details = {
        "name": general.get("sitename", ""),
        "generator": general.get("generator", ""),
        "capitalization": general.get("case", "first-letter"),
        "language": general.get("lang", ""),
        "lang_direction": "rtl" if general.get("rtl") is not None else "ltr",
        "namespaces": {},
    }
    if general.get("scriptpath") is not None:
        details["index_path"] = general.get("scriptpath").rstrip("/") + "/"
    article_path = general.get("articlepath", "")
    if article_path.endswith("$1"):
        details["wiki_path"] = article_path[:-2]

    for ns in root.iterfind("query/namespaces/ns"):
        key = int(ns.get("id"))
        if key != 0:
            details["namespaces"][key] = (ns.text or "").strip()
    return details


def parse_export_siteinfo(text: str) -> dict:
    """
    Parse the <siteinfo> block of a Special:Export XML dump.

    Returns:
        Dict with name, generator, capitalization and namespaces
    """
    root = parse_xml(text)
    details = {"name": "", "generator": "", "capitalization": "first-letter", "namespaces": {}}
    for element in root.iter():
        tag = local_name(element.tag)
        if tag == "sitename":
            details["name"] = (element.text or "").strip()
        elif tag == "generator":
            details["generator"] = (element.text or "").strip()
        elif tag == "case":
            details["capitalization"] = (element.text or "").strip()
        elif tag == "namespace" and element.get("key") not in (None, "0"):
            details["namespaces"][int(element.get("key"))] = (element.text or "").strip()
    if not details["generator"]:
        raise MalformedResponseError("Special:Export response has no <siteinfo>")
    return details


class Endpoint:
    """A wiki installation: discovered site facts plus the transport to reach it."""

    def __init__(
        self,
        info: SiteInfo,
        transport: Transport,
        cache_file: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.info = info
        self.transport = transport
        self.cache_file = cache_file
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def discover(
        cls,
        url: str,
        transport: Optional[Transport] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        refresh: bool = False,
        logger: Optional[logging.Logger] = None,
        **transport_options,
    ) -> "Endpoint":
        """
        Probe a wiki (or load a cached probe) and return its Endpoint.

        Args:
            url: Any URL of the wiki, usually its main page or root
            transport: Transport to use (creates one if not provided)
            cache_dir: Directory for the discovery cache (no caching if None)
            refresh: Ignore an existing cache entry and probe again
            logger: Logger instance (creates one if not provided)
            **transport_options: Passed to Transport when creating one

        Returns:
            Endpoint for the site
        """
        logger = logger or logging.getLogger(__name__)
        url = normalize_site_url(url)
        parts = urlsplit(url)
        if transport is None:
            transport = Transport(f"{parts.scheme}://{parts.netloc}", logger=logger, **transport_options)

        cache_file = Path(cache_dir) / url_to_cache_filename(url) if cache_dir else None
        endpoint = cls(SiteInfo(site=transport.base_url), transport, cache_file, logger)

        if cache_file is not None and cache_file.exists() and not refresh:
            try:
                endpoint.info = SiteInfo.from_dict(json.loads(cache_file.read_text(encoding="utf-8")))
                logger.info(f"Loaded site info for {url} from {cache_file}")
                return endpoint
            except (ValueError, TypeError) as e:
                logger.warning(f"Ignoring unreadable cache file {cache_file}: {e}")

        endpoint.info = endpoint._probe(url)
        endpoint._save_cache()
        return endpoint

    def refresh(self) -> SiteInfo:
        """Probe the site again and replace the cached site info."""
        self.info = self._probe(self.info.site)
        self._save_cache()
        return self.info

    def _probe(self, url: str) -> SiteInfo:
        self.logger.info(f"Probing {url}...")
        response = self.transport.request(url)
        found = parse_probe(response.url or url, response.text)

        candidates = [found["index_path"]] if found["index_path"] else ["/w/", found["wiki_path"], "/"]
        details = None
        has_api = False
        for index_path in dict.fromkeys(candidates):
            api_url = f"{found['site']}{index_path}api.php?" + urlencode({
                "action": "query",
                "meta": "siteinfo",
                "siprop": "general|namespaces",
                "format": "xml",
            })
            try:
                details = parse_siteinfo(self.transport.exchange(api_url))
            except (TransportError, MalformedResponseError, ApiError) as e:
                self.logger.debug(f"No structured endpoint at {api_url}: {e}")
                continue
            details.setdefault("index_path", index_path)
            has_api = True
            break

        if details is None:
            index_path = candidates[0]
            export_url = f"{found['site']}{index_path}index.php?" + urlencode(
                {"title": f"Special:Export/{int(time.time() * 1000):x}"}
            )
            try:
                details = parse_export_siteinfo(self.transport.exchange(export_url))
            except (TransportError, MalformedResponseError) as e:
                raise DiscoveryError(f"Could not read site information from {url}: {e}") from e
            details["index_path"] = index_path

        merged = {**found, **{key: value for key, value in details.items() if value not in ("", None)}}
        merged["namespaces"] = details["namespaces"]
        info = SiteInfo(has_api=has_api, **merged)
        self.logger.info(
            f"Discovered {info.name or info.site}: {info.generator or 'unknown version'}, "
            f"index path {info.index_path}, structured API {'yes' if has_api else 'no'}"
        )
        return info

    def _save_cache(self) -> None:
        if self.cache_file is None:
            return
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        self.cache_file.write_text(json.dumps(self.info.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        self.logger.debug(f"Saved site info to {self.cache_file}")

    # URLs

    def index_url(self, **params) -> str:
        """URL of the script endpoint (index.php) with query parameters."""
        url = f"{self.info.site}{self.info.index_path}index.php"
        return f"{url}?{urlencode(params)}" if params else url

    def api_url(self, **params) -> str:
        """URL of the structured endpoint (api.php) with query parameters."""
        url = f"{self.info.site}{self.info.index_path}api.php"
        return f"{url}?{urlencode(params)}" if params else url

    def page_url(self, title: str) -> str:
        return f"{self.info.site}{self.info.wiki_path}{quote(title.replace(' ', '_'))}"

    def exchange(self, url: str, body=None, collect_cookies: bool = False, allow_redirects: bool = True) -> str:
        """Perform one exchange through this endpoint's transport."""
        return self.transport.exchange(url, body, collect_cookies=collect_cookies, allow_redirects=allow_redirects)

    # Namespaces

    def namespace_name(self, key: int) -> str:
        """Local name of a namespace, falling back to the English default."""
        return self.info.namespaces.get(key) or DEFAULT_NAMESPACES.get(key, "")

    def namespace_of(self, title: str) -> int:
        """
        Determine the namespace of a title from its prefix.

        Local names are checked before default English names and aliases.
        Titles without a known prefix are in the main namespace (0).
        """
        prefix, sep, _ = title.partition(":")
        if not sep:
            return 0
        prefix = prefix.replace("_", " ").strip().lower()
        for table in (self.info.namespaces, DEFAULT_NAMESPACES):
            for key, name in table.items():
                if name and name.lower() == prefix:
                    return key
        for key, aliases in NAMESPACE_ALIASES.items():
            if prefix in (alias.lower() for alias in aliases):
                return key
        return 0

    def remove_namespace_prefix(self, title: str, key: Optional[int] = None) -> str:
        """
        Strip the namespace prefix from a title.

        Args:
            title: Page title
            key: Only strip the prefix if it belongs to this namespace

        Returns:
            Title without its prefix
        """
        title = title.strip()
        found = self.namespace_of(title)
        if found == 0 or (key is not None and found != key):
            return title
        return title.split(":", 1)[1].strip()

    def category_title(self, name: str) -> str:
        """
        Normalize a category name to a full local title.

        "[[Category:Foo]]", "Category:Foo" and "Foo" all become "Category:Foo"
        (with the site's localized namespace name).
        """
        name = name.strip().strip("[]").strip()
        name = self.remove_namespace_prefix(name, CATEGORY_NAMESPACE)
        return f"{self.namespace_name(CATEGORY_NAMESPACE)}:{name}"

    # Authentication

    def login(self, username: str, password: str, domain: Optional[str] = None) -> None:
        """
        Log in through the structured endpoint and keep the session cookies.

        Args:
            username: Account name
            password: Account (or bot) password
            domain: Authentication domain for LDAP-backed wikis

        Raises:
            LoginError: The server refused the credentials
        """
        if not self.info.has_api:
            raise LoginError(f"{self.info.site} has no structured endpoint to log in through")

        self.logger.info(f"Logging in to {self.info.site} as {username}...")
        token_text = self.exchange(
            self.api_url(action="query", meta="tokens", type="login", format="xml"),
            collect_cookies=True,
        )
        body = {"action": "login", "lgname": username, "lgpassword": password, "format": "xml"}
        token = extract_first(token_text, [xml_attribute("logintoken")])
        if token:
            body["lgtoken"] = token
        if domain:
            body["lgdomain"] = domain

        for _ in range(2):
            try:
                root = check_api_response(self.exchange(self.api_url(), body, collect_cookies=True))
            except ApiError as e:
                raise LoginError(f"Login as {username} failed: {e}") from e
            result = root.find("login")
            status = result.get("result", "") if result is not None else ""
            if status == "Success":
                self.logger.info(f"Logged in as {result.get('lgusername', username)}")
                return
            if status == "NeedToken" and "lgtoken" not in body:
                # Older servers hand out the token in the first login reply
                body["lgtoken"] = result.get("token", "")
                continue
            reason = result.get("reason", "") if result is not None else ""
            raise LoginError(f"Login as {username} failed: {status or 'no result'} {reason}".strip())
        raise LoginError(f"Login as {username} failed: server kept asking for a token")
