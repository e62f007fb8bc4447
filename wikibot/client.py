#!/usr/bin/env python3
"""
MediaWiki client facade.

Provides the five operations everything else is built on:
- exchange: one HTTP exchange with retries and cookie handling
- get_credentials: edit token and timestamp for an entity
- fetch_list: paginated listings
- tokenize: bracket matching of wiki markup
- expand_tree: recursive category expansion

Usage:
    from wikibot.client import WikiClient

    client = WikiClient.connect(
        "https://wiki.example.org",
        wiki_name="ExampleWiki",
        cache_dir="./cache",
    )
    titles = [e.title for e in client.fetch_list("allpages", {"apnamespace": "0"}, 100)]
    page = client.page("Main Page")
    page.load()
"""

import logging
from pathlib import Path
from typing import Optional, Union

from wikibot.categories import CategoryTreeWalker
from wikibot.endpoint import Endpoint
from wikibot.items import Item
from wikibot.markup import TEMPLATE, Span, tokenize
from wikibot.pages import Page
from wikibot.query import UNBOUNDED, Entity, PaginatedQuery
from wikibot.tokens import CredentialBundle, SessionTokenCache


class WikiClient:
    """Client for one wiki installation."""

    def __init__(self, endpoint: Endpoint, logger: Optional[logging.Logger] = None):
        """
        Initialize the client around a discovered endpoint.

        Args:
            endpoint: Endpoint returned by Endpoint.discover()
            logger: Logger instance (creates one if not provided)
        """
        self.endpoint = endpoint
        self.logger = logger or logging.getLogger(__name__)
        self.tokens = SessionTokenCache(endpoint, logger=self.logger)
        self.query = PaginatedQuery(endpoint, logger=self.logger)
        self.categories = CategoryTreeWalker(self.query, endpoint, logger=self.logger)

    @classmethod
    def connect(
        cls,
        site_url: str,
        wiki_name: str = "Wiki",
        delay: float = 0.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 60.0,
        user_agent: Optional[str] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        refresh: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> "WikiClient":
        """
        Discover a wiki and return a client for it.

        Args:
            site_url: Wiki URL (e.g., https://wiki.example.org)
            wiki_name: Human-readable wiki name for logging
            delay: Seconds to wait before every request (be polite)
            timeout: Request timeout in seconds
            max_retries: Retry budget for transient server faults
            retry_delay: Seconds to wait before retrying a transient fault
            user_agent: Custom user agent string
            cache_dir: Directory for the discovery cache
            refresh: Probe the site even if a cache entry exists
            logger: Logger instance (creates one if not provided)

        Returns:
            Connected WikiClient
        """
        logger = logger or logging.getLogger(f"wikibot.{wiki_name}")
        endpoint = Endpoint.discover(
            site_url,
            cache_dir=cache_dir,
            refresh=refresh,
            logger=logger,
            user_agent=user_agent,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            delay=delay,
        )
        return cls(endpoint, logger=logger)

    @classmethod
    def from_config(cls, config: dict, logger: Optional[logging.Logger] = None) -> "WikiClient":
        """Connect using a configuration dict from load_config()."""
        wiki = config["wiki"]
        transport = config["transport"]
        return cls.connect(
            wiki["site_url"],
            wiki_name=wiki.get("name") or "Wiki",
            delay=transport["delay_seconds"],
            timeout=transport["timeout_seconds"],
            max_retries=transport["max_retries"],
            retry_delay=transport["retry_delay_seconds"],
            user_agent=transport.get("user_agent"),
            cache_dir=config["cache"]["dir"],
            refresh=config["cache"].get("refresh", False),
            logger=logger,
        )

    def exchange(
        self,
        url: str,
        body=None,
        collect_cookies: bool = False,
        allow_redirects: bool = True,
    ) -> str:
        """Perform one HTTP exchange and return the response text."""
        return self.endpoint.exchange(url, body, collect_cookies=collect_cookies, allow_redirects=allow_redirects)

    def get_credentials(self, entity: str) -> CredentialBundle:
        """Edit token and timestamp for a page title or item id."""
        return self.tokens.get_credentials(entity)

    def fetch_list(
        self,
        list_kind: str,
        query_params: Optional[dict] = None,
        quantity: Optional[int] = UNBOUNDED,
    ) -> list[Entity]:
        """Fetch up to quantity items of a listing (all of them by default)."""
        return self.query.fetch_list(list_kind, query_params, quantity)

    @staticmethod
    def tokenize(text: str, brackets: tuple = TEMPLATE) -> list[Span]:
        """Bracketed constructs of one kind in document order."""
        return tokenize(text, brackets)

    def expand_tree(self, category: str) -> list[Entity]:
        """All pages and subcategories below a category."""
        return self.categories.expand_tree(category)

    def login(self, username: str, password: str, domain: Optional[str] = None) -> None:
        self.endpoint.login(username, password, domain)
        # Tokens handed out before login belong to the anonymous session
        self.tokens.invalidate()

    def page(self, title: str) -> Page:
        return Page(self, title)

    def item(self, item_id: Optional[str] = None) -> Item:
        return Item(self, item_id)

    def close(self) -> None:
        self.endpoint.transport.close()
