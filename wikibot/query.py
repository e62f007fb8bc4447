#!/usr/bin/env python3
"""
Paginated listings through the structured endpoint (action=query&list=...).

The server returns at most one page of items per request plus a
continuation cursor; fetch_list() keeps requesting pages in cursor order
until the data ends or enough items have been collected.

Usage:
    from wikibot.query import PaginatedQuery, UNBOUNDED

    query = PaginatedQuery(endpoint)
    members = query.fetch_list("categorymembers", {"cmtitle": "Category:Weapons"}, UNBOUNDED)
    recent = query.fetch_list("recentchanges", {"rcnamespace": "0"}, 50)
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator, Optional

from wikibot.endpoint import Endpoint
from wikibot.errors import QuotaError, UnsupportedListError
from wikibot.responses import check_api_response

# Sentinel quantity meaning "everything the server has"
UNBOUNDED = None

MAX_PAGE_SIZE = 500

# Listing kinds and the parameter prefix each one uses
LIST_PREFIXES = {
    "allpages": "ap",
    "alllinks": "al",
    "allusers": "au",
    "backlinks": "bl",
    "categorymembers": "cm",
    "embeddedin": "ei",
    "imageusage": "iu",
    "logevents": "le",
    "recentchanges": "rc",
    "usercontribs": "uc",
    "watchlist": "wl",
    "exturlusage": "eu",
    "search": "sr",
}

# Page properties (prop=...) and their prefixes
PROP_PREFIXES = {
    "info": "in",
    "revisions": "rv",
    "links": "pl",
    "langlinks": "ll",
    "images": "im",
    "imageinfo": "ii",
    "templates": "tl",
    "categories": "cl",
    "extlinks": "el",
}

# Per-kind page size caps below the general limit
PAGE_SIZE_CAPS = {
    "search": 50,
}

# Attribute holding the item identity, where it is not "title"
IDENTITY_ATTRIBUTES = {
    "allusers": "name",
}


@dataclass(frozen=True)
class Entity:
    """One listed item: a page title (or user name) plus its attributes."""

    title: str
    namespace: Optional[int] = None
    attributes: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ContinuationCursor:
    """Opaque continuation parameters returned with a partial page."""

    params: tuple

    def as_params(self) -> dict:
        return dict(self.params)


def page_size_for(list_kind: str, quantity: Optional[int]) -> int:
    cap = min(PAGE_SIZE_CAPS.get(list_kind, MAX_PAGE_SIZE), MAX_PAGE_SIZE)
    return cap if quantity is UNBOUNDED else min(quantity, cap)


def parse_entities(root: ET.Element, list_kind: str) -> list[Entity]:
    """
    Read the items of one listing page.

    Args:
        root: Parsed <api> document
        list_kind: Listing kind the page belongs to

    Returns:
        Entities in server order
    """
    container = root.find(f"query/{list_kind}")
    if container is None:
        return []
    identity = IDENTITY_ATTRIBUTES.get(list_kind, "title")
    entities = []
    for element in container:
        title = element.get(identity)
        if title is None:
            continue
        namespace = element.get("ns")
        entities.append(Entity(
            title=title,
            namespace=int(namespace) if namespace is not None else None,
            attributes=dict(element.attrib),
        ))
    return entities


def parse_cursor(root: ET.Element, list_kind: str) -> Optional[ContinuationCursor]:
    """
    Read the continuation cursor of one listing page.

    Handles both <continue xxcontinue="..." continue="..."/> and the older
    <query-continue><kind xxfrom="..."/></query-continue> shapes.

    Returns:
        Cursor to send with the next request, or None on the last page
    """
    prefix = LIST_PREFIXES[list_kind]
    params = {}

    element = root.find("continue")
    if element is not None:
        params.update(element.attrib)

    legacy = root.find(f"query-continue/{list_kind}")
    if legacy is not None:
        for name, value in legacy.attrib.items():
            if name in (prefix + "from", prefix + "continue"):
                params[name] = value

    if not any(name.startswith(prefix) for name in params):
        return None
    return ContinuationCursor(tuple(sorted(params.items())))


class PaginatedQuery:
    """Listing engine for one endpoint."""

    def __init__(self, endpoint: Endpoint, logger: Optional[logging.Logger] = None):
        self.endpoint = endpoint
        self.logger = logger or logging.getLogger(__name__)

    def _check(self, list_kind: str, quantity: Optional[int]) -> str:
        if list_kind not in LIST_PREFIXES:
            raise UnsupportedListError(f"The list {list_kind!r} is not supported")
        if quantity is not UNBOUNDED and (isinstance(quantity, bool) or quantity <= 0):
            raise QuotaError(f"Quantity must be positive, got {quantity!r}")
        if not self.endpoint.info.has_api:
            raise UnsupportedListError(
                f"Listing {list_kind!r} needs the structured endpoint, which {self.endpoint.info.site} lacks"
            )
        return LIST_PREFIXES[list_kind]

    def iter_pages(
        self,
        list_kind: str,
        query_params: Optional[dict] = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Iterator[list[Entity]]:
        """
        Yield listing pages one at a time, in cursor order.

        Args:
            list_kind: Listing kind (see LIST_PREFIXES)
            query_params: Extra listing parameters, sent as the POST body
            page_size: Items to ask for per page

        Yields:
            The entities of each page
        """
        prefix = self._check(list_kind, page_size)
        cursor = None
        page = 0
        while True:
            params = {
                "action": "query",
                "list": list_kind,
                "format": "xml",
                f"{prefix}limit": str(page_size),
            }
            if cursor is not None:
                params.update(cursor.as_params())

            text = self.endpoint.exchange(self.endpoint.api_url(**params), dict(query_params) if query_params else None)
            root = check_api_response(text)
            page += 1

            yield parse_entities(root, list_kind)

            cursor = parse_cursor(root, list_kind)
            if cursor is None:
                return
            self.logger.debug(f"{list_kind}: page {page} done, continuing from {cursor.as_params()}")

    def fetch_list(
        self,
        list_kind: str,
        query_params: Optional[dict] = None,
        quantity: Optional[int] = UNBOUNDED,
    ) -> list[Entity]:
        """
        Fetch a listing, following continuation cursors as needed.

        Args:
            list_kind: Listing kind (e.g., "allpages", "categorymembers")
            query_params: Extra listing parameters (e.g., {"apnamespace": "10"})
            quantity: Maximum number of items, or UNBOUNDED for all of them

        Returns:
            Entities in server order, at most quantity of them

        Raises:
            UnsupportedListError: Unknown listing kind (no request is made)
            QuotaError: quantity is not positive
            TransportError, ApiError: A page request failed
        """
        self._check(list_kind, quantity)
        self.logger.info(f"Fetching {list_kind} ({'all' if quantity is UNBOUNDED else quantity} items)...")

        results = []
        for batch in self.iter_pages(list_kind, query_params, page_size_for(list_kind, quantity)):
            results.extend(batch)
            self.logger.debug(f"Retrieved {len(results)} {list_kind} items so far...")
            if quantity is not UNBOUNDED and len(results) >= quantity:
                break

        if quantity is not UNBOUNDED:
            del results[quantity:]
        self.logger.info(f"Total {list_kind} items: {len(results)}")
        return results
