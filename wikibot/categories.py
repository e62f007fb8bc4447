#!/usr/bin/env python3
"""
Recursive expansion of category trees.

Usage:
    from wikibot.categories import CategoryTreeWalker

    walker = CategoryTreeWalker(query, endpoint)
    everything = walker.expand_tree("Weapons")
    pages = walker.pages_in_tree("Weapons")
"""

import enum
import logging
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup

from wikibot.endpoint import CATEGORY_NAMESPACE, Endpoint
from wikibot.query import UNBOUNDED, Entity, PaginatedQuery


class NodeState(enum.Enum):
    PENDING = "pending"
    EXPANDED = "expanded"
    DONE = "done"


def dedupe(entities: list[Entity]) -> list[Entity]:
    """Drop repeated titles, keeping the first occurrence of each."""
    seen = set()
    unique = []
    for entity in entities:
        if entity.title not in seen:
            seen.add(entity.title)
            unique.append(entity)
    return unique


# Sections of a rendered category page, and the query parameters that page
# through its article list
CATEGORY_SECTIONS = ("mw-subcategories", "mw-pages", "mw-category-media")
NEXT_PAGE_PARAMS = ("pagefrom", "from")
NAVIGATION_PARAMS = frozenset([
    "pagefrom", "pageuntil",
    "from", "until",
    "subcatfrom", "subcatuntil",
    "filefrom", "fileuntil",
])


def parse_category_html(html: str) -> tuple[list[Entity], Optional[tuple[str, str]]]:
    """
    Read member links from a rendered category page.

    Args:
        html: The category page as served by index.php

    Returns:
        Tuple of (members in page order, (parameter, value) of the next page
        link or None on the last page)
    """
    soup = BeautifulSoup(html, "html.parser")
    members = []
    next_page = None
    for section_id in CATEGORY_SECTIONS:
        section = soup.find(id=section_id)
        if section is None:
            continue
        namespace = CATEGORY_NAMESPACE if section_id == "mw-subcategories" else None
        for link in section.find_all("a", title=True):
            query = parse_qs(urlsplit(link.get("href", "")).query)
            if NAVIGATION_PARAMS.intersection(query):
                for name in NEXT_PAGE_PARAMS:
                    if next_page is None and name in query:
                        next_page = (name, query[name][0])
                continue
            members.append(Entity(link["title"], namespace))
    return members, next_page


class CategoryTreeWalker:
    """Expands categories into all pages and subcategories below them."""

    def __init__(
        self,
        query: PaginatedQuery,
        endpoint: Endpoint,
        logger: Optional[logging.Logger] = None,
    ):
        self.query = query
        self.endpoint = endpoint
        self.logger = logger or logging.getLogger(__name__)

    def is_category(self, entity: Entity) -> bool:
        if entity.namespace is not None:
            return entity.namespace == CATEGORY_NAMESPACE
        return self.endpoint.namespace_of(entity.title) == CATEGORY_NAMESPACE

    def members(self, category: str) -> list[Entity]:
        """
        Direct members of one category.

        Sites without api.php are read from the rendered category page,
        following its "next page" links.
        """
        title = self.endpoint.category_title(category)
        if self.endpoint.info.has_api:
            return self.query.fetch_list("categorymembers", {"cmtitle": title}, UNBOUNDED)

        members = []
        params = {"title": title}
        seen = set()
        while True:
            found, next_page = parse_category_html(self.endpoint.exchange(self.endpoint.index_url(**params)))
            members.extend(found)
            if next_page is None or next_page in seen:
                break
            seen.add(next_page)
            self.logger.debug(f"{title}: {len(members)} members so far, next page from {next_page[1]}")
            params = {"title": title, next_page[0]: next_page[1]}
        return dedupe(members)

    def expand_tree(self, root: str) -> list[Entity]:
        """
        Collect every page and subcategory reachable from a category.

        Each category is expanded once, so cycles terminate. The result keeps
        discovery order with repeated titles removed; the root itself only
        appears if some category in the tree lists it.

        Args:
            root: Category name, with or without prefix or brackets

        Returns:
            Pages and categories in the tree

        Raises:
            TransportError: Any member fetch failed (no partial result)
        """
        root_title = self.endpoint.category_title(root)
        self.logger.info(f"Expanding category tree of {root_title}...")

        states = {root_title: NodeState.PENDING}
        results = self.members(root_title)
        states[root_title] = NodeState.DONE

        index = 0
        while index < len(results):
            entity = results[index]
            index += 1
            if not self.is_category(entity):
                continue
            title = self.endpoint.category_title(entity.title)
            if states.get(title) is NodeState.DONE:
                continue

            states[title] = NodeState.PENDING
            found = self.members(title)
            states[title] = NodeState.EXPANDED
            results.extend(found)
            states[title] = NodeState.DONE
            self.logger.debug(f"{title}: {len(found)} members")

        unique = dedupe(results)
        expanded = sum(1 for state in states.values() if state is NodeState.DONE)
        self.logger.info(f"{root_title}: {len(unique)} entries in {expanded} categories")
        return unique

    def pages_in_tree(self, root: str) -> list[Entity]:
        """Only the non-category members of the tree."""
        return [entity for entity in self.expand_tree(root) if not self.is_category(entity)]

    def subcategories_in_tree(self, root: str) -> list[Entity]:
        """Only the categories in the tree."""
        return [entity for entity in self.expand_tree(root) if self.is_category(entity)]
