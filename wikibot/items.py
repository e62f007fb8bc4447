#!/usr/bin/env python3
"""
Wikibase items (Q-ids): labels, descriptions, aliases and sitelinks.

Usage:
    item = client.item("Q42")
    item.load()
    item.labels["en"] = "Douglas Adams"
    item.save(summary="fix label")
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Optional

from wikibot.errors import EntityNotFoundError, MalformedResponseError, UnsupportedEntityError
from wikibot.responses import check_api_response, check_write_response
from wikibot.tokens import CredentialBundle

if TYPE_CHECKING:
    from wikibot.client import WikiClient

logger = logging.getLogger(__name__)

ITEM_ID_RE = re.compile(r"^[QP]\d+$")

# Credential key used before a new item has an id
NEW_ITEM_KEY = "Special:NewItem"


def normalize_item_id(item_id: str) -> str:
    """
    Validate and upper-case an entity id.

    Raises:
        UnsupportedEntityError: Not a Q or P id (e.g., "Q42")
    """
    normalized = item_id.strip().upper()
    if not ITEM_ID_RE.match(normalized):
        raise UnsupportedEntityError(f"{item_id!r} is not a wikibase entity id")
    return normalized


class Item:
    """A wikibase entity and its terms and sitelinks."""

    def __init__(self, client: "WikiClient", item_id: Optional[str] = None):
        self.client = client
        self.id = normalize_item_id(item_id) if item_id else None
        self.labels: dict[str, str] = {}
        self.descriptions: dict[str, str] = {}
        self.aliases: dict[str, list[str]] = {}
        self.sitelinks: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"Item({self.id or 'new'})"

    @property
    def endpoint(self):
        return self.client.endpoint

    def load(self) -> "Item":
        """
        Load terms and sitelinks from the repository.

        Raises:
            EntityNotFoundError: The item does not exist
        """
        if self.id is None:
            raise UnsupportedEntityError("Cannot load an item that has no id yet")
        url = self.endpoint.api_url(action="wbgetentities", ids=self.id, format="xml")
        root = check_api_response(self.client.exchange(url))
        entity = root.find("entities/entity")
        if entity is None or entity.get("missing") is not None:
            raise EntityNotFoundError(f"Item {self.id} does not exist")
        self._read(entity)
        logger.debug(f"Loaded {self.id}: {len(self.labels)} labels, {len(self.sitelinks)} sitelinks")
        return self

    def _read(self, entity: ET.Element) -> None:
        self.labels = {el.get("language"): el.get("value", "") for el in entity.iterfind("labels/label")}
        self.descriptions = {
            el.get("language"): el.get("value", "") for el in entity.iterfind("descriptions/description")
        }
        self.aliases = {}
        aliases = entity.find("aliases")
        if aliases is not None:
            for el in aliases.iter():
                if el.get("language") and el.get("value") is not None:
                    self.aliases.setdefault(el.get("language"), []).append(el.get("value"))
        self.sitelinks = {el.get("site"): el.get("title", "") for el in entity.iterfind("sitelinks/sitelink")}

    def to_data(self) -> dict:
        """The item in wbeditentity JSON form."""
        return {
            "labels": {lang: {"language": lang, "value": value} for lang, value in self.labels.items()},
            "descriptions": {
                lang: {"language": lang, "value": value} for lang, value in self.descriptions.items()
            },
            "aliases": {
                lang: [{"language": lang, "value": value} for value in values]
                for lang, values in self.aliases.items()
            },
            "sitelinks": {site: {"site": site, "title": title} for site, title in self.sitelinks.items()},
        }

    def save(self, summary: str = "") -> str:
        """
        Write the item, creating it if it has no id yet.

        Returns:
            The item id
        """
        key = self.id or NEW_ITEM_KEY
        return self.client.tokens.with_credentials(key, lambda bundle: self._edit(bundle, summary))

    def _edit(self, bundle: CredentialBundle, summary: str) -> str:
        body = {
            "action": "wbeditentity",
            "format": "xml",
            "data": json.dumps(self.to_data(), ensure_ascii=False),
            "summary": summary,
            "token": bundle.token,
        }
        if self.id:
            body["id"] = self.id
        else:
            body["new"] = "item"
        root = check_write_response(self.client.exchange(self.endpoint.api_url(), body), "wbeditentity")
        entity = root.find("entity")
        if entity is None or not entity.get("id"):
            raise MalformedResponseError("wbeditentity returned no entity id")
        created = self.id is None
        self.id = normalize_item_id(entity.get("id"))
        logger.info(f"{'Created' if created else 'Saved'} {self.id}")
        return self.id

    def set_sitelink(self, site: str, title: str, summary: str = "") -> None:
        """Link the item to a page on another wiki (e.g., "enwiki")."""
        if self.id is None:
            raise UnsupportedEntityError("Save the item before adding sitelinks")

        def write(bundle: CredentialBundle) -> None:
            body = {
                "action": "wbsetsitelink",
                "format": "xml",
                "id": self.id,
                "linksite": site,
                "linktitle": title,
                "summary": summary,
                "token": bundle.token,
            }
            check_write_response(self.client.exchange(self.endpoint.api_url(), body), "wbsetsitelink")

        self.client.tokens.with_credentials(self.id, write)
        self.sitelinks[site] = title
        logger.info(f"Linked {self.id} to {site}:{title}")

    @classmethod
    def create(
        cls,
        client: "WikiClient",
        labels: Optional[dict] = None,
        descriptions: Optional[dict] = None,
        summary: str = "",
    ) -> "Item":
        """Create a new item with the given terms and return it with its id."""
        item = cls(client)
        item.labels.update(labels or {})
        item.descriptions.update(descriptions or {})
        item.save(summary=summary)
        return item

    @classmethod
    def find_by_sitelink(cls, client: "WikiClient", site: str, title: str) -> Optional["Item"]:
        """
        Find the item linked to a page on another wiki.

        Returns:
            The (unloaded) item, or None if the page has no item
        """
        url = client.endpoint.api_url(
            action="wbgetentities", sites=site, titles=title, props="info", format="xml"
        )
        root = check_api_response(client.exchange(url))
        entity = root.find("entities/entity")
        if entity is None or entity.get("missing") is not None or not entity.get("id"):
            return None
        return cls(client, entity.get("id"))
