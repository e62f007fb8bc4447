#!/usr/bin/env python3
"""
Edit credentials (token + timestamp) for write operations.

A credential bundle is fetched lazily per entity and is good for one write:
with_credentials() drops it once the write has been submitted, so the next
write reads a fresh timestamp. A rejected token is refetched once.

Usage:
    from wikibot.tokens import SessionTokenCache

    tokens = SessionTokenCache(endpoint)
    bundle = tokens.get_credentials("Main Page")
    body = {"token": bundle.token, "basetimestamp": bundle.timestamp, ...}
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from wikibot.endpoint import Endpoint
from wikibot.errors import ApiError, InsufficientRightsError
from wikibot.responses import extract_first, hidden_field, regex_extractor, xml_attribute

# Anonymous sessions are handed this instead of a real token
NO_TOKEN = "+\\"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

TOKEN_EXTRACTORS = [
    *hidden_field("wpEditToken"),
    xml_attribute("edittoken"),
    xml_attribute("csrftoken"),
]

TIMESTAMP_EXTRACTORS = [
    *hidden_field("wpEdittime"),
    regex_extractor(r' touched="(.+?)"'),
]

T = TypeVar("T")


@dataclass(frozen=True)
class CredentialBundle:
    """Edit token and last-seen timestamp for one entity."""

    entity: str
    token: str
    timestamp: str


def parse_credentials(text: str, entity: str, now: Optional[datetime] = None) -> CredentialBundle:
    """
    Extract a credential bundle from an edit form or an info response.

    Args:
        text: Response body (HTML edit form or api.php XML)
        entity: Entity the credentials are for
        now: Current time, used when the response carries no timestamp

    Returns:
        CredentialBundle with a non-empty token and timestamp

    Raises:
        InsufficientRightsError: No usable token or timestamp was found
    """
    token = extract_first(text, TOKEN_EXTRACTORS) or ""
    if token == NO_TOKEN:
        token = ""

    timestamp = extract_first(text, TIMESTAMP_EXTRACTORS) or ""
    timestamp = re.sub(r"\D", "", timestamp)
    if not timestamp and token:
        # Missing pages and wikibase items have no touched timestamp
        timestamp = (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)

    if not token or not timestamp:
        raise InsufficientRightsError(entity)
    return CredentialBundle(entity=entity, token=token, timestamp=timestamp)


class SessionTokenCache:
    """Per-entity cache of edit credentials for one endpoint."""

    def __init__(self, endpoint: Endpoint, logger: Optional[logging.Logger] = None):
        self.endpoint = endpoint
        self.logger = logger or logging.getLogger(__name__)
        self._bundles: dict[str, CredentialBundle] = {}
        self._lock = threading.Lock()

    def credentials_url(self, entity: str) -> str:
        """URL that yields an edit token for the entity."""
        if self.endpoint.info.has_api:
            return self.endpoint.api_url(
                action="query",
                prop="info",
                intoken="edit",
                meta="tokens",
                titles=entity,
                format="xml",
            )
        return self.endpoint.index_url(title=entity, action="edit")

    def get_credentials(self, entity: str, refresh: bool = False) -> CredentialBundle:
        """
        Return the credential bundle for an entity, fetching it if needed.

        Args:
            entity: Page title or item identifier
            refresh: Discard any cached bundle first

        Returns:
            CredentialBundle for the entity

        Raises:
            InsufficientRightsError: The server did not hand out a token
            TransportError: The request failed
        """
        with self._lock:
            if refresh:
                self._bundles.pop(entity, None)
            cached = self._bundles.get(entity)
        if cached is not None:
            return cached

        self.logger.debug(f"Fetching edit credentials for {entity}")
        text = self.endpoint.exchange(self.credentials_url(entity))
        bundle = parse_credentials(text, entity)
        with self._lock:
            self._bundles[entity] = bundle
        return bundle

    def invalidate(self, entity: Optional[str] = None) -> None:
        """Forget the bundle for one entity, or all bundles if entity is None."""
        with self._lock:
            if entity is None:
                self._bundles.clear()
            else:
                self._bundles.pop(entity, None)

    def with_credentials(self, entity: str, write: Callable[[CredentialBundle], T]) -> T:
        """
        Run a write with the entity's credentials, retrying once on a stale token.

        The bundle is forgotten after the write, whether it succeeded or not;
        its timestamp no longer describes the entity.

        Args:
            entity: Page title or item identifier
            write: Callable performing the write; receives the bundle

        Returns:
            Whatever write returns
        """
        bundle = self.get_credentials(entity)
        try:
            return write(bundle)
        except ApiError as e:
            if e.code != "badtoken":
                raise
            self.logger.warning(f"Edit token for {entity} was rejected; fetching a new one")
            return write(self.get_credentials(entity, refresh=True))
        finally:
            self.invalidate(entity)
