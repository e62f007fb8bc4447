#!/usr/bin/env python3
"""
Wiki pages: loading, saving, templates and history.

Everything here goes through the client's exchange, credential, listing
and tokenizer operations.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from wikibot import markup
from wikibot.endpoint import TEMPLATE_NAMESPACE
from wikibot.errors import (
    ApiError,
    EditConflictError,
    EntityNotFoundError,
    InsufficientRightsError,
    MalformedResponseError,
    TransportError,
    WikiBotError,
)
from wikibot.query import MAX_PAGE_SIZE, PROP_PREFIXES
from wikibot.responses import check_api_response
from wikibot.tokens import TIMESTAMP_FORMAT, CredentialBundle

if TYPE_CHECKING:
    from wikibot.client import WikiClient

logger = logging.getLogger(__name__)

# api.php error codes that mean the account may not edit this page
RIGHTS_ERRORS = frozenset([
    "permissiondenied",
    "protectedpage",
    "protectedtitle",
    "cascadeprotected",
    "blocked",
    "autoblocked",
    "readonly",
    "noedit",
    "noedit-anon",
])


@dataclass(frozen=True)
class Revision:
    """One entry of a page history."""

    revid: int
    timestamp: str
    user: str
    comment: str = ""
    minor: bool = False


class Page:
    """A wiki page and its last loaded text."""

    def __init__(self, client: "WikiClient", title: str, text: str = ""):
        self.client = client
        self.title = title
        self.text = text
        self.exists: Optional[bool] = None

    def __repr__(self) -> str:
        return f"Page({self.title!r})"

    @property
    def endpoint(self):
        return self.client.endpoint

    @property
    def namespace(self) -> int:
        return self.endpoint.namespace_of(self.title)

    def load(self) -> str:
        """
        Load the page's wikitext.

        Returns:
            The text; empty if the page does not exist
        """
        url = self.endpoint.index_url(title=self.title, action="raw", ctype="text/plain")
        try:
            self.text = self.client.exchange(url)
        except TransportError as e:
            if e.status_code != 404:
                raise
            logger.warning(f"Page {self.title} doesn't exist")
            self.text = ""
            self.exists = False
            return self.text
        self.exists = True
        logger.debug(f"Loaded {self.title} ({len(self.text)} characters)")
        return self.text

    def save(self, text: Optional[str] = None, summary: str = "", minor: bool = False) -> None:
        """
        Save text (or the page's current text) to the wiki.

        Args:
            text: New wikitext (defaults to self.text)
            summary: Edit summary
            minor: Mark the edit as minor

        Raises:
            EditConflictError: Someone else changed the page meanwhile
            InsufficientRightsError: The account may not edit the page
        """
        if text is not None:
            self.text = text
        submit = self._save_through_api if self.endpoint.info.has_api else self._save_through_form
        self.client.tokens.with_credentials(self.title, lambda bundle: submit(bundle, summary, minor))
        self.exists = True
        logger.info(f"Saved {self.title}")

    def _save_through_api(self, bundle: CredentialBundle, summary: str, minor: bool) -> None:
        body = {
            "action": "edit",
            "format": "xml",
            "title": self.title,
            "text": self.text,
            "summary": summary,
            "basetimestamp": bundle.timestamp,
            "token": bundle.token,
            "minor" if minor else "notminor": "1",
        }
        try:
            root = check_api_response(self.client.exchange(self.endpoint.api_url(), body))
        except ApiError as e:
            if e.code == "editconflict":
                raise EditConflictError(self.title) from e
            if e.code in RIGHTS_ERRORS:
                raise InsufficientRightsError(self.title, f"Cannot edit {self.title!r}: {e}") from e
            raise

        result = root.find("edit")
        if result is None:
            raise MalformedResponseError(f"Edit of {self.title!r} returned no <edit> element")
        if result.get("result") != "Success":
            # Captchas and abuse filters answer with result="Failure"
            raise ApiError(result.get("result", "Failure").lower(), f"Edit of {self.title!r} was not accepted")

    def _save_through_form(self, bundle: CredentialBundle, summary: str, minor: bool) -> None:
        body = {
            "wpStarttime": datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT),
            "wpEdittime": bundle.timestamp,
            "wpTextbox1": self.text,
            "wpSummary": summary,
            "wpSave": "Save page",
            "wpEditToken": bundle.token,
        }
        if minor:
            body["wpMinoredit"] = "1"

        html = self.client.exchange(self.endpoint.index_url(title=self.title, action="submit"), body)
        if 'name="wpTextbox2"' in html:
            raise EditConflictError(self.title)
        if 'class="permissions-errors"' in html:
            raise InsufficientRightsError(self.title)
        if 'id="wpCaptchaWord"' in html:
            raise WikiBotError(f"Saving {self.title!r} requires solving a captcha")

    def _markup(self) -> str:
        text = markup.strip_nowiki(self.text)
        if self.namespace == TEMPLATE_NAMESPACE:
            text = markup.strip_parameters(text)
        return text

    def _template_name(self, title: str, with_prefix: bool = False) -> str:
        name = self.endpoint.remove_namespace_prefix(title, TEMPLATE_NAMESPACE)
        if with_prefix:
            return f"{self.endpoint.namespace_name(TEMPLATE_NAMESPACE)}:{name}"
        return name

    def templates(self, with_prefix: bool = False) -> list[str]:
        """
        Titles of the templates used on the page, in order of appearance.

        Magic words and parser functions are skipped, as is anything inside
        <nowiki>. Repeated templates are listed each time they occur.

        Args:
            with_prefix: Include the Template namespace prefix
        """
        return [self._template_name(span.title, with_prefix) for span in markup.templates(self._markup())]

    def templates_with_params(self) -> list[str]:
        """Full text of every template call on the page, without braces."""
        return [span.body(self.text) for span in markup.templates(self._markup())]

    def template_parameters(self, template: str) -> list["OrderedDict[str, str]"]:
        """
        Parameters of every call of one template.

        Args:
            template: Template title, with or without prefix

        Returns:
            One ordered mapping per call, in order of appearance
        """
        wanted = _first_upper(self._template_name(template))
        return [
            markup.parse_template(span.body(self.text))
            for span in markup.templates(self._markup())
            if _first_upper(self._template_name(span.title)) == wanted
        ]

    def history(self, limit: int = 50) -> list[Revision]:
        """
        Most recent revisions of the page, newest first.

        Args:
            limit: Maximum number of revisions (at most 500)

        Raises:
            EntityNotFoundError: The page does not exist
        """
        prefix = PROP_PREFIXES["revisions"]
        url = self.endpoint.api_url(**{
            "action": "query",
            "prop": "revisions",
            "titles": self.title,
            "format": "xml",
            f"{prefix}limit": str(min(limit, MAX_PAGE_SIZE)),
            f"{prefix}prop": "ids|timestamp|user|comment|flags",
        })
        root = check_api_response(self.client.exchange(url))
        page = root.find("query/pages/page")
        if page is None or page.get("missing") is not None:
            raise EntityNotFoundError(f"Page {self.title!r} does not exist")
        return [
            Revision(
                revid=int(rev.get("revid", "0")),
                timestamp=rev.get("timestamp", ""),
                user=rev.get("user", ""),
                comment=rev.get("comment", ""),
                minor=rev.get("minor") is not None,
            )
            for rev in page.iterfind("revisions/rev")
        ]


def _first_upper(title: str) -> str:
    title = title.replace("_", " ").strip()
    return title[:1].upper() + title[1:]
