"""
Exception hierarchy for the wiki client.

Every error raised on purpose by this package derives from WikiBotError,
so callers can catch the whole family in one place. Transport and rights
errors are always surfaced; only response extraction falls back locally.
"""

from typing import Optional


class WikiBotError(Exception):
    """Base class for all wikibot errors."""


class ConfigError(WikiBotError):
    """The configuration file could not be read or parsed."""


class TransportError(WikiBotError):
    """An HTTP exchange failed and was not (or no longer) retried."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientServerFault(TransportError):
    """A 5xx response that is worth waiting out and retrying."""


class RequestCancelled(TransportError):
    """The exchange was cancelled while waiting to retry."""


class DiscoveryError(WikiBotError):
    """The site probe could not determine the wiki's paths."""


class LoginError(WikiBotError):
    """The server refused the supplied credentials."""


class InsufficientRightsError(WikiBotError):
    """No usable edit token or timestamp could be obtained for an entity."""

    def __init__(self, entity: str, message: Optional[str] = None):
        super().__init__(message or f"Insufficient rights to edit {entity!r}")
        self.entity = entity


class UnsupportedListError(WikiBotError):
    """The requested listing kind is not one the query engine knows."""


class UnsupportedEntityError(WikiBotError):
    """The entity identifier does not have a supported shape."""


class QuotaError(WikiBotError, ValueError):
    """A listing was asked for a non-positive number of items."""


class MalformedResponseError(WikiBotError):
    """A structured response had neither the expected data nor an error."""


class ApiError(WikiBotError):
    """The structured endpoint answered with an <error code info> element."""

    def __init__(self, code: str, info: str = ""):
        super().__init__(f"{code}: {info}" if info else code)
        self.code = code
        self.info = info


class EditConflictError(WikiBotError):
    """The page changed on the server since the edit session started."""

    def __init__(self, title: str):
        super().__init__(f"Edit conflict on {title!r}")
        self.title = title


class EntityNotFoundError(WikiBotError):
    """The requested page or item does not exist on the server."""
