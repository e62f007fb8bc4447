#!/usr/bin/env python3
"""
HTTP transport for talking to a wiki installation.

Provides:
- GET and form-encoded POST exchanges over one persistent session
- Explicit cookie collection (server cookies are only kept when asked)
- A bounded retry policy for transient 5xx faults
- A per-instance lenient mode for proxies that mangle the status line
- Cancellation of retry waits from another thread

Usage:
    from wikibot.transport import Transport

    transport = Transport("https://wiki.example.org", retry_delay=60)
    html = transport.exchange("https://wiki.example.org/wiki/Main_Page")
"""

import enum
import http.client
import logging
import threading
import time
from http.cookiejar import Cookie, DefaultCookiePolicy
from typing import Iterable, Optional, Union
from urllib.parse import urljoin, urlsplit

import requests
from requests.cookies import RequestsCookieJar

from wikibot import __version__
from wikibot.errors import RequestCancelled, TransientServerFault, TransportError

DEFAULT_USER_AGENT = f"wikibot/{__version__} (python-requests/{requests.__version__})"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"

# Statuses treated as temporary overload; 509 is "bandwidth limit exceeded"
TRANSIENT_STATUSES = range(500, 510)

Body = Union[dict, str, bytes, None]


class FailureKind(enum.Enum):
    """How a failed exchange should be handled."""

    TRANSIENT = "transient"
    MALFORMED_STATUS_LINE = "malformed-status-line"
    FATAL = "fatal"


class _ExplicitCookiePolicy(DefaultCookiePolicy):
    """Cookie policy that never stores Set-Cookie headers on its own."""

    def set_ok(self, cookie, request):
        return False


def _iter_causes(exc: BaseException):
    """Walk an exception, its args and its cause/context chain."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)


def is_malformed_status_line(exc: BaseException) -> bool:
    """Return True if the failure was caused by an unparseable status line."""
    for cause in _iter_causes(exc):
        # RemoteDisconnected subclasses BadStatusLine but is a dropped connection
        if isinstance(cause, http.client.RemoteDisconnected):
            continue
        if isinstance(cause, http.client.BadStatusLine):
            return True
    return False


def classify_failure(exc: Exception) -> FailureKind:
    """
    Decide how a failed exchange should be handled.

    Args:
        exc: Exception raised by requests for one attempt

    Returns:
        TRANSIENT for 500-509 responses, MALFORMED_STATUS_LINE for mangled
        status lines, FATAL for everything else
    """
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        if response is not None and response.status_code in TRANSIENT_STATUSES:
            return FailureKind.TRANSIENT
        return FailureKind.FATAL
    if is_malformed_status_line(exc):
        return FailureKind.MALFORMED_STATUS_LINE
    return FailureKind.FATAL


def _status_of(exc: Exception) -> Optional[int]:
    response = getattr(exc, "response", None)
    return response.status_code if response is not None else None


class Transport:
    """One wiki's HTTP session: cookies, retries and cancellation."""

    def __init__(
        self,
        base_url: str,
        user_agent: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 60.0,
        delay: float = 0.0,
        lenient_headers: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Site root (e.g., https://wiki.example.org); its host is
                used when normalizing cookie domains
            user_agent: Client identifier sent with every request
            timeout: Per-request timeout in seconds
            max_retries: Retry budget for transient server faults
            retry_delay: Seconds to wait before retrying a transient fault
            delay: Seconds to wait before every request (be polite)
            lenient_headers: Start in lenient mode (Connection: close, no pooling)
            logger: Logger instance (creates one if not provided)
        """
        self.base_url = base_url.rstrip("/")
        self.host = urlsplit(self.base_url).hostname or ""
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.delay = delay
        self.logger = logger or logging.getLogger(__name__)

        self._lenient_headers = lenient_headers
        self._lock = threading.RLock()
        self._cancelled = threading.Event()

        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent or DEFAULT_USER_AGENT,
            "Accept-Encoding": "gzip, deflate",
        })
        self.session.cookies.set_policy(_ExplicitCookiePolicy())

    @property
    def cookies(self) -> RequestsCookieJar:
        """Session cookies sent with every request."""
        return self.session.cookies

    @property
    def lenient_headers(self) -> bool:
        return self._lenient_headers

    def enable_lenient_headers(self) -> None:
        """Switch this transport to lenient mode for all later exchanges."""
        with self._lock:
            if self._lenient_headers:
                return
            self._lenient_headers = True
            # Pooled keep-alive connections are what the broken proxies choke on
            self.session.close()
        self.logger.warning(f"Malformed status line from {self.host}; switching to lenient header mode")

    def cancel(self) -> None:
        """Abort pending retry waits and refuse new exchanges until resume()."""
        self._cancelled.set()

    def resume(self) -> None:
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def absolute_url(self, url: str) -> str:
        """Resolve a site-relative URL against the base URL."""
        return urljoin(self.base_url + "/", url)

    def merge_cookies(self, cookies: Iterable[Cookie]) -> None:
        """
        Store server cookies in the session.

        A leading-dot domain equal to the site host is stored as the bare host.

        Args:
            cookies: Cookies taken from a response
        """
        with self._lock:
            for cookie in cookies:
                domain = cookie.domain
                if domain.startswith(".") and domain[1:].lower() == self.host.lower():
                    domain = domain[1:]
                self.session.cookies.set(
                    cookie.name,
                    cookie.value,
                    domain=domain,
                    path=cookie.path,
                    secure=cookie.secure,
                    expires=cookie.expires,
                )
                self.logger.debug(f"Stored cookie {cookie.name} for {domain}")

    def _wait(self, seconds: float, url: str) -> None:
        if self._cancelled.wait(seconds):
            raise RequestCancelled(f"Cancelled while waiting to retry {url}", url=url)

    def _send(
        self,
        url: str,
        body: Body,
        collect_cookies: bool,
        allow_redirects: bool,
    ) -> requests.Response:
        headers = {}
        if self._lenient_headers:
            headers["Connection"] = "close"
        if isinstance(body, (str, bytes)):
            headers["Content-Type"] = FORM_CONTENT_TYPE

        if self.delay:
            time.sleep(self.delay)

        response = self.session.request(
            "POST" if body is not None else "GET",
            url,
            data=body,
            headers=headers,
            timeout=self.timeout,
            allow_redirects=allow_redirects,
        )
        response.raise_for_status()

        if collect_cookies:
            for hop in list(response.history) + [response]:
                self.merge_cookies(hop.cookies)

        response.encoding = "utf-8"
        return response

    def request(
        self,
        url: str,
        body: Body = None,
        collect_cookies: bool = False,
        allow_redirects: bool = True,
    ) -> requests.Response:
        """
        Perform one logical exchange and return the raw response.

        Transient 5xx faults are retried after retry_delay seconds, up to
        max_retries times. A malformed status line switches on lenient mode
        and is retried once without using up the budget. Anything else is
        raised at once.

        Args:
            url: Absolute or site-relative URL
            body: Form fields (dict) or an encoded form body; None means GET
            collect_cookies: Keep Set-Cookie headers from the response
            allow_redirects: Follow redirects automatically

        Returns:
            The successful response, decoded as UTF-8

        Raises:
            TransportError: The exchange failed or the retry budget ran out
            RequestCancelled: cancel() was called
        """
        url = self.absolute_url(url)
        failures = 0
        lenient_retry_used = False

        while True:
            if self._cancelled.is_set():
                raise RequestCancelled(f"Transport cancelled before requesting {url}", url=url)
            try:
                return self._send(url, body, collect_cookies, allow_redirects)
            except requests.RequestException as e:
                kind = classify_failure(e)

                if kind is FailureKind.TRANSIENT:
                    failures += 1
                    fault = TransientServerFault(str(e), url=url, status_code=_status_of(e))
                    if failures > self.max_retries:
                        self.logger.error(f"FAILED after {self.max_retries} retries: {url}")
                        raise TransportError(
                            f"{url}: server still failing after {self.max_retries} retries: {e}",
                            url=url,
                            status_code=fault.status_code,
                        ) from fault
                    self.logger.warning(
                        f"Attempt {failures}/{self.max_retries} failed for {url}: {e}. "
                        f"Retrying in {self.retry_delay:g} seconds"
                    )
                    self._wait(self.retry_delay, url)

                elif kind is FailureKind.MALFORMED_STATUS_LINE and not lenient_retry_used:
                    lenient_retry_used = True
                    self.enable_lenient_headers()

                else:
                    raise TransportError(f"{url}: {e}", url=url, status_code=_status_of(e)) from e

    def exchange(
        self,
        url: str,
        body: Body = None,
        collect_cookies: bool = False,
        allow_redirects: bool = True,
    ) -> str:
        """
        Perform one exchange and return the response text.

        See request() for arguments and the retry policy.
        """
        return self.request(url, body, collect_cookies, allow_redirects).text

    def close(self) -> None:
        self.session.close()
