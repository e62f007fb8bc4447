"""
Parsing helpers for server responses.

Structured (api.php) responses are small XML documents; HTML responses are
read with fixed patterns. Both are handled through extractor functions:
each takes the response text and returns a value or None, and
extract_first() runs an ordered list of them.
"""

import html
import logging
import re
import xml.etree.ElementTree as ET
from typing import Callable, Optional, Sequence, Union

from wikibot.errors import ApiError, MalformedResponseError

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Optional[str]]


def regex_extractor(pattern: str, flags: int = 0) -> Extractor:
    """Build an extractor returning the first group of a regex match."""
    compiled = re.compile(pattern, flags)

    def extract(text: str) -> Optional[str]:
        match = compiled.search(text)
        if match is None:
            return None
        return html.unescape(match.group(1))

    extract.__name__ = f"regex({pattern})"
    return extract


def hidden_field(name: str) -> list[Extractor]:
    """
    Extractors for an HTML <input type="hidden"> value.

    MediaWiki has emitted the value and name attributes in both orders, with
    and without the type attribute in between.

    Args:
        name: The form field name (e.g., "wpEditToken")

    Returns:
        List of extractors, one per known attribute order
    """
    quoted = re.escape(name)
    return [
        regex_extractor(rf'value="([^"]*?)" name=[\'"]{quoted}[\'"]'),
        regex_extractor(rf'name=[\'"]{quoted}[\'"](?: type="hidden")? value="([^"]*?)"'),
    ]


def xml_attribute(name: str) -> Extractor:
    """Extractor for an attribute anywhere in an XML (or XML-like) response."""
    return regex_extractor(rf' {re.escape(name)}="([^"]*?)"')


def extract_first(text: str, extractors: Sequence[Extractor]) -> Optional[str]:
    """
    Run every extractor and return the first non-empty result.

    All extractors are tried so that disagreeing response shapes show up in
    the debug log; the order of the list only breaks ties.

    Args:
        text: Response body
        extractors: Ordered extractor functions

    Returns:
        The first non-empty value, or None if no extractor matched
    """
    found = [value for value in (extract(text) for extract in extractors) if value]
    if not found:
        return None
    if len(set(found)) > 1:
        logger.debug(f"Extractors disagree, using first of {found!r}")
    return found[0]


def parse_xml(text: str) -> ET.Element:
    """
    Parse a structured response.

    Raises:
        MalformedResponseError: The text is not well-formed XML
    """
    try:
        return ET.fromstring(text.strip().encode("utf-8"))
    except ET.ParseError as e:
        raise MalformedResponseError(f"Response is not valid XML: {e}") from e


def local_name(tag: str) -> str:
    """Strip an XML namespace from a tag name."""
    return tag.rsplit("}", 1)[-1]


def find_api_error(response: Union[str, ET.Element]) -> Optional[ApiError]:
    """
    Look for an <error code="..." info="..."> element.

    Args:
        response: Response body (need not be XML) or an already parsed root

    Returns:
        ApiError describing the error, or None if the response has none
    """
    if isinstance(response, str):
        try:
            root = ET.fromstring(response.strip().encode("utf-8"))
        except ET.ParseError:
            return None
    else:
        root = response
    element = root if local_name(root.tag) == "error" else root.find("error")
    if element is None:
        return None
    return ApiError(element.get("code", "unknown"), element.get("info", ""))


def check_api_response(text: str) -> ET.Element:
    """
    Parse an api.php XML response and raise if it reports an error.

    Args:
        text: Response body

    Returns:
        The <api> root element

    Raises:
        ApiError: The response contains an <error> element
        MalformedResponseError: The response is not an <api> document
    """
    root = parse_xml(text)
    if local_name(root.tag) != "api":
        raise MalformedResponseError(f"Expected <api> document, got <{root.tag}>")
    error = find_api_error(root)
    if error is not None:
        raise error
    for warning in root.iter("warnings"):
        for module in warning:
            logger.debug(f"API warning ({module.tag}): {(module.text or '').strip()}")
    return root


def is_success(root: ET.Element) -> bool:
    """True if an <api> document carries success="1" or result="Success" markers."""
    if root.get("success") == "1":
        return True
    return any(child.get("result") == "Success" for child in root)


def check_write_response(text: str, action: str) -> ET.Element:
    """
    check_api_response() for writes, which must also carry a success marker.

    Raises:
        ApiError: The response contains an <error> element
        MalformedResponseError: Neither an error nor a success marker was found
    """
    root = check_api_response(text)
    if not is_success(root):
        raise MalformedResponseError(f"{action} response has no success marker")
    return root
