#!/usr/bin/env python3
"""
Filename utilities for the wiki client.

Converts site URLs into discovery cache filenames and page titles into
safe filenames for dumped page text.
"""

from urllib.parse import quote

# Characters that are unsafe in filenames on at least one common platform
_TITLE_REPLACEMENTS = [
    ("/", "_SLASH_"),
    ("\\", "_BACKSLASH_"),
    (":", "_COLON_"),
    ("*", "_STAR_"),
    ("?", "_QUESTION_"),
    ('"', "_QUOTE_"),
    ("<", "_LT_"),
    (">", "_GT_"),
    ("|", "_PIPE_"),
]


def normalize_site_url(url: str) -> str:
    """
    Normalize a site URL for probing and cache lookup.

    Args:
        url: Site URL as given by the user (e.g., "wiki.example.org/")

    Returns:
        URL with a scheme and without a trailing slash
        (e.g., "http://wiki.example.org")
    """
    url = url.strip()
    if "://" not in url:
        url = "http://" + url
    return url.rstrip("/")


def url_to_cache_filename(url: str) -> str:
    """
    Convert a site URL to the filename of its discovery cache.

    Args:
        url: Site URL (e.g., "https://wiki.example.org/w")

    Returns:
        Flat filename (e.g., "https.wiki.example.org.w.json")
    """
    flat = normalize_site_url(url).replace("://", ".").replace("/", ".")
    return quote(flat, safe=".-_") + ".json"


def title_to_filename(title: str, extension: str = ".txt") -> str:
    """
    Convert a wiki page title to a safe filename.

    Args:
        title: Wiki page title (e.g., "Category:Weapons")
        extension: Suffix to append

    Returns:
        Safe filename (e.g., "Category_COLON_Weapons.txt")
    """
    safe = title
    for char, token in _TITLE_REPLACEMENTS:
        safe = safe.replace(char, token)
    return safe + extension
