"""
Client library for MediaWiki (and Wikibase) installations.

Provides:
- WikiClient: facade over one wiki (exchange, get_credentials, fetch_list,
  tokenize, expand_tree)
- Transport: HTTP session with retries, cookie handling and cancellation
- Endpoint: site discovery, namespace table and login
- tokenize: bracket matching for templates and links
- setup_logging / load_config: logging and configuration
"""

__version__ = "1.0.0"

from wikibot.client import WikiClient
from wikibot.config import load_config
from wikibot.endpoint import Endpoint, SiteInfo
from wikibot.logging_config import get_log_dir, setup_logging
from wikibot.markup import LINK, TEMPLATE, Span, parse_template, tokenize
from wikibot.query import UNBOUNDED, Entity
from wikibot.tokens import CredentialBundle
from wikibot.transport import Transport

__all__ = [
    "WikiClient",
    "Transport",
    "Endpoint",
    "SiteInfo",
    "Entity",
    "CredentialBundle",
    "Span",
    "TEMPLATE",
    "LINK",
    "UNBOUNDED",
    "tokenize",
    "parse_template",
    "setup_logging",
    "get_log_dir",
    "load_config",
]
