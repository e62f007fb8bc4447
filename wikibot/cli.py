#!/usr/bin/env python3
"""
Command line access to a wiki.

Usage:
    wikibot --site https://wiki.example.org info
    wikibot list allpages --param apnamespace=10 --limit 100
    wikibot tree "Category:Weapons" --pages-only
    wikibot templates "Main Page"
    wikibot raw "Main Page" --out ./dump

Settings are read from config.json (see --config) and WIKIBOT_* environment
variables; command line flags override both.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from wikibot.client import WikiClient
from wikibot.config import load_config
from wikibot.errors import WikiBotError
from wikibot.filename_utils import title_to_filename
from wikibot.logging_config import setup_logging
from wikibot.query import LIST_PREFIXES, UNBOUNDED


def parse_params(pairs: list[str]) -> dict:
    """Turn ["key=value", ...] into a dict."""
    params = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        params[key] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wikibot", description="Read and list wiki content")
    parser.add_argument("--config", help="Path to config.json")
    parser.add_argument("--site", help="Wiki URL (overrides config)")
    parser.add_argument("--refresh", action="store_true", help="Probe the site again instead of using the cache")
    parser.add_argument("--quiet", action="store_true", help="Only show warnings and errors")
    parser.add_argument("--verbose", action="store_true", help="Show debug output")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("info", help="Show what was discovered about the site")

    list_cmd = commands.add_parser("list", help="Print titles from a listing")
    list_cmd.add_argument("kind", choices=sorted(LIST_PREFIXES))
    list_cmd.add_argument("--param", action="append", default=[], help="Listing parameter key=value")
    list_cmd.add_argument("--limit", type=int, help="Maximum number of items (default: all)")

    tree_cmd = commands.add_parser("tree", help="Print everything below a category")
    tree_cmd.add_argument("category")
    only = tree_cmd.add_mutually_exclusive_group()
    only.add_argument("--pages-only", action="store_true", help="Skip subcategories")
    only.add_argument("--subcategories-only", action="store_true", help="Skip pages")

    templates_cmd = commands.add_parser("templates", help="Print templates used on a page")
    templates_cmd.add_argument("title")

    raw_cmd = commands.add_parser("raw", help="Print or save a page's wikitext")
    raw_cmd.add_argument("title")
    raw_cmd.add_argument("--out", help="Directory to save the text in")

    return parser


def run(args: argparse.Namespace, client: WikiClient) -> int:
    if args.command == "info":
        info = client.endpoint.info
        print(f"Site:        {info.site}")
        print(f"Name:        {info.name}")
        print(f"Generator:   {info.generator}")
        print(f"Paths:       {info.wiki_path} (pages), {info.index_path} (scripts)")
        print(f"Language:    {info.language} ({info.lang_direction})")
        print(f"API:         {'yes' if info.has_api else 'no'}")
        for key in sorted(info.namespaces):
            print(f"  {key:>4}  {info.namespaces[key]}")

    elif args.command == "list":
        quantity = args.limit if args.limit is not None else UNBOUNDED
        for entity in client.fetch_list(args.kind, args.params, quantity):
            print(entity.title)

    elif args.command == "tree":
        if args.pages_only:
            entities = client.categories.pages_in_tree(args.category)
        elif args.subcategories_only:
            entities = client.categories.subcategories_in_tree(args.category)
        else:
            entities = client.expand_tree(args.category)
        for entity in entities:
            print(entity.title)

    elif args.command == "templates":
        page = client.page(args.title)
        page.load()
        for name in page.templates():
            print(name)

    elif args.command == "raw":
        page = client.page(args.title)
        text = page.load()
        if args.out:
            out_dir = Path(args.out)
            out_dir.mkdir(parents=True, exist_ok=True)
            path = out_dir / title_to_filename(args.title)
            path.write_text(text, encoding="utf-8")
            client.logger.info(f"Saved {args.title} to {path}")
        else:
            sys.stdout.write(text)

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "list":
        try:
            args.params = parse_params(args.param)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    try:
        config = load_config(args.config)
    except WikiBotError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.site:
        config["wiki"]["site_url"] = args.site
    if args.refresh:
        config["cache"]["refresh"] = True
    if not config["wiki"]["site_url"]:
        print("ERROR: no wiki given. Use --site, WIKIBOT_SITE_URL or config.json.", file=sys.stderr)
        return 1

    logger = setup_logging(
        name="wikibot",
        site_id=(config["wiki"].get("name") or "wiki").lower().replace(" ", "-"),
        log_dir=config["logging"]["dir"],
        level="DEBUG" if args.verbose else config["logging"]["level"],
        quiet=args.quiet or config["logging"]["quiet"],
    )

    try:
        client = WikiClient.from_config(config, logger=logger)
        if config["wiki"].get("username") and config["wiki"].get("password"):
            client.login(config["wiki"]["username"], config["wiki"]["password"])
        return run(args, client)
    except WikiBotError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
