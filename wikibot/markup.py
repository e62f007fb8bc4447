#!/usr/bin/env python3
"""
Bracket tokenizer for wiki markup.

Finds every {{template}} or [[link]] construct in raw page text, however
deeply nested, together with its title. Matching always pairs the rightmost
unresolved opening marker with the first closing marker after it that is not
inside an already resolved construct; an opening marker that is never closed
yields a span running to the end of the text.

Usage:
    from wikibot.markup import tokenize, LINK

    for span in tokenize(text):
        print(span.title, span.text(text))
    links = tokenize(text, LINK)
"""

import re
from collections import OrderedDict
from dataclasses import dataclass

TEMPLATE = ("{{", "}}")
LINK = ("[[", "]]")

# Variables that look like templates but are built into the parser
MAGIC_WORDS = frozenset([
    "currentmonth", "currentmonthname", "currentmonthnamegen", "currentmonthabbrev",
    "currentday2", "currentdayname", "currentyear", "currenttime", "currenthour",
    "localmonth", "localmonthname", "localmonthnamegen", "localmonthabbrev", "localday",
    "localday2", "localdayname", "localyear", "localtime", "localhour", "numberofarticles",
    "numberoffiles", "sitename", "server", "servername", "scriptpath", "pagename",
    "pagenamee", "fullpagename", "fullpagenamee", "namespace", "namespacee", "currentweek",
    "currentdow", "localweek", "localdow", "revisionid", "revisionday", "revisionday2",
    "revisionmonth", "revisionyear", "revisiontimestamp", "subpagename", "subpagenamee",
    "talkspace", "talkspacee", "subjectspace", "dirmark", "directionmark", "subjectspacee",
    "talkpagename", "talkpagenamee", "subjectpagename", "subjectpagenamee", "numberofusers",
    "rawsuffix", "newsectionlink", "numberofpages", "currentversion", "basepagename",
    "basepagenamee", "urlencode", "currenttimestamp", "localtimestamp", "language",
    "contentlanguage", "pagesinnamespace", "numberofadmins", "currentday",
    "numberofarticles:r", "numberofpages:r", "magicnumber", "numberoffiles:r",
    "numberofusers:r", "numberofadmins:r", "numberofactiveusers", "numberofactiveusers:r",
])

# Parser functions; a title starting with one of these is not a template
PARSER_FUNCTIONS = (
    "ns:", "localurl:", "localurle:", "urlencode:", "anchorencode:", "fullurl:",
    "fullurle:", "grammar:", "plural:", "lc:", "lcfirst:", "uc:", "ucfirst:",
    "formatnum:", "padleft:", "padright:", "#language:", "displaytitle:", "defaultsort:",
    "#if:", "#ifeq:", "#switch:", "#ifexpr:", "numberingroup:", "pagesinns:", "pagesincat:",
    "pagesincategory:", "pagesize:", "gender:", "filepath:", "#special:", "#tag:",
    "int:",
)

# Prefixes that change how a template is expanded but not which one it is
TEMPLATE_MODIFIERS = ("subst:", "safesubst:", "msgnw:", "msg:", "raw:")

_NOWIKI_RE = re.compile(r"(?is)<nowiki>.*?</nowiki>")
_PARAMETER_RE = re.compile(r"(?s)\{\{\{.*?}}}")


@dataclass(frozen=True)
class Span:
    """One bracketed construct in a text buffer."""

    start: int
    length: int
    title: str
    is_reference: bool = True
    terminated: bool = True
    brackets: tuple = TEMPLATE

    @property
    def end(self) -> int:
        return self.start + self.length

    def text(self, source: str) -> str:
        """The construct including its brackets."""
        return source[self.start:self.end]

    def body(self, source: str) -> str:
        """The construct without its brackets."""
        opener, closer = self.brackets
        end = self.end - len(closer) if self.terminated else self.end
        return source[self.start + len(opener):end]


def _resolve(text: str, brackets: tuple) -> list[tuple[int, int, bool]]:
    """
    Pair brackets innermost-first.

    Resolved constructs are kept on a stack ordered by start offset, top
    being leftmost; a closing marker that overlaps one of them is skipped.

    Returns:
        (start, end, terminated) triples in resolution order
    """
    opener, closer = brackets
    resolved = []
    stack = []  # (start, end) of outermost resolved constructs, leftmost last
    limit = len(text)

    while True:
        start = text.rfind(opener, 0, limit)
        if start == -1:
            break

        close = text.find(closer, start + len(opener))
        for inner_start, inner_end in reversed(stack):
            if close == -1 or close + len(closer) <= inner_start:
                break
            if close < inner_end:
                close = text.find(closer, inner_end)

        if close == -1:
            end, terminated = len(text), False
        else:
            end, terminated = close + len(closer), True

        while stack and stack[-1][0] < end:
            stack.pop()
        stack.append((start, end))
        resolved.append((start, end, terminated))
        limit = start

    return resolved


def _top_level_split(body: str, offset: int, nested: dict, separator: str = "|") -> list[tuple[int, str]]:
    """
    Split body on separators that are not inside a nested construct.

    Args:
        body: Text to split
        offset: Position of body within the text nested refers to
        nested: Construct start -> end offsets (see _nested_map)
        separator: Single separator character

    Returns:
        (absolute offset, piece) pairs
    """
    parts = []
    current = 0
    position = 0
    while position < len(body):
        nested_end = nested.get(offset + position)
        if nested_end is not None and nested_end > offset + position:
            position = nested_end - offset
            continue
        if body[position] == separator:
            parts.append((offset + current, body[current:position]))
            current = position + 1
        position += 1
    parts.append((offset + current, body[current:]))
    return parts


def _nested_map(text: str) -> dict:
    """Map each construct start (either bracket kind) to its end."""
    nested = {}
    for brackets in (TEMPLATE, LINK):
        for start, end, _ in _resolve(text, brackets):
            nested[start] = max(end, nested.get(start, end))
    return nested


def is_builtin(title: str) -> bool:
    """True for magic words and parser functions written with template brackets."""
    lowered = title.strip().lower()
    if lowered in MAGIC_WORDS:
        return True
    return lowered.startswith(PARSER_FUNCTIONS)


def strip_modifiers(title: str) -> str:
    """Remove subst:, msgnw: and similar prefixes, and a leading colon."""
    title = title.strip()
    changed = True
    while changed:
        changed = False
        for modifier in TEMPLATE_MODIFIERS:
            if title.lower().startswith(modifier) and len(title) > len(modifier):
                title = title[len(modifier):].strip()
                changed = True
    return title.lstrip(":").strip()


def tokenize(text: str, brackets: tuple = TEMPLATE) -> list[Span]:
    """
    Find every construct of one bracket kind, in document order.

    Args:
        text: Raw wiki text
        brackets: TEMPLATE ("{{", "}}") or LINK ("[[", "]]")

    Returns:
        Spans ordered by start offset; nested constructs are reported too

    For templates, magic words and parser functions get is_reference=False
    and modifier prefixes are removed from the title. Brackets of the same
    kind that mean something else (such as {{{parameters}}} inside a
    template definition) must be stripped by the caller beforehand.
    """
    resolved = _resolve(text, brackets)
    if not resolved:
        return []

    nested = _nested_map(text)
    opener, closer = brackets
    spans = []
    for start, end, terminated in reversed(resolved):
        length = end - start
        body_end = end - len(closer) if terminated else end
        body_start = start + len(opener)
        inner = {key: value for key, value in nested.items() if body_start <= key < body_end}
        raw_title = _top_level_split(text[body_start:body_end], body_start, inner)[0][1].strip()

        if brackets == TEMPLATE:
            reference = not is_builtin(raw_title)
            title = strip_modifiers(raw_title) if reference else raw_title
        else:
            reference = True
            title = raw_title
        spans.append(Span(start, length, title, reference, terminated, brackets))
    return spans


def templates(text: str) -> list[Span]:
    """Template spans that refer to actual templates."""
    return [span for span in tokenize(text, TEMPLATE) if span.is_reference]


def strip_nowiki(text: str) -> str:
    """Blank out <nowiki> sections, keeping offsets intact."""
    return _NOWIKI_RE.sub(lambda match: " " * len(match.group(0)), text)


def strip_parameters(text: str) -> str:
    """Blank out {{{parameter}}} placeholders, keeping offsets intact."""
    return _PARAMETER_RE.sub(lambda match: " " * len(match.group(0)), text)


def parse_template(text: str) -> "OrderedDict[str, str]":
    """
    Split a template into its parameters.

    Args:
        text: Template with or without braces (e.g., "{{Infobox|name=X|Y}}")

    Returns:
        Ordered mapping of parameter names to values; unnamed parameters are
        numbered from "1". The template title itself is not included.
    """
    text = text.strip()
    if text.startswith("{{") and text.endswith("}}"):
        text = text[2:-2]

    nested = _nested_map(text)
    params = OrderedDict()
    position = 0
    for offset, part in _top_level_split(text, 0, nested)[1:]:
        # Only an "=" outside nested constructs names a parameter
        name_piece = _top_level_split(part, offset, nested, "=")[0][1]
        if len(name_piece) < len(part):
            params[name_piece.strip()] = part[len(name_piece) + 1:].strip()
        else:
            position += 1
            params[str(position)] = part.strip()
    return params
