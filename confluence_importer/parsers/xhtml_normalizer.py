"""
Normalization of author-produced HTML into XHTML for Confluence.

Confluence rejects storage-format bodies that are not well-formed XML.
:func:`normalize_html` applies an ordered list of rewrites to loosely
written HTML so that it can be submitted as a page body:

1. void elements (``<br>``, ``<img ...>``) are rewritten as ``<br />``;
2. the markup is parsed and comments are dropped;
3. ``script``, ``style``, ``meta``, ``link`` and ``head`` are removed;
4. ``style`` and ``class`` (and optionally ``id``) attributes are removed;
5. attribute names are lowercased; when two names differ only in case
   the lowercase spelling wins (settled before parsing);
6. tag names are lowercased;
7. boolean attributes get their own name as value (``checked="checked"``);
8. only the content of ``<body>`` is returned when a body exists.

This is a fixed list of rewrites, not a validator.  Markup that is still
invalid afterwards is sent as-is and rejected by Confluence.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, ProcessingInstruction, Tag

from .storage_format import to_storage

VOID_ELEMENTS: List[str] = [
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
]

REMOVED_ELEMENTS: List[str] = ["script", "style", "meta", "link", "head"]

PRESENTATION_ATTRIBUTES: List[str] = ["style", "class"]

BOOLEAN_ATTRIBUTES: List[str] = [
    "checked", "selected", "disabled", "readonly", "multiple", "autofocus",
    "autoplay", "controls", "defer", "hidden", "loop", "open", "required", "reversed",
]

_VOID_TAG_RES = [
    (tag, re.compile(rf"<{tag}(\s[^>]*)?>", re.IGNORECASE)) for tag in VOID_ELEMENTS
]


def close_void_elements(html: str) -> str:
    """Rewrite every opening void tag as a self-closed tag.

    Attributes are kept verbatim.  A tag that is already self-closed is
    left unchanged so that the rewrite can be applied repeatedly.
    """
    for tag, regex in _VOID_TAG_RES:
        def _close(match: "re.Match[str]", tag: str = tag) -> str:
            attrs = (match.group(1) or "").strip()
            if attrs.endswith("/"):
                attrs = attrs[:-1].rstrip()
            return f"<{tag}{' ' + attrs if attrs else ''} />"

        html = regex.sub(_close, html)
    return html


_START_TAG_RE = re.compile(r"<([A-Za-z][^\s/>]*)(\s[^<>]*?)?(\s*/)?>")
_ATTRIBUTE_RE = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?""")


def resolve_attribute_case(html: str) -> str:
    """Keep one attribute per case-insensitive name in every start tag.

    The HTML parser lowercases names before the tree is built and keeps
    the last duplicate, so clashes are settled on the raw markup.  The
    spelling that is already lowercase wins, else the first one.  Tags
    without a clash are left byte for byte.
    """
    def _resolve(match: "re.Match[str]") -> str:
        found = list(_ATTRIBUTE_RE.finditer(match.group(2) or ""))
        groups: Dict[str, List["re.Match[str]"]] = {}
        for attr in found:
            groups.setdefault(attr.group(1).lower(), []).append(attr)
        if all(len(group) == 1 for group in groups.values()):
            return match.group(0)

        kept = []
        for attr in found:
            group = groups[attr.group(1).lower()]
            winner = next((a for a in group if a.group(1) == a.group(1).lower()), group[0])
            if attr is winner:
                kept.append(attr.group(1).lower() + attr.group(0)[len(attr.group(1)):])
        return f"<{match.group(1)} {' '.join(kept)}{match.group(3) or ''}>"

    return _START_TAG_RE.sub(_resolve, html)


def remove_comments(soup: BeautifulSoup) -> None:
    """Drop comments, doctypes and processing instructions."""
    for node in soup.find_all(string=lambda s: isinstance(s, (Comment, Doctype, Declaration, ProcessingInstruction))):
        node.extract()


def remove_elements(soup: BeautifulSoup, names: Iterable[str] = REMOVED_ELEMENTS) -> None:
    for el in soup.find_all(list(names)):
        if not el.decomposed:
            el.decompose()


def remove_attributes(soup: BeautifulSoup, names: Iterable[str]) -> None:
    names = list(names)
    for el in soup.find_all(True):
        for name in names:
            if name in el.attrs:
                del el[name]


def lowercase_attributes(soup: BeautifulSoup) -> None:
    """Lowercase attribute names; on a case-only clash the lowercase one wins."""
    for el in soup.find_all(True):
        for name in [n for n in el.attrs if n != n.lower()]:
            value = el.attrs.pop(name)
            el.attrs.setdefault(name.lower(), value)


def lowercase_tags(soup: BeautifulSoup) -> None:
    """Rename every element to its lowercase tag name.

    The renamed element is rebuilt with its attributes and its children
    moved across, then put in place of the original.
    """
    for el in soup.find_all(lambda t: t.name != t.name.lower()):
        renamed = soup.new_tag(el.name.lower(), attrs=dict(el.attrs))
        for child in list(el.contents):
            renamed.append(child.extract())
        el.replace_with(renamed)


def normalize_boolean_attributes(soup: BeautifulSoup, names: Iterable[str] = BOOLEAN_ATTRIBUTES) -> None:
    names = list(names)
    for el in soup.find_all(True):
        for name in names:
            if name in el.attrs:
                el[name] = name


def serialize_body(soup: BeautifulSoup) -> str:
    body = soup.find("body")
    if isinstance(body, Tag):
        return to_storage(body, inner=True)
    return to_storage(soup)


def normalize_html(html: str, *, strip_ids: bool = False) -> str:
    """
    Convert an HTML document or fragment to an XHTML body fragment.

    :param html: The markup to normalize, without front matter.
    :param strip_ids: Also drop ``id`` attributes.  Keep them (the
        default) when in-page anchors must be resolved afterwards.
    :return: Well-formed XHTML with only the body content.
    """
    soup = BeautifulSoup(close_void_elements(resolve_attribute_case(html or "")), "html.parser")

    remove_comments(soup)
    remove_elements(soup)
    remove_attributes(soup, PRESENTATION_ATTRIBUTES + (["id"] if strip_ids else []))
    lowercase_attributes(soup)
    lowercase_tags(soup)
    normalize_boolean_attributes(soup)

    return serialize_body(soup)
