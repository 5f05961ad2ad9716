"""
Builders for Confluence storage-format macros.

Confluence stores page bodies as XHTML extended with ``ac:`` (macro) and
``ri:`` (resource identifier) elements.  The helpers below create the
handful of constructs the importer emits, as BeautifulSoup tags owned by
the document being rewritten.
"""

from __future__ import annotations

from typing import Iterable, Optional

from bs4 import BeautifulSoup, CData, PageElement, Tag
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

# Escapes &, < and > and closes empty elements with " />".
XHTML_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=" /",
)


def _empty(soup: BeautifulSoup, name: str, **attrs: str) -> Tag:
    tag = soup.new_tag(name, attrs=attrs)
    tag.can_be_empty_element = True
    return tag


def attachment_ref(soup: BeautifulSoup, filename: str) -> Tag:
    return _empty(soup, "ri:attachment", **{"ri:filename": filename})


def page_ref(soup: BeautifulSoup, title: str) -> Tag:
    return _empty(soup, "ri:page", **{"ri:content-title": title})


def plain_text_link_body(soup: BeautifulSoup, text: str) -> Tag:
    body = soup.new_tag("ac:plain-text-link-body")
    # a literal "]]>" is split across two sections
    body.append(CData((text or "").replace("]]>", "]]]]><![CDATA[>")))
    return body


def image_macro(soup: BeautifulSoup, filename: str, alt: Optional[str] = None) -> Tag:
    image = soup.new_tag("ac:image")
    if alt:
        image["ac:alt"] = alt
    image.append(attachment_ref(soup, filename))
    return image


def page_link(soup: BeautifulSoup, title: str, text: str) -> Tag:
    link = soup.new_tag("ac:link")
    link.append(page_ref(soup, title))
    link.append(plain_text_link_body(soup, text))
    return link


def anchor_link(soup: BeautifulSoup, anchor: str, text: str) -> Tag:
    link = soup.new_tag("ac:link", attrs={"ac:anchor": anchor})
    link.append(plain_text_link_body(soup, text))
    return link


def anchor_macro(soup: BeautifulSoup, anchor: str) -> Tag:
    macro = soup.new_tag("ac:structured-macro", attrs={"ac:name": "anchor"})
    param = soup.new_tag("ac:parameter", attrs={"ac:name": ""})
    param.string = anchor
    macro.append(param)
    return macro


def attachment_link(soup: BeautifulSoup, filename: str, text: str) -> Tag:
    link = soup.new_tag("ac:link")
    link.append(attachment_ref(soup, filename))
    link.append(plain_text_link_body(soup, text))
    return link


def rich_link(soup: BeautifulSoup, children: Iterable[PageElement]) -> Tag:
    """Wrap arbitrary inline content in ``<ac:link><ac:link-body>``."""
    link = soup.new_tag("ac:link")
    body = soup.new_tag("ac:link-body")
    for child in list(children):
        body.append(child.extract())
    link.append(body)
    return link


def to_storage(node: Tag, *, inner: bool = False) -> str:
    """Serialize ``node`` (or only its children) as storage-format XHTML."""
    if inner:
        return node.decode_contents(formatter=XHTML_FORMATTER)
    return node.decode(formatter=XHTML_FORMATTER)
