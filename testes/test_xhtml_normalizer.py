import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

from bs4 import BeautifulSoup

from confluence_importer.parsers.storage_format import to_storage
from confluence_importer.parsers.xhtml_normalizer import (
    BOOLEAN_ATTRIBUTES,
    close_void_elements,
    lowercase_attributes,
    lowercase_tags,
    normalize_html,
)


def test_void_elements_are_self_closed():
    assert close_void_elements('<img src="a.png">') == '<img src="a.png" />'
    assert close_void_elements("<br>") == "<br />"
    assert close_void_elements("<HR >") == "<hr />"
    assert close_void_elements('<img src="a.png"/>') == '<img src="a.png" />'


def test_void_rewrite_does_not_touch_longer_tag_names():
    html = "<colgroup><col></colgroup><base><b>x</b>"
    assert close_void_elements(html) == "<colgroup><col /></colgroup><base /><b>x</b>"


def test_normalize_closes_void_elements():
    assert normalize_html('<p><img src="a.png">line<br>next</p>') == '<p><img src="a.png" />line<br />next</p>'


def test_normalize_is_idempotent():
    html = (
        '<html><head><title>T</title></head><body>'
        '<p class="lead" style="color:red">Hi<br>there</p>'
        '<img src="a.png" alt="A"><input type="checkbox" checked>'
        '<!-- note --></body></html>'
    )
    once = normalize_html(html)
    assert normalize_html(once) == once


def test_presentation_attributes_removed_and_names_lowercased():
    assert normalize_html('<DIV CLASS="x" ID="y">t</DIV>') == '<div id="y">t</div>'
    assert normalize_html('<DIV CLASS="x" ID="y">t</DIV>', strip_ids=True) == "<div>t</div>"


def test_lowercase_tags_rebuilds_element_with_children():
    soup = BeautifulSoup("", "html.parser")
    outer = soup.new_tag("SECTION", attrs={"id": "s"})
    inner = soup.new_tag("SPAN")
    inner.string = "text"
    outer.append(inner)
    soup.append(outer)

    lowercase_tags(soup)

    assert to_storage(soup) == '<section id="s"><span>text</span></section>'


def test_lowercase_attributes_lowercase_name_wins_on_clash():
    soup = BeautifulSoup("", "html.parser")
    tag = soup.new_tag("a", attrs={"HREF": "upper.html", "href": "lower.html", "TITLE": "t"})
    soup.append(tag)

    lowercase_attributes(soup)

    assert tag.attrs == {"href": "lower.html", "title": "t"}


@pytest.mark.parametrize(
    "html",
    ['<div id="lower" ID="UPPER">t</div>', '<div ID="UPPER" id="lower">t</div>'],
)
def test_normalize_keeps_lowercase_attribute_on_case_clash(html):
    assert normalize_html(html) == '<div id="lower">t</div>'


def test_normalize_keeps_first_spelling_when_none_is_lowercase():
    assert normalize_html('<a HREF="first.html" Href="second.html">x</a>') == '<a href="first.html">x</a>'


def test_case_clash_resolution_leaves_self_closed_tags_closed():
    assert normalize_html('<p><img SRC="b.png" src="a.png" alt="A"></p>') == '<p><img alt="A" src="a.png" /></p>'


@pytest.mark.parametrize("attr", ["checked", "selected", "disabled", "hidden"])
def test_boolean_attribute_value_equals_its_name(attr):
    assert attr in BOOLEAN_ATTRIBUTES
    out = normalize_html(f'<p><span {attr}>x</span><em {attr.upper()}="yes">y</em></p>')
    assert out == f'<p><span {attr}="{attr}">x</span><em {attr}="{attr}">y</em></p>'


def test_disallowed_elements_and_comments_are_removed():
    html = (
        "<div><script>alert(1)</script><style>p{}</style>"
        '<link rel="stylesheet" href="s.css"><!-- hidden --><p>kept</p></div>'
    )
    assert normalize_html(html) == "<div><p>kept</p></div>"


def test_only_body_content_is_returned():
    html = "<!DOCTYPE html><html><head><meta charset='utf-8'><title>T</title></head><body><h1>H</h1><p>x</p></body></html>"
    assert normalize_html(html) == "<h1>H</h1><p>x</p>"


def test_fragment_without_body_is_returned_whole():
    assert normalize_html("<p>a &amp; b</p>") == "<p>a &amp; b</p>"
