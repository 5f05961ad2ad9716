"""
Rewriting of images and links into Confluence references.

:func:`rewrite_references` takes a normalized XHTML body and replaces

* local images with ``<ac:image>`` macros that point at a page
  attachment of the same file name;
* links to other imported pages (keys of the page map) with
  ``<ac:link><ri:page/>`` page links;
* ``#fragment`` links with anchor links; once every link is rewritten,
  an ``anchor`` macro is added to the element that carries the matching
  ``id``;
* links to images of the same document with a plain ``<ac:link-body>``;
* links to downloadable files with attachment links.

Anything else (external URLs, ``mailto:``, unknown targets) is left as
it is.  The local files that must be uploaded as attachments are
returned alongside the rewritten markup, in discovery order and
possibly with duplicates.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup, Tag

from . import storage_format as sf
from ..utils.events import TransferLog

DOWNLOADABLE_EXTENSIONS = [".pdf", ".docx", ".xlsx", ".zip", ".pptx", ".txt", ".csv"]


@dataclass
class RewriteResult:
    markup: str
    files: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    @property
    def uploads(self) -> List[str]:
        """Downloadable files followed by images, duplicates included."""
        return self.files + self.images


def is_local_reference(ref: str) -> bool:
    parsed = urlparse(ref)
    return not (parsed.scheme or parsed.netloc or ref.startswith("data:"))


def local_path(base_dir: Path, ref: str) -> Path:
    """Resolve a relative ``src``/``href`` against ``base_dir``."""
    return (Path(base_dir) / unquote(ref.split("#", 1)[0].split("?", 1)[0])).resolve()


def attachment_name(ref: str) -> str:
    return posixpath.basename(unquote(ref.split("#", 1)[0].split("?", 1)[0]))


def _replace(el: Tag, replacement: Tag, replaced: Dict[str, Tag]) -> None:
    el.replace_with(replacement)
    if el.get("id"):
        replaced.setdefault(el["id"], replacement)


def _rewrite_images(
    soup: BeautifulSoup,
    title: str,
    base_dir: Path,
    images: List[str],
    replaced: Dict[str, Tag],
    log: Optional[TransferLog],
) -> None:
    for img in soup.find_all("img"):
        src = img.get("src")
        if not src or not is_local_reference(src):
            continue
        if not local_path(base_dir, src).is_file():
            if log:
                log.record(title, "MISSING_IMAGE", src)
            continue

        filename = attachment_name(src)
        images.append(src)
        _replace(img, sf.image_macro(soup, filename, img.get("alt")), replaced)
        if log:
            log.record(title, "IMAGE_TAG_MODIFIED", filename)


def _add_anchors(soup: BeautifulSoup, anchors: List[str], replaced: Dict[str, Tag]) -> None:
    """Define each anchor once, at the first element carrying its id.

    An id that sat on a rewritten element gets its macro right before
    the replacement, which no longer carries the id.
    """
    for anchor in anchors:
        replacement = replaced.get(anchor)
        if replacement is not None and replacement.parent is not None:
            replacement.insert_before(sf.anchor_macro(soup, anchor))
            continue
        target = soup.find(attrs={"id": anchor})
        if isinstance(target, Tag):
            target.insert(0, sf.anchor_macro(soup, anchor))


def _rewrite_links(
    soup: BeautifulSoup,
    title: str,
    page_map: Mapping[str, str],
    base_dir: Path,
    images: List[str],
    files: List[str],
    replaced: Dict[str, Tag],
    log: Optional[TransferLog],
) -> None:
    anchors: List[str] = []
    for a in soup.find_all("a"):
        href = a.get("href")
        if not href:
            continue
        text = a.get_text()

        if href in page_map:
            linked_title = page_map[href]
            _replace(a, sf.page_link(soup, linked_title, text), replaced)
            if log:
                log.record(title, "PAGE_LINK_MODIFIED", linked_title)

        elif href.startswith("#"):
            anchor = href[1:]
            _replace(a, sf.anchor_link(soup, anchor, text), replaced)
            if anchor not in anchors:
                anchors.append(anchor)
            if log:
                log.record(title, "ANCHOR_LINK_MODIFIED", anchor)

        elif href in images:
            _replace(a, sf.rich_link(soup, a.contents), replaced)

        elif posixpath.splitext(urlparse(href).path)[1].lower() in DOWNLOADABLE_EXTENSIONS and is_local_reference(href):
            if not local_path(base_dir, href).is_file():
                if log:
                    log.record(title, "MISSING_FILE", href)
                continue
            filename = attachment_name(href)
            files.append(href)
            _replace(a, sf.attachment_link(soup, filename, text), replaced)
            if log:
                log.record(title, "FILE_LINK_MODIFIED", filename)

    _add_anchors(soup, anchors, replaced)


def rewrite_references(
    html: str,
    title: str,
    page_map: Mapping[str, str],
    base_dir: Path,
    log: Optional[TransferLog] = None,
) -> RewriteResult:
    """
    Convert images and links of a normalized body to storage format.

    :param html: XHTML produced by
        :func:`confluence_importer.parsers.xhtml_normalizer.normalize_html`,
        with ``id`` attributes kept.
    :param title: Title of the page, used to label recorded events.
    :param page_map: ``{href: title}`` of the pages known to the import.
    :param base_dir: Directory that relative references resolve against.
    :param log: Optional event log for missing files and rewrites.
    :return: The rewritten markup and the references to upload.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    images: List[str] = []
    files: List[str] = []
    replaced: Dict[str, Tag] = {}

    _rewrite_images(soup, title, Path(base_dir), images, replaced, log)
    _rewrite_links(soup, title, page_map, Path(base_dir), images, files, replaced, log)

    return RewriteResult(markup=sf.to_storage(soup), files=files, images=images)
