"""
Reading of the import index and of the documents it lists.

The HTML folder must contain an index document (``index.html`` by
default) whose links enumerate the pages to import::

    <a href="intro.html">Introduction</a>
    <a href="guide/setup.html">Setup guide</a>

The link target is the document path relative to the folder and the
link text is the Confluence page title.  When the link text is empty the
file name without extension is used instead.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

PageMap = Dict[str, str]


@dataclass
class IndexEntry:
    file: str
    title: str


@dataclass
class Document:
    """A local HTML document scheduled for import.

    ``file`` is the document identity: its path relative to the HTML
    root, exactly as written in the index.
    """

    file: str
    title: str
    path: Path
    raw_html: str = ""
    front_matter: Optional[Dict[str, Any]] = None
    normalized_html: str = ""
    final_html: str = ""
    files_to_upload: List[str] = field(default_factory=list)

    @property
    def base_dir(self) -> Path:
        return self.path.parent


def _title_for(href: str, link_text: str) -> str:
    stem, _ = posixpath.splitext(posixpath.basename(href))
    return link_text or stem


def _index_links(index_path: Path) -> List[IndexEntry]:
    soup = BeautifulSoup(index_path.read_text(encoding="utf-8"), "html.parser")
    entries: List[IndexEntry] = []
    for a in soup.find_all("a"):
        href = (a.get("href") or "").strip()
        if not href.lower().endswith(".html"):
            continue
        entries.append(IndexEntry(href, _title_for(href, a.get_text().strip())))
    return entries


def build_page_map(html_root: Path, index_file: str = "index.html", index_title: str = "Index Page") -> PageMap:
    """
    Build the mapping of local link targets to Confluence page titles.

    Every ``.html`` link of the index is included, whether or not the
    target file exists.  The index itself maps to ``index_title``.  When
    a target is listed twice the first title wins.

    :return: An ordered ``{href: title}`` dictionary, empty when the
             index document is missing.
    """
    index_path = Path(html_root) / index_file
    if not index_path.exists():
        logger.error("Cannot find %s in folder: %s", index_file, html_root)
        return {}

    page_map: PageMap = {index_file: index_title}
    for entry in _index_links(index_path):
        page_map.setdefault(entry.file, entry.title)
    return page_map


def list_documents(html_root: Path, index_file: str = "index.html", index_title: str = "Index Page") -> List[IndexEntry]:
    """
    List the documents to import, in index order.

    The index document comes first, followed by each linked file that
    exists on disk.  Missing files are reported and skipped; duplicate
    links are listed once.
    """
    root = Path(html_root)
    index_path = root / index_file
    if not index_path.exists():
        logger.error("Cannot find %s in folder: %s", index_file, root)
        logger.info("Please create %s with links to your HTML pages", index_file)
        return []

    logger.info("Analysing %s...", index_file)
    entries = [IndexEntry(index_file, index_title)]
    seen = {index_file}
    for entry in _index_links(index_path):
        if entry.file in seen:
            continue
        if (root / entry.file).is_file():
            entries.append(entry)
            seen.add(entry.file)
            logger.info('File found: %s -> "%s"', entry.file, entry.title)
        else:
            logger.warning("Cannot find file: %s (%s)", entry.file, entry.title)

    if len(entries) == 1:
        logger.warning("No linked html found in %s", index_file)
    return entries


def read_document(html_root: Path, entry: IndexEntry) -> Document:
    """Load the raw markup of ``entry`` from disk."""
    path = Path(html_root) / entry.file
    return Document(
        file=entry.file,
        title=entry.title,
        path=path,
        raw_html=path.read_text(encoding="utf-8"),
    )
