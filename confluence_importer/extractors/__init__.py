"""
Extractors for the local HTML export.

This subpackage reads the index document that enumerates the pages to
import, builds the link-target → title map used for link rewriting and
strips YAML front matter from individual documents.
"""

from .front_matter import extract_front_matter
from .html_index import Document, IndexEntry, PageMap, build_page_map, list_documents, read_document

__all__ = [
    "Document",
    "IndexEntry",
    "PageMap",
    "build_page_map",
    "extract_front_matter",
    "list_documents",
    "read_document",
]
