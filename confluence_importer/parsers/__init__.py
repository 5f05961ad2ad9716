"""
Parsers and converters used by the import pipeline.

This subpackage exposes ``normalize_html`` from
:mod:`confluence_importer.parsers.xhtml_normalizer` and
``rewrite_references`` from
:mod:`confluence_importer.parsers.reference_rewriter`.
"""

from .reference_rewriter import RewriteResult, rewrite_references
from .xhtml_normalizer import normalize_html

__all__ = ["RewriteResult", "normalize_html", "rewrite_references"]
