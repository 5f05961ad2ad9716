"""
Top-level package for the HTML → Confluence import utility.

This package bundles all components required to read a folder of local
HTML documents, convert them to Confluence storage format, upload the
files they reference as attachments, and create or update the matching
pages in a Confluence space.  Modules are split into subpackages:

* :mod:`confluence_importer.extractors` – index reading and front matter
* :mod:`confluence_importer.parsers` – XHTML normalization and link rewriting
* :mod:`confluence_importer.migrators` – Confluence REST interactions
* :mod:`confluence_importer.utils` – event log, resume state and reports

Each layer has no direct knowledge of execution strategy; orchestration
is handled in :mod:`confluence_importer.migration_tool`.
"""

__version__ = "1.0.0"
