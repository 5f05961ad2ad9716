"""
Confluence API migrators and helpers.

This subpackage provides the REST client used to search, create and
update pages and attachments, and the reconciliation layer that turns
those calls into create-or-update operations.  It encapsulates rate
limiting, automatic retries, authentication headers and the dry-run
modes.
"""

from .confluence_client import ConfluenceClient, RateLimiter, RetryPolicy, with_retries
from .reconciler import ContentReconciler, ReconciliationError, extract_download_link

__all__ = [
    "ConfluenceClient",
    "ContentReconciler",
    "RateLimiter",
    "ReconciliationError",
    "RetryPolicy",
    "extract_download_link",
    "with_retries",
]
