"""
Extraction of YAML front matter from HTML documents.

Authoring tools often prepend a metadata block to the exported HTML::

    ---
    title: My Page
    tags: [html, clean]
    ---
    <div>...</div>

:func:`extract_front_matter` splits such a document into the parsed
metadata and the remaining markup.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

FRONT_MATTER_RE = re.compile(r"^---\s*([\s\S]*?)\s*---\s*")


def extract_front_matter(
    text: str,
    on_error: Optional[Callable[[str], None]] = None,
) -> Tuple[Optional[Dict[str, Any]], str]:
    """Split ``text`` into ``(metadata, body)``.

    ``metadata`` is ``None`` when no block is present or when the block
    is not a valid YAML mapping.  In the malformed case a warning is
    logged, ``on_error`` is called with a short description and the
    block is still removed from the returned body.
    """
    match = FRONT_MATTER_RE.match(text or "")
    if not match:
        return None, text or ""

    body = text[match.end():]
    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML front matter: %s", e)
        if on_error:
            on_error(f"Invalid YAML: {e}")
        return None, body

    if metadata is None:
        return None, body
    if not isinstance(metadata, dict):
        logger.warning("Front matter is not a mapping (got %s), ignoring it", type(metadata).__name__)
        if on_error:
            on_error(f"Expected a mapping, got {type(metadata).__name__}")
        return None, body
    return metadata, body
