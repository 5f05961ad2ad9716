"""
Resume state for interrupted or repeated imports.

The state file is a JSON object ``{"transferred": ["a.html", ...]}``
listing the documents (by path relative to the HTML root) whose page
was fully finalized by a previous run.  It is rewritten after every
finalized document so that a crash loses at most the document in
flight.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from models.confluence_content import TransferState

logger = logging.getLogger(__name__)


def load_state(path: Path, *, ignore: bool = False) -> TransferState:
    """
    Read the transfer state.

    :param path: Location of the state file.
    :param ignore: Start from an empty state whatever the file holds.
    :return: The persisted state, or an empty one when the file is
             missing, unreadable or invalid.
    """
    path = Path(path)
    if ignore or not path.exists():
        return TransferState()
    try:
        return TransferState.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        logger.warning("Could not read resume file %s, it will be reset: %s", path, e)
        return TransferState()


def save_state(path: Path, state: TransferState) -> None:
    """Overwrite the state file with ``state``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"transferred": state.transferred}, indent=2), encoding="utf-8")
