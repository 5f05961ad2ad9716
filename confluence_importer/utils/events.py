"""
Structured event log for an import run.

Every observable step of the import (page created, image missing, upload
failed, ...) is recorded as a :class:`TransferLogEntry` in a
:class:`TransferLog`.  The orchestrator creates one log per run, hands
it to the components that record events and reads it back at the end to
write the CSV log and the report pages.

When ``events_path`` is given, entries are also appended to a JSON Lines
file as they are recorded so that a run can be audited afterwards.

The ``ACTIONS`` dictionary maps event codes to human readable labels.
Codes not present in the dictionary fall back to the code itself.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ACTIONS: Dict[str, str] = {
    "CREATED": "Created",
    "UPDATED": "Updated",
    "SIMULATED": "Simulated (dry-run)",
    "DRY_RUN_LOCAL": "Dry-run local",
    "IMAGE_TAG_MODIFIED": "Image tag modified",
    "PAGE_LINK_MODIFIED": "Page link modified",
    "ANCHOR_LINK_MODIFIED": "Anchor link modified",
    "FILE_LINK_MODIFIED": "File link modified",
    "ATTACHMENT_UPLOADED": "Attachment uploaded",
    "COMPLETED": "Completed",
    "SKIPPED": "Skipped (already transferred)",
    "MISSING_IMAGE": "Missing image",
    "MISSING_FILE": "Missing file",
    "ATTACHMENT_NAME_CONFLICT": "Attachment name already used",
    "INVALID_FRONT_MATTER": "Invalid front matter",
    "ERROR": "Error",
    "ATTACHMENT_ERROR": "Attachment error",
    "FATAL": "Fatal error",
}

WARNING_CODES = {"MISSING_IMAGE", "MISSING_FILE", "ATTACHMENT_NAME_CONFLICT", "INVALID_FRONT_MATTER"}
ERROR_CODES = {"ERROR", "ATTACHMENT_ERROR", "FATAL"}


def _write_jsonl(path: Path, entry: TransferLogEntry) -> None:
    """Append ``entry`` as a JSON object followed by a newline to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(asdict(entry), f, ensure_ascii=False)
        f.write("\n")


@dataclass
class TransferLogEntry:
    page: str
    code: str
    action: str
    detail: str = ""
    page_url: str = ""


class TransferLog:
    """Append-only collection of :class:`TransferLogEntry` objects."""

    def __init__(self, events_path: Optional[Path] = None) -> None:
        self.events_path = Path(events_path) if events_path else None
        self._entries: List[TransferLogEntry] = []

    @property
    def entries(self) -> List[TransferLogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, page: str, code: str, detail: str = "", page_url: str = "") -> TransferLogEntry:
        """Record an event for ``page`` and echo it to the logger."""
        entry = TransferLogEntry(page, code, ACTIONS.get(code, code), detail or "", page_url or "")
        self._entries.append(entry)

        message = f"{page}: {entry.action}" + (f" - {entry.detail}" if entry.detail else "")
        if code in ERROR_CODES:
            logger.error(message)
        elif code in WARNING_CODES:
            logger.warning(message)
        else:
            logger.info(message)

        if self.events_path:
            _write_jsonl(self.events_path, entry)
        return entry

    def report_error(self, page: str, exc: Exception, code: str = "ERROR") -> TransferLogEntry:
        return self.record(page, code, str(exc))

    def count(self, code: str) -> int:
        return sum(1 for e in self._entries if e.code == code)

    def with_code(self, code: str) -> List[TransferLogEntry]:
        return [e for e in self._entries if e.code == code]
