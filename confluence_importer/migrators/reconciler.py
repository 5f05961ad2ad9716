"""
Create-or-update of pages and attachments.

Confluence has no upsert, so :class:`ContentReconciler` emulates one:
pages are searched by title and attachments are listed by filename
before deciding between a create and an update.  The same object also
implements the two dry modes, so the rest of the pipeline runs
unchanged when no network call may be made.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Any, Optional

import requests
from pydantic import ValidationError

from ..config import ImportConfig
from ..utils.events import TransferLog
from .confluence_client import ConfluenceClient

logger = logging.getLogger(__name__)

DUMMY_URL = "https://dummy.url"

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


class ReconciliationError(Exception):
    """A remote page or attachment could not be brought to the wanted state."""


def safe_filename(title: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", title)


def extract_download_link(payload: Any) -> Optional[str]:
    """
    Return the download link of an attachment response, or ``None``.

    Recognized shapes, tried in order:

    1. ``{"results": [{"_links": {"download": ...}}]}`` (creation)
    2. ``{"_links": {"download": ...}}`` (data update, single fetch)

    Anything else needs a follow-up fetch of the attachment.
    """
    if not isinstance(payload, dict):
        return None
    results = payload.get("results")
    if isinstance(results, list) and results:
        first = results[0] if isinstance(results[0], dict) else {}
        link = (first.get("_links") or {}).get("download")
        if link:
            return link
    return (payload.get("_links") or {}).get("download") or None


def attachment_id_of(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    results = payload.get("results")
    if isinstance(results, list) and results and isinstance(results[0], dict):
        att_id = results[0].get("id")
    else:
        att_id = payload.get("id")
    return str(att_id) if att_id is not None else None


def absolute_url(base_url: str, link: str) -> str:
    if link.startswith(("http://", "https://")):
        return link
    return f"{base_url.rstrip('/')}/{link.lstrip('/')}"


class ContentReconciler:
    """
    Page and attachment reconciliation against one space.

    :param cfg: Import configuration; selects normal, dry-run or
        dry-run-local behavior.
    :param client: REST client.  Built from ``cfg`` when omitted in a
        network mode; unused in the dry modes.
    :param log: Event collector shared with the rest of the run.
    """

    def __init__(self, cfg: ImportConfig, client: Optional[ConfluenceClient] = None, log: Optional[TransferLog] = None) -> None:
        self.cfg = cfg
        self.log = log if log is not None else TransferLog()
        if client is None and cfg.network_enabled:
            client = ConfluenceClient(cfg)
        self.client = client
        self.base_url = cfg.base_url.rstrip("/")

    # --- pages -----------------------------------------------------------

    def reconcile_page(self, title: str, body: str, parent_id: Optional[str] = None) -> str:
        """
        Make the page titled ``title`` hold ``body``.

        :return: The id of the created or updated page (a synthetic id
                 in the dry modes).
        :raises ReconciliationError: when the remote calls fail after
                 retries or answer with an unexpected shape.
        """
        if self.cfg.dry_run:
            self.log.record(title, "SIMULATED", "Page would be created or updated")
            return f"dry-{title}"
        if self.cfg.dry_run_local:
            out = self._write_local_page(title, body)
            self.log.record(title, "DRY_RUN_LOCAL", f"Saved to {out}")
            return f"dry-local-{title}"

        try:
            existing = self.client.search_page(title)
            if existing is not None:
                version = existing.version.number + 1
                self.client.update_page(existing.id, title, body, version)
                self.log.record(title, "UPDATED", f"Version {version}", existing.web_url(self.base_url))
                return existing.id
            page = self.client.create_page(title, body, parent_id)
            self.log.record(title, "CREATED", f"ID {page.id}", page.web_url(self.base_url))
            return page.id
        except requests.RequestException as e:
            raise ReconciliationError(f"Could not create or update page '{title}': {e}") from e
        except ValidationError as e:
            raise ReconciliationError(f"Unexpected response for page '{title}': {e}") from e

    def _write_local_page(self, title: str, body: str) -> Path:
        out_dir = Path(self.cfg.dry_run_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        out = out_dir / f"{safe_filename(title)}.html"
        out.write_text(body, encoding="utf-8")
        return out

    # --- attachments -----------------------------------------------------

    def upload_attachment(self, page_id: str, file_path: Path, filename: str) -> str:
        """
        Make ``filename`` on page ``page_id`` hold the bytes of ``file_path``.

        :return: The absolute download URL of the attachment (a synthetic
                 URL in the dry modes).
        :raises ReconciliationError: on remote failure, an unusable page
                 id or a response without a download link.
        """
        if self.cfg.dry_run:
            return f"{DUMMY_URL}/{filename}"
        if self.cfg.dry_run_local:
            assets = Path(self.cfg.dry_run_output_dir) / "assets"
            assets.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(file_path, assets / filename)
            return f"./assets/{filename}"

        if not page_id or page_id.startswith("dry-"):
            raise ReconciliationError(f"Invalid page id for attachment {filename}: {page_id!r}")

        try:
            existing = next(
                (a for a in self.client.list_attachments(page_id, filename) if a.title == filename),
                None,
            )
            if existing is not None:
                payload = self.client.update_attachment(page_id, existing.id, file_path, filename)
                att_id: Optional[str] = existing.id
            else:
                payload = self.client.create_attachment(page_id, file_path, filename)
                att_id = attachment_id_of(payload)

            link = extract_download_link(payload)
            if not link and att_id:
                link = extract_download_link(self.client.get_attachment(att_id))
        except requests.RequestException as e:
            raise ReconciliationError(f"Could not upload {filename}: {e}") from e
        except ValidationError as e:
            raise ReconciliationError(f"Unexpected attachment listing for {filename}: {e}") from e

        if not link:
            raise ReconciliationError(f"No download link returned for {filename}")
        logger.debug("Attachment %s available at %s", filename, link)
        return absolute_url(self.base_url, link)
