"""
High-level orchestration of the HTML → Confluence import.

This module defines a :class:`HtmlImportTool` class that ties together
the extractors, parsers, migrators and utilities into a complete
pipeline.  Documents listed by the index are imported one at a time:

1. read the file and strip its YAML front matter;
2. normalize the markup to XHTML;
3. create or update a bare page, so that the page id exists;
4. rewrite images and links to storage-format references;
5. upload the referenced files as attachments of that page;
6. update the page with the rewritten body;
7. record the document in the resume state.

A failure in steps 1-6 is recorded for the document and the run moves
on to the next one.  At the end the CSV log and, when requested, the
report pages are written.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import ImportConfig
from .extractors import IndexEntry, PageMap, build_page_map, extract_front_matter, list_documents, read_document
from .migrators.confluence_client import ConfluenceClient
from .migrators.reconciler import ContentReconciler, ReconciliationError
from .parsers import normalize_html, rewrite_references
from .parsers.reference_rewriter import attachment_name, local_path
from .utils.events import TransferLog
from .utils.reports import build_index_html, build_report_html, write_csv_log
from .utils.state import load_state, save_state

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    processed: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0

    def __str__(self) -> str:
        return (
            f"{self.created} created, {self.updated} updated "
            f"({self.completed}/{self.processed} completed, {self.failed} failed, {self.skipped} skipped)"
        )


class HtmlImportTool:
    """
    Encapsulates all state and behavior required to import a folder of
    HTML documents into a Confluence space.  Every observable step is
    recorded in a :class:`TransferLog` owned by the tool.
    """

    def __init__(
        self,
        config: ImportConfig,
        *,
        client: Optional[ConfluenceClient] = None,
        log: Optional[TransferLog] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.log = log if log is not None else TransferLog(config.events_path)
        if client is None and config.network_enabled:
            client = ConfluenceClient(config, sleep_fn=sleep_fn)
        self.reconciler = ContentReconciler(config, client, self.log)
        self._sleep = sleep_fn

    def log_message(self, message: str, level: str = "INFO") -> None:
        logger.log(getattr(logging, level.upper(), logging.INFO), message)

    @property
    def mode(self) -> str:
        if self.config.dry_run:
            return "dry-run"
        if self.config.dry_run_local:
            return "dry-run-local"
        return "normal"

    # --- documents -------------------------------------------------------

    def import_document(self, entry: IndexEntry, page_map: PageMap) -> bool:
        """
        Run the full pipeline for one document.

        :return: ``True`` when the page and all of its attachments were
                 finalized, ``False`` when the page was finalized but an
                 attachment failed.
        :raises ReconciliationError: when the page itself could not be
                 created or updated.
        """
        cfg = self.config
        doc = read_document(cfg.html_root, entry)

        def invalid_front_matter(message: str) -> None:
            self.log.record(doc.title, "INVALID_FRONT_MATTER", message)

        doc.front_matter, body = extract_front_matter(doc.raw_html, on_error=invalid_front_matter)
        # ids are kept, anchor macros are attached to them
        doc.normalized_html = normalize_html(body)

        page_id = self.reconciler.reconcile_page(doc.title, doc.normalized_html, cfg.parent_page_id)

        result = rewrite_references(doc.normalized_html, doc.title, page_map, doc.base_dir, self.log)
        doc.final_html = result.markup
        doc.files_to_upload = list(dict.fromkeys(result.uploads))

        uploaded = self._upload_files(doc.title, doc.base_dir, page_id, doc.files_to_upload)

        self.reconciler.reconcile_page(doc.title, doc.final_html, cfg.parent_page_id)
        if not uploaded:
            return False
        self.log.record(doc.title, "COMPLETED", doc.file)
        return True

    def _upload_files(self, title: str, base_dir: Path, page_id: str, refs: List[str]) -> bool:
        ok = True
        seen: Dict[str, Path] = {}
        for ref in refs:
            filename = attachment_name(ref)
            path = local_path(base_dir, ref)
            if filename in seen:
                # one attachment per name, a second file would overwrite the first
                if seen[filename] != path:
                    self.log.record(
                        title, "ATTACHMENT_NAME_CONFLICT", f"{ref} not uploaded, {filename} comes from {seen[filename]}"
                    )
                continue
            seen[filename] = path
            try:
                url = self.reconciler.upload_attachment(page_id, path, filename)
            except (ReconciliationError, OSError) as e:
                self.log.report_error(title, e, code="ATTACHMENT_ERROR")
                ok = False
                continue
            self.log.record(title, "ATTACHMENT_UPLOADED", filename, url)
        return ok

    # --- run -------------------------------------------------------------

    def run(self) -> RunSummary:
        """
        Import every pending document of the index, in index order.

        Documents already listed in the resume state are skipped unless
        the configuration ignores the state.  The state file is only
        written in normal mode.
        """
        cfg = self.config
        self.log_message(f"Starting import from {cfg.html_root} ({self.mode})")

        state_path = cfg.resolved_state_file
        state = load_state(state_path, ignore=cfg.ignore_state)
        page_map = build_page_map(cfg.html_root, cfg.index_file, cfg.index_title)
        entries = list_documents(cfg.html_root, cfg.index_file, cfg.index_title)
        summary = RunSummary()

        pending: List[IndexEntry] = []
        for entry in entries:
            if state.is_transferred(entry.file):
                self.log.record(entry.title, "SKIPPED", entry.file)
                summary.skipped += 1
            else:
                pending.append(entry)
        if cfg.limit is not None:
            pending = pending[: cfg.limit]

        if not pending:
            self.log_message("Nothing to process. Check the index document.", level="WARNING")
        else:
            self.log_message(f"{len(pending)} files to process")

        for i, entry in enumerate(pending, start=1):
            if i > 1 and cfg.page_delay:
                self._sleep(cfg.page_delay)
            summary.processed += 1
            self.log_message(f'({i}/{len(pending)}) Processing "{entry.title}" ({entry.file})')
            try:
                done = self.import_document(entry, page_map)
            except (ReconciliationError, OSError, UnicodeDecodeError) as e:
                self.log.report_error(entry.title, e)
                summary.failed += 1
                continue
            if not done:
                summary.failed += 1
                continue
            summary.completed += 1
            if cfg.network_enabled:
                state.mark_transferred(entry.file)
                save_state(state_path, state)

        self.finish(summary)
        return summary

    def finish(self, summary: RunSummary) -> None:
        cfg = self.config
        entries = self.log.entries
        created = {e.page for e in entries if e.code == "CREATED"}
        summary.created = len(created)
        summary.updated = len({e.page for e in entries if e.code == "UPDATED"} - created)

        if cfg.log_path:
            write_csv_log(entries, cfg.log_path)
            self.log_message(f"CSV log written: {cfg.log_path}")

        if cfg.publish_report and cfg.network_enabled:
            self.publish_reports()

        self.log_message(f"Import completed: {summary}")

    def publish_reports(self, now: Optional[datetime] = None) -> None:
        """Create or update the report and index pages under the parent page."""
        now = now or datetime.now()
        date = now.strftime("%Y-%m-%d")
        entries = self.log.entries
        pages = [
            (f"Import report {date}", build_report_html(entries, now)),
            (f"Imported pages index {date}", build_index_html(entries, now)),
        ]
        for title, body in pages:
            try:
                self.reconciler.reconcile_page(title, body, self.config.parent_page_id)
            except ReconciliationError as e:
                self.log.report_error(title, e)
