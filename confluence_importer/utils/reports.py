"""
End-of-run reports.

:func:`write_csv_log` writes the flat event log (page, action, detail,
URL) of a run.  :func:`build_report_html` and :func:`build_index_html`
render the same events as storage-format bodies for the optional
report and index pages published to Confluence.
"""

from __future__ import annotations

import csv
import html
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from .events import TransferLogEntry


def write_csv_log(entries: Iterable[TransferLogEntry], out_path: Path) -> Path:
    """Write ``entries`` to ``out_path`` as CSV; parent dirs are created."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerow(["Page", "Action", "Detail", "URL"])
        for e in entries:
            writer.writerow([e.page, e.action, e.detail, e.page_url])
    return out_path


def _page_cell(entry: TransferLogEntry) -> str:
    page = html.escape(entry.page)
    if entry.page_url:
        return f'<a href="{html.escape(entry.page_url)}">{page}</a>'
    return page


def _generated_on(now: Optional[datetime]) -> str:
    return f"<p>Generated on {html.escape((now or datetime.now()).strftime('%Y-%m-%d %H:%M:%S'))}</p>"


def build_report_html(entries: Iterable[TransferLogEntry], now: Optional[datetime] = None) -> str:
    rows = "".join(
        f"<tr><td>{_page_cell(e)}</td><td>{html.escape(e.action)}</td><td>{html.escape(e.detail)}</td></tr>"
        for e in entries
    )
    return (
        _generated_on(now)
        + "<table><tbody>"
        + "<tr><th>Page</th><th>Action</th><th>Detail</th></tr>"
        + rows
        + "</tbody></table>"
    )


def created_pages(entries: Iterable[TransferLogEntry]) -> List[TransferLogEntry]:
    """First ``CREATED`` event with a URL for each page, in log order."""
    seen = set()
    pages: List[TransferLogEntry] = []
    for e in entries:
        if e.code == "CREATED" and e.page_url and e.page not in seen:
            seen.add(e.page)
            pages.append(e)
    return pages


def build_index_html(entries: Iterable[TransferLogEntry], now: Optional[datetime] = None) -> str:
    items = "".join(f"<li>{_page_cell(e)}</li>" for e in created_pages(entries))
    return _generated_on(now) + f"<ul>{items}</ul>"
