import os
import sys
from pathlib import Path

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from confluence_importer.config import ImportConfig
from models.confluence_content import RemoteAttachment, RemotePage

BASE_URL = "https://wiki.example.com/wiki"


class FakeConfluence:
    """In-memory stand-in for ConfluenceClient, one space, no network."""

    def __init__(self):
        self.pages = {}
        self.attachments = {}
        self.calls = []
        self._next_id = 100

    def _new_id(self):
        self._next_id += 1
        return str(self._next_id)

    def _page_by_id(self, page_id):
        return next(p for p in self.pages.values() if p["id"] == page_id)

    def search_page(self, title):
        self.calls.append(("search", title))
        page = self.pages.get(title)
        if page is None:
            return None
        return RemotePage.model_validate(
            {
                "id": page["id"],
                "title": title,
                "version": {"number": page["version"]},
                "_links": {"webui": f"/spaces/DOCS/pages/{page['id']}"},
            }
        )

    def create_page(self, title, body, parent_id=None):
        self.calls.append(("create", title))
        page = {"id": self._new_id(), "version": 1, "body": body, "parent": parent_id}
        self.pages[title] = page
        return RemotePage.model_validate(
            {"id": page["id"], "title": title, "_links": {"webui": f"/spaces/DOCS/pages/{page['id']}"}}
        )

    def update_page(self, page_id, title, body, version):
        self.calls.append(("update", title))
        page = self._page_by_id(page_id)
        if version != page["version"] + 1:
            response = requests.Response()
            response.status_code = 409
            raise requests.HTTPError("409 Conflict", response=response)
        page["version"] = version
        page["body"] = body
        return RemotePage.model_validate({"id": page_id, "title": title, "version": {"number": version}})

    def list_attachments(self, page_id, filename=None):
        self.calls.append(("list_attachments", filename))
        return [
            RemoteAttachment.model_validate({"id": att["id"], "title": name, "version": {"number": att["version"]}})
            for (pid, name), att in self.attachments.items()
            if pid == page_id and (filename is None or name == filename)
        ]

    def create_attachment(self, page_id, path, filename):
        self.calls.append(("create_attachment", filename))
        att = {"id": "att" + self._new_id(), "version": 1, "data": Path(path).read_bytes()}
        self.attachments[(page_id, filename)] = att
        return {
            "results": [
                {
                    "id": att["id"],
                    "title": filename,
                    "_links": {"download": f"/download/attachments/{page_id}/{filename}"},
                }
            ]
        }

    def update_attachment(self, page_id, attachment_id, path, filename):
        self.calls.append(("update_attachment", filename))
        att = self.attachments[(page_id, filename)]
        assert att["id"] == attachment_id
        att["version"] += 1
        att["data"] = Path(path).read_bytes()
        # no _links here, a follow-up fetch is needed
        return {"id": attachment_id, "title": filename, "version": {"number": att["version"]}}

    def get_attachment(self, attachment_id):
        self.calls.append(("get_attachment", attachment_id))
        for (page_id, name), att in self.attachments.items():
            if att["id"] == attachment_id:
                return {"id": attachment_id, "_links": {"download": f"/download/attachments/{page_id}/{name}"}}
        return {}


@pytest.fixture
def fake_confluence():
    return FakeConfluence()


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = dict(
            base_url=BASE_URL,
            api_token="secret",
            space_key="DOCS",
            html_root=tmp_path,
            page_delay=0,
            dry_run_output_dir=tmp_path / "dryrun-output",
        )
        values.update(overrides)
        return ImportConfig(**values)

    return _make
