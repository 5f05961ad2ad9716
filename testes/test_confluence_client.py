import base64
import json
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
import requests

from confluence_importer.migrators.confluence_client import (
    ConfluenceClient,
    RateLimiter,
    RetryPolicy,
    confluence_headers,
    with_retries,
)
from confluence_importer.utils.pre_flight_checks import PreFlightCheckError, run_confluence_pre_flight_checks


def make_response(status, payload=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    resp.url = "https://wiki.example.com/wiki/rest/api/content"
    return resp


class StubSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kw):
        self.requests.append((method, url, kw))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class NoWait:
    def wait(self, **kw):
        pass


def sequence(*responses):
    items = list(responses)
    calls = []

    def fn():
        calls.append(1)
        item = items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return fn, calls


# --- with_retries ---------------------------------------------------------


def test_rate_limit_backoff_is_exponential():
    sleeps = []
    fn, calls = sequence(make_response(429), make_response(429), make_response(200, {"ok": True}))
    resp = with_retries(fn, policy=RetryPolicy(base_delay=1.5), sleep_fn=sleeps.append)
    assert resp.json() == {"ok": True}
    assert sleeps == [1.5, 3.0]
    assert len(calls) == 3


def test_other_failures_wait_fixed_delay():
    sleeps = []
    fn, calls = sequence(requests.ConnectionError("reset"), make_response(500), make_response(200))
    with_retries(fn, policy=RetryPolicy(retry_delay=0.25), sleep_fn=sleeps.append)
    assert sleeps == [0.25, 0.25]


def test_last_failure_propagates_after_max_attempts():
    sleeps = []
    fn, calls = sequence(make_response(503), make_response(503), make_response(503))
    with pytest.raises(requests.HTTPError) as exc:
        with_retries(fn, policy=RetryPolicy(), sleep_fn=sleeps.append)
    assert exc.value.response.status_code == 503
    assert len(calls) == 3
    assert len(sleeps) == 2


def test_version_conflict_is_not_retried():
    sleeps = []
    fn, calls = sequence(make_response(409), make_response(200))
    with pytest.raises(requests.HTTPError):
        with_retries(fn, sleep_fn=sleeps.append)
    assert len(calls) == 1
    assert sleeps == []


def test_custom_retryable_predicate():
    fn, calls = sequence(make_response(500), make_response(200))
    policy = RetryPolicy(retryable=lambda e: False)
    with pytest.raises(requests.HTTPError):
        with_retries(fn, policy=policy, sleep_fn=lambda s: None)
    assert len(calls) == 1


def test_rate_limiter_spaces_requests():
    sleeps = []
    clock = iter([10.0, 10.0, 10.1, 10.1])
    limiter = RateLimiter(rpm=60)
    limiter.wait(time_fn=lambda: next(clock), sleep_fn=sleeps.append)
    limiter.wait(time_fn=lambda: next(clock), sleep_fn=sleeps.append)
    assert sleeps == [pytest.approx(0.9)]


# --- client ---------------------------------------------------------------


def test_basic_auth_with_email(make_config):
    headers = confluence_headers(make_config(email="me@example.com", api_token="tok"))
    expected = base64.b64encode(b"me@example.com:tok").decode("ascii")
    assert headers["Authorization"] == f"Basic {expected}"


def test_bearer_auth_without_email(make_config):
    assert confluence_headers(make_config(api_token="pat"))["Authorization"] == "Bearer pat"


def test_search_page_returns_first_result(make_config):
    session = StubSession([
        make_response(200, {"results": [{"id": 42, "title": "Intro", "version": {"number": 3}}]}),
    ])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())

    page = client.search_page("Intro")

    assert page.id == "42"
    assert page.version.number == 3
    method, url, kw = session.requests[0]
    assert method == "GET"
    assert url == "https://wiki.example.com/wiki/rest/api/content"
    assert kw["params"] == {"title": "Intro", "spaceKey": "DOCS", "expand": "version"}
    assert session.headers["Authorization"] == "Bearer secret"


def test_search_page_none_when_no_results(make_config):
    client = ConfluenceClient(make_config(), StubSession([make_response(200, {"results": []})]), limiter=NoWait())
    assert client.search_page("Nope") is None


def test_create_page_payload(make_config):
    session = StubSession([make_response(200, {"id": "7", "title": "New"})])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())

    page = client.create_page("New", "<p>x</p>", parent_id="99")

    assert page.id == "7"
    _, _, kw = session.requests[0]
    assert kw["json"] == {
        "type": "page",
        "title": "New",
        "space": {"key": "DOCS"},
        "body": {"storage": {"value": "<p>x</p>", "representation": "storage"}},
        "ancestors": [{"id": "99"}],
    }


def test_update_page_sends_version(make_config):
    session = StubSession([make_response(200, {"id": "7", "title": "T", "version": {"number": 2}})])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())

    client.update_page("7", "T", "<p>y</p>", 2)

    method, url, kw = session.requests[0]
    assert method == "PUT"
    assert url.endswith("/rest/api/content/7")
    assert kw["json"]["version"] == {"number": 2}


def test_upload_is_retried_with_a_fresh_file(make_config, tmp_path):
    path = tmp_path / "pic.png"
    path.write_bytes(b"data")
    sleeps = []
    session = StubSession([make_response(500), make_response(200, {"results": [{"id": "att1"}]})])
    client = ConfluenceClient(make_config(retry_delay=0.5), session, sleep_fn=sleeps.append, limiter=NoWait())

    payload = client.create_attachment("7", path, "pic.png")

    assert payload == {"results": [{"id": "att1"}]}
    assert sleeps == [0.5]
    assert len(session.requests) == 2
    for method, url, kw in session.requests:
        assert method == "POST"
        assert url.endswith("/rest/api/content/7/child/attachment")
        assert kw["headers"] == {"X-Atlassian-Token": "no-check"}
        assert kw["files"]["file"][0] == "pic.png"


def test_update_attachment_targets_data_endpoint(make_config, tmp_path):
    path = tmp_path / "a.pdf"
    path.write_bytes(b"pdf")
    session = StubSession([make_response(200, {"id": "att1"})])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())

    client.update_attachment("7", "att1", path, "a.pdf")

    assert session.requests[0][1].endswith("/rest/api/content/7/child/attachment/att1/data")


def test_list_attachments_filters_by_filename(make_config):
    session = StubSession([make_response(200, {"results": [{"id": "att1", "title": "a.pdf"}]})])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())

    attachments = client.list_attachments("7", "a.pdf")

    assert [a.title for a in attachments] == ["a.pdf"]
    assert session.requests[0][2]["params"] == {"expand": "version", "filename": "a.pdf"}


# --- pre-flight -----------------------------------------------------------


def test_pre_flight_passes(make_config):
    session = StubSession([make_response(200, {"accountId": "x"}), make_response(200, {"key": "DOCS"})])
    client = ConfluenceClient(make_config(), session, limiter=NoWait())
    run_confluence_pre_flight_checks(client)
    assert session.requests[1][1] == "https://wiki.example.com/wiki/rest/api/space/DOCS"


def test_pre_flight_rejects_bad_credentials(make_config):
    session = StubSession([make_response(401)])
    client = ConfluenceClient(make_config(max_attempts=1), session, limiter=NoWait())
    with pytest.raises(PreFlightCheckError, match="invalid or expired"):
        run_confluence_pre_flight_checks(client)


def test_pre_flight_rejects_unknown_space(make_config):
    session = StubSession([make_response(200, {}), make_response(404)])
    client = ConfluenceClient(make_config(max_attempts=1), session, limiter=NoWait())
    with pytest.raises(PreFlightCheckError, match="Space 'DOCS'"):
        run_confluence_pre_flight_checks(client)
