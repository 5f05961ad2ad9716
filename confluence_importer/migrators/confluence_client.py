"""
Confluence REST API client for the HTML importer.

This module implements the low-level interactions with the Confluence
Cloud / Server ``/rest/api`` endpoints that the importer needs: search a
page by title, create and update pages, list, create and update
attachments, and read the space and current user for pre-flight checks.

A simple rate limiter paces every request and a generic retry wrapper
handles rate limiting (429) and transient failures.  The retry policy
is an explicit :class:`RetryPolicy` value rather than being hard-coded
at the call sites.

Usage example::

    from confluence_importer.config import load_config
    from confluence_importer.migrators.confluence_client import ConfluenceClient

    cfg = load_config()
    client = ConfluenceClient(cfg)
    page = client.search_page("Introduction")
    if page is None:
        page = client.create_page("Introduction", "<p>Hello</p>")
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from models.confluence_content import RemoteAttachment, RemotePage

from ..config import ImportConfig

logger = logging.getLogger(__name__)

###############################################################################
# Rate limiting and retry utilities
###############################################################################


class RateLimiter:
    """
    Simple time-based rate limiter.  Ensures that no more than ``rpm``
    requests are dispatched per minute.
    """

    def __init__(self, rpm: int = 300) -> None:
        self.rpm = max(1, rpm)
        self.interval = 60.0 / float(self.rpm)
        self._last = 0.0

    def wait(self, time_fn: Callable[[], float] = time.monotonic, sleep_fn: Callable[[float], None] = time.sleep) -> None:
        now = time_fn()
        dt = now - self._last
        if dt < self.interval:
            sleep_fn(self.interval - dt)
        self._last = time_fn()


def status_of(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    return response.status_code if response is not None else None


def is_rate_limited(exc: BaseException) -> bool:
    return status_of(exc) == 429


def is_retryable(exc: BaseException) -> bool:
    """Everything but a version conflict, which would resend a stale version."""
    return status_of(exc) != 409


@dataclass(frozen=True)
class RetryPolicy:
    """
    :param max_attempts: Total number of attempts, first one included.
    :param base_delay: Rate-limit backoff unit; attempt ``n`` (0-based)
        waits ``2 ** n * base_delay`` seconds after a 429.
    :param retry_delay: Fixed wait after any other retryable failure.
    :param retryable: Predicate deciding whether a failure is retried.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    retry_delay: float = 1.0
    retryable: Callable[[BaseException], bool] = is_retryable

    def delay(self, exc: BaseException, attempt: int) -> float:
        if is_rate_limited(exc):
            return (2 ** attempt) * self.base_delay
        return self.retry_delay


DEFAULT_RETRY_POLICY = RetryPolicy()


def with_retries(
    fn: Callable[[], requests.Response],
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    Execute a function returning a ``requests.Response``, retrying on
    failure according to ``policy``.

    :param fn: A zero-argument callable that performs the HTTP request.
    :param policy: Attempt budget, backoff and retryable predicate.
    :param sleep_fn: Used for the waits between attempts.
    :return: The successful ``requests.Response``.
    :raises requests.RequestException: the last failure once all
        attempts are used, or immediately for a non-retryable failure.
    """
    attempt = 0
    while True:
        try:
            resp = fn()
            resp.raise_for_status()
            return resp
        except requests.RequestException as e:
            if attempt >= policy.max_attempts - 1 or not policy.retryable(e):
                raise
            wait = policy.delay(e, attempt)
            if is_rate_limited(e):
                logger.warning("Rate limit reached, waiting %.1fs...", wait)
            else:
                logger.warning("Attempt %d/%d failed (%s), retrying...", attempt + 1, policy.max_attempts, e)
            sleep_fn(wait)
            attempt += 1


def confluence_headers(cfg: ImportConfig) -> Dict[str, str]:
    """
    Basic authentication with email and API token when an email is
    configured, bearer token (personal access token) otherwise.
    """
    if cfg.email:
        credentials = base64.b64encode(f"{cfg.email}:{cfg.api_token}".encode("utf-8")).decode("ascii")
        auth = f"Basic {credentials}"
    else:
        auth = f"Bearer {cfg.api_token}"
    return {"Authorization": auth, "Accept": "application/json"}


###############################################################################
# Client
###############################################################################


class ConfluenceClient:
    """Thin wrapper around the content endpoints of one Confluence space."""

    def __init__(
        self,
        cfg: ImportConfig,
        session: Optional[requests.Session] = None,
        *,
        sleep_fn: Callable[[float], None] = time.sleep,
        limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.cfg = cfg
        self.base_url = cfg.base_url.rstrip("/")
        self.api = cfg.api_endpoint
        self.session = session or requests.Session()
        self.session.headers.update(confluence_headers(cfg))
        self.policy = RetryPolicy(cfg.max_attempts, cfg.base_delay, cfg.retry_delay)
        self._limiter = limiter or RateLimiter(cfg.requests_per_minute)
        self._sleep = sleep_fn

    def _request(self, method: str, url: str, *, upload: Optional[Tuple[Path, str]] = None, **kw: Any) -> requests.Response:
        def do_request() -> requests.Response:
            self._limiter.wait(sleep_fn=self._sleep)
            if upload is None:
                return self.session.request(method, url, timeout=self.cfg.timeout, **kw)
            # Reopened on every attempt, a retried request needs the full stream
            path, filename = upload
            with open(path, "rb") as fh:
                return self.session.request(
                    method,
                    url,
                    files={"file": (filename, fh)},
                    headers={"X-Atlassian-Token": "no-check"},
                    timeout=self.cfg.timeout,
                    **kw,
                )

        return with_retries(do_request, policy=self.policy, sleep_fn=self._sleep)

    # --- pages -----------------------------------------------------------

    def search_page(self, title: str) -> Optional[RemotePage]:
        """Return the page titled exactly ``title`` in the space, if any."""
        resp = self._request(
            "GET",
            self.api,
            params={"title": title, "spaceKey": self.cfg.space_key, "expand": "version"},
        )
        results = resp.json().get("results") or []
        return RemotePage.model_validate(results[0]) if results else None

    def create_page(self, title: str, body: str, parent_id: Optional[str] = None) -> RemotePage:
        payload: Dict[str, Any] = {
            "type": "page",
            "title": title,
            "space": {"key": self.cfg.space_key},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        if parent_id:
            payload["ancestors"] = [{"id": parent_id}]
        resp = self._request("POST", self.api, json=payload)
        return RemotePage.model_validate(resp.json())

    def update_page(self, page_id: str, title: str, body: str, version: int) -> RemotePage:
        payload = {
            "id": page_id,
            "type": "page",
            "title": title,
            "version": {"number": version},
            "body": {"storage": {"value": body, "representation": "storage"}},
        }
        resp = self._request("PUT", f"{self.api}/{page_id}", json=payload)
        return RemotePage.model_validate(resp.json())

    # --- attachments -----------------------------------------------------

    def list_attachments(self, page_id: str, filename: Optional[str] = None) -> List[RemoteAttachment]:
        params: Dict[str, Any] = {"expand": "version"}
        if filename:
            params["filename"] = filename
        resp = self._request("GET", f"{self.api}/{page_id}/child/attachment", params=params)
        return [RemoteAttachment.model_validate(a) for a in resp.json().get("results") or []]

    def create_attachment(self, page_id: str, path: Path, filename: str) -> Dict[str, Any]:
        resp = self._request("POST", f"{self.api}/{page_id}/child/attachment", upload=(path, filename))
        return resp.json()

    def update_attachment(self, page_id: str, attachment_id: str, path: Path, filename: str) -> Dict[str, Any]:
        resp = self._request(
            "POST",
            f"{self.api}/{page_id}/child/attachment/{attachment_id}/data",
            upload=(path, filename),
        )
        return resp.json()

    def get_attachment(self, attachment_id: str) -> Dict[str, Any]:
        resp = self._request("GET", f"{self.api}/{attachment_id}", params={"expand": "version"})
        return resp.json()

    # --- pre-flight ------------------------------------------------------

    def current_user(self) -> Dict[str, Any]:
        return self._request("GET", f"{self.base_url}/rest/api/user/current").json()

    def get_space(self, space_key: str) -> Dict[str, Any]:
        return self._request("GET", f"{self.base_url}/rest/api/space/{space_key}").json()
