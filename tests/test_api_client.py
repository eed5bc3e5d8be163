from __future__ import annotations

import io
import json
import urllib.error
import urllib.request
from email.message import Message
from typing import Dict, List, Optional

import pytest

from turnstyle.errors import AbuseDetectedError, APIError, RateLimitedError
from turnstyle.github.api_client import APIClient


def _headers(values: Optional[Dict[str, str]] = None) -> Message:
    msg = Message()
    for k, v in (values or {}).items():
        msg[k] = v
    return msg


class FakeResponse:
    def __init__(self, body, headers: Optional[Dict[str, str]] = None):
        self._body = json.dumps(body).encode("utf-8")
        self.headers = _headers(headers)

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def http_error(url: str, code: int, body: str = "", headers: Optional[Dict[str, str]] = None):
    return urllib.error.HTTPError(url, code, "Forbidden", _headers(headers), io.BytesIO(body.encode("utf-8")))


class FakeUrlopen:
    """Returns (or raises) the scripted responses in order and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[urllib.request.Request] = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def client(sleeps) -> APIClient:
    return APIClient("https://api.github.test/", "tok", sleep=sleeps.append, clock=lambda: 1000.0)


def test_get_sends_auth_and_parses_json(monkeypatch, client) -> None:
    fake = FakeUrlopen(FakeResponse({"id": 1, "steps": []}))
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    assert client.get("/repos/o/r/actions/jobs/1") == {"id": 1, "steps": []}
    req = fake.requests[0]
    assert req.full_url == "https://api.github.test/repos/o/r/actions/jobs/1"
    assert req.get_header("Authorization") == "Bearer tok"
    assert req.get_header("Accept") == "application/vnd.github+json"


def test_paginate_follows_next_links(monkeypatch, client) -> None:
    page2 = "https://api.github.test/repos/o/r/actions/runs/1/jobs?per_page=100&page=2"
    fake = FakeUrlopen(
        FakeResponse({"jobs": [{"id": 1}, {"id": 2}]}, {"Link": f'<{page2}>; rel="next", <{page2}>; rel="last"'}),
        FakeResponse({"jobs": [{"id": 3}]}, {"Link": '<https://api.github.test/x?page=1>; rel="first"'}),
    )
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    items = client.paginate("/repos/o/r/actions/runs/1/jobs", key="jobs")

    assert [i["id"] for i in items] == [1, 2, 3]
    assert "per_page=100" in fake.requests[0].full_url
    assert fake.requests[1].full_url == page2


def test_paginate_drops_none_params(monkeypatch, client) -> None:
    fake = FakeUrlopen(FakeResponse({"workflow_runs": []}))
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    client.paginate("/runs", {"status": "queued", "branch": None}, key="workflow_runs")
    assert "status=queued" in fake.requests[0].full_url
    assert "branch" not in fake.requests[0].full_url


def test_quota_exhaustion_is_retried_once(monkeypatch, client, sleeps) -> None:
    url = "https://api.github.test/repos/o/r/actions/jobs/1"
    fake = FakeUrlopen(
        http_error(url, 403, "API rate limit exceeded", {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1012"}),
        FakeResponse({"id": 1}),
    )
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    assert client.get("/repos/o/r/actions/jobs/1") == {"id": 1}
    assert sleeps == [12.0]


def test_quota_retry_waits_for_a_distant_reset(monkeypatch, client, sleeps) -> None:
    url = "https://api.github.test/x"
    fake = FakeUrlopen(
        http_error(url, 403, "API rate limit exceeded", {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "3400"}),
        FakeResponse({"ok": True}),
    )
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    assert client.get("/x") == {"ok": True}
    assert sleeps == [2400.0]


def test_quota_exhaustion_twice_raises(monkeypatch, client, sleeps) -> None:
    url = "https://api.github.test/x"
    fake = FakeUrlopen(
        http_error(url, 429, "", {"Retry-After": "3"}),
        http_error(url, 429, "", {"Retry-After": "3"}),
    )
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    with pytest.raises(RateLimitedError) as e:
        client.get("/x")
    assert e.value.status == 429
    assert sleeps == [3.0]


def test_abuse_limit_is_not_retried(monkeypatch, client, sleeps) -> None:
    url = "https://api.github.test/x"
    fake = FakeUrlopen(
        http_error(url, 403, '{"message": "You have exceeded a secondary rate limit"}', {"Retry-After": "60"}),
    )
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    with pytest.raises(AbuseDetectedError):
        client.get("/x")
    assert sleeps == []
    assert fake.responses == []


def test_plain_forbidden_is_an_api_error(monkeypatch, client, sleeps) -> None:
    url = "https://api.github.test/x"
    fake = FakeUrlopen(http_error(url, 403, "Resource not accessible by integration"))
    monkeypatch.setattr(urllib.request, "urlopen", fake)

    with pytest.raises(APIError) as e:
        client.get("/x")
    assert not isinstance(e.value, RateLimitedError)
    assert e.value.status == 403
    assert "Resource not accessible" in str(e.value)
    assert sleeps == []


def test_network_error_is_an_api_error(monkeypatch, client) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", FakeUrlopen(urllib.error.URLError("connection refused")))
    with pytest.raises(APIError, match="Network error"):
        client.get("/x")
