from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import pytest
from conftest import make_config

from turnstyle.errors import APIError
from turnstyle.github.runs import GitHubRunSource, resolve_workflow_id


class StubClient:
    def __init__(self, pages: Optional[Dict[str, List[dict]]] = None, jobs: Optional[Dict[str, Any]] = None):
        self.pages = pages or {}
        self.jobs = jobs or {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def paginate(self, path, params=None, key=None):
        with self._lock:
            self.calls.append((path, dict(params or {}), key))
        status = (params or {}).get("status")
        result = self.pages.get(f"{path}?{status}" if status else path, [])
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, path, params=None):
        self.calls.append((path, params, None))
        return self.jobs[path]


RUNS = "/repos/octo/app/actions/workflows/42/runs"


def test_list_runs_merges_the_three_active_statuses() -> None:
    client = StubClient({
        f"{RUNS}?in_progress": [{"id": 3, "status": "in_progress"}],
        f"{RUNS}?queued": [{"id": 5, "status": "queued"}, {"id": 6, "status": "queued"}],
        f"{RUNS}?waiting": [{"id": 1, "status": "waiting", "display_title": "t", "name": "n"}],
    })
    runs = GitHubRunSource(client).list_runs("octo", "app", 42, "main")

    assert [r.id for r in runs] == [3, 5, 6, 1]
    assert runs[3].display_title == "t"
    assert sorted(c[1]["status"] for c in client.calls) == ["in_progress", "queued", "waiting"]
    assert all(c[1]["branch"] == "main" and c[2] == "workflow_runs" for c in client.calls)


def test_list_runs_fails_if_any_status_query_fails() -> None:
    client = StubClient({f"{RUNS}?queued": APIError("boom", status=500)})
    with pytest.raises(APIError, match="boom"):
        GitHubRunSource(client).list_runs("octo", "app", 42)


def test_list_jobs_builds_models() -> None:
    path = "/repos/octo/app/actions/runs/7/jobs"
    client = StubClient({path: [{"id": 70, "name": "build", "status": "queued", "run_id": 7}]})
    jobs = GitHubRunSource(client).list_jobs("octo", "app", 7)

    assert jobs[0].name == "build"
    assert jobs[0].run_id == 7
    assert not jobs[0].completed
    assert client.calls[0][2] == "jobs"


def test_list_steps_keeps_platform_order_and_tolerates_missing_steps() -> None:
    client = StubClient(jobs={
        "/repos/octo/app/actions/jobs/70": {"id": 70, "steps": [
            {"name": "b", "status": "completed", "number": 1},
            {"name": "a", "status": "in_progress", "number": 2},
        ]},
        "/repos/octo/app/actions/jobs/71": {"id": 71, "steps": None},
    })
    source = GitHubRunSource(client)

    assert [s.name for s in source.list_steps("octo", "app", 70)] == ["b", "a"]
    assert source.list_steps("octo", "app", 71) == []


def test_resolve_workflow_id_by_name() -> None:
    client = StubClient({"/repos/octo/app/actions/workflows": [
        {"id": 1, "name": "CI", "path": ".github/workflows/ci.yml", "state": "active"},
        {"id": 2, "name": "deploy", "path": ".github/workflows/deploy.yml", "state": "active"},
    ]})
    assert resolve_workflow_id(GitHubRunSource(client), make_config(workflow="deploy")) == 2


def test_resolve_workflow_id_unknown_name() -> None:
    client = StubClient({"/repos/octo/app/actions/workflows": []})
    assert resolve_workflow_id(GitHubRunSource(client), make_config(workflow="nope")) is None


def test_resolve_workflow_id_numeric_and_file_name_skip_the_lookup() -> None:
    client = StubClient()
    source = GitHubRunSource(client)

    assert resolve_workflow_id(source, make_config(workflow="1234")) == 1234
    assert resolve_workflow_id(source, make_config(workflow=".github/workflows/deploy.yml")) == "deploy.yml"
    assert client.calls == []
