from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest


# Ensure `import turnstyle` works when running `pytest` from repo root without installing.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from turnstyle.config import Config  # noqa: E402
from turnstyle.model import Job, Run, Step  # noqa: E402
from turnstyle.ui.console import Console, set_console  # noqa: E402
from turnstyle.ui.outputs import ActionOutputs  # noqa: E402


class FakeRunSource:
    """
    In-memory run source.

    `ticks` holds the run listing returned by each successive list_runs
    call; the last listing repeats once the script runs out.
    """

    def __init__(
        self,
        *ticks: Sequence[Run],
        jobs: Optional[Dict[int, List[Job]]] = None,
        steps: Optional[Dict[int, List[Step]]] = None,
    ):
        self.ticks = [list(t) for t in ticks] or [[]]
        self.jobs = jobs or {}
        self.steps = steps or {}
        self.calls: List[tuple] = []

    def list_runs(self, owner, repo, workflow_id, branch=None):
        index = min(sum(1 for c in self.calls if c[0] == "runs"), len(self.ticks) - 1)
        self.calls.append(("runs", owner, repo, workflow_id, branch))
        return list(self.ticks[index])

    def list_jobs(self, owner, repo, run_id):
        self.calls.append(("jobs", run_id))
        return list(self.jobs.get(run_id, []))

    def list_steps(self, owner, repo, job_id):
        self.calls.append(("steps", job_id))
        return list(self.steps.get(job_id, []))


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_config(**overrides) -> Config:
    values = dict(
        owner="octo",
        repo="app",
        run_id=10,
        workflow="deploy",
        branch="main",
        poll_interval_seconds=15,
    )
    values.update(overrides)
    return Config(**values)


def run(id: int, status: str = "in_progress", conclusion: Optional[str] = None, **kw) -> Run:
    return Run(
        id=id,
        status=status,
        conclusion=conclusion,
        html_url=kw.pop("html_url", f"https://github.com/octo/app/actions/runs/{id}"),
        **kw,
    )


@pytest.fixture(autouse=True)
def quiet_console(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    monkeypatch.delenv("RUNNER_DEBUG", raising=False)
    set_console(Console(debug=False))


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def outputs(tmp_path: Path) -> ActionOutputs:
    return ActionOutputs(tmp_path / "github_output")
