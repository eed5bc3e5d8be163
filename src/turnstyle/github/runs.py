# github/runs.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Union

from turnstyle.config import Config
from turnstyle.model import ACTIVE_STATUSES, Job, Run, Step, Workflow
from turnstyle.ui.console import get_console

from .api_client import APIClient


class RunSource(Protocol):
    """Where the waiter reads runs, jobs and steps from."""

    def list_runs(self, owner: str, repo: str, workflow_id: Union[int, str], branch: Optional[str] = None) -> List[Run]:
        ...

    def list_jobs(self, owner: str, repo: str, run_id: int) -> List[Job]:
        ...

    def list_steps(self, owner: str, repo: str, job_id: int) -> List[Step]:
        ...


class GitHubRunSource:
    """Reads workflow runs, jobs and steps from the GitHub Actions API."""
    
    def __init__(self, client: APIClient):
        self.client = client
    
    @classmethod
    def from_config(cls, config: Config) -> GitHubRunSource:
        return cls(APIClient(config.api_url, config.token))
    
    def list_workflows(self, owner: str, repo: str) -> List[Workflow]:
        console = get_console()
        items = self.client.paginate(f"/repos/{owner}/{repo}/actions/workflows", key="workflows")
        workflows = [Workflow.from_dict(w) for w in items]
        console.print_debug(f"API Response: Found {len(workflows)} workflows")
        for w in workflows:
            console.print_debug(f"Workflow: id={w.id}, name={w.name!r}, state={w.state!r}")
        return workflows
    
    def _runs_with_status(
        self,
        owner: str,
        repo: str,
        workflow_id: Union[int, str],
        status: str,
        branch: Optional[str],
    ) -> List[Run]:
        items = self.client.paginate(
            f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs",
            {"status": status, "branch": branch},
            key="workflow_runs",
        )
        return [Run.from_dict(r) for r in items]
    
    def list_runs(
        self,
        owner: str,
        repo: str,
        workflow_id: Union[int, str],
        branch: Optional[str] = None,
    ) -> List[Run]:
        """
        List every run of a workflow that may still be active.

        The in_progress, queued and waiting listings are fetched in parallel
        and all three must succeed; the first failure propagates.

        Args:
            owner: Repository owner
            repo: Repository name
            workflow_id: Numeric workflow id or workflow file name
            branch: Only list runs for this branch when given

        Returns:
            The three listings concatenated, in status order
        """
        console = get_console()
        console.print_debug(
            f"Making {len(ACTIVE_STATUSES)} parallel API calls for statuses: "
            f"{', '.join(ACTIVE_STATUSES)} (branch: {branch or 'all branches'})"
        )

        with ThreadPoolExecutor(max_workers=len(ACTIVE_STATUSES)) as pool:
            futures = [
                pool.submit(self._runs_with_status, owner, repo, workflow_id, status, branch)
                for status in ACTIVE_STATUSES
            ]
            results = [f.result() for f in futures]

        runs: List[Run] = []
        for status, found in zip(ACTIVE_STATUSES, results):
            console.print_debug(f"API Response - {status} runs: {len(found)}")
            runs.extend(found)

        console.print_debug(f"Total runs found: {len(runs)}")
        for index, run in enumerate(runs, start=1):
            console.print_debug(
                f"Run {index}: ID={run.id}, status={run.status!r}, conclusion={run.conclusion!r}, "
                f"created_at={run.created_at!r}, branch={run.head_branch!r}"
            )
        return runs
    
    def list_jobs(self, owner: str, repo: str, run_id: int) -> List[Job]:
        console = get_console()
        items = self.client.paginate(f"/repos/{owner}/{repo}/actions/runs/{run_id}/jobs", key="jobs")
        jobs = [Job.from_dict(j) for j in items]
        console.print_debug(f"API Response: Found {len(jobs)} jobs for run {run_id}")
        for index, job in enumerate(jobs, start=1):
            console.print_debug(
                f"Job {index}: ID={job.id}, name={job.name!r}, status={job.status!r}, "
                f"conclusion={job.conclusion!r}, started_at={job.started_at!r}"
            )
        return jobs
    
    def list_steps(self, owner: str, repo: str, job_id: int) -> List[Step]:
        """Steps of one job, in the order the platform reports them."""
        console = get_console()
        job = self.client.get(f"/repos/{owner}/{repo}/actions/jobs/{job_id}")
        steps = [Step.from_dict(s) for s in (job.get("steps") or [])]
        console.print_debug(f"API Response: Found {len(steps)} steps for job {job_id}")
        for index, step in enumerate(steps, start=1):
            console.print_debug(
                f"Step {index}: name={step.name!r}, status={step.status!r}, "
                f"conclusion={step.conclusion!r}, started_at={step.started_at!r}"
            )
        return steps


def resolve_workflow_id(source: GitHubRunSource, config: Config) -> Optional[Union[int, str]]:
    """
    Turn the configured workflow into something the runs endpoint accepts.

    A numeric value is used as the workflow id and a workflow file name
    (``deploy.yml``) is passed through as-is; anything else is matched
    against workflow names. Returns None when no workflow has that name.
    """
    workflow = config.workflow.strip()
    if workflow.isdigit():
        return int(workflow)
    if workflow.endswith((".yml", ".yaml")):
        return workflow.rsplit("/", 1)[-1]
    for w in source.list_workflows(config.owner, config.repo):
        if w.name == workflow:
            return w.id
    return None
