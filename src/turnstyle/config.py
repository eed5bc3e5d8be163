# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_POLL_INTERVAL_SECONDS = 60

# Field name -> environment variable. Action inputs arrive as INPUT_<NAME>
# with the input's hyphens preserved; run context comes from GITHUB_*.
ENV: Dict[str, str] = {
    "repository": "GITHUB_REPOSITORY",
    "run_id": "GITHUB_RUN_ID",
    "workflow": "GITHUB_WORKFLOW",
    "ref": "GITHUB_REF",
    "head_ref": "GITHUB_HEAD_REF",
    "api_url": "GITHUB_API_URL",
    "token": "INPUT_TOKEN",
    "same_branch_only": "INPUT_SAME-BRANCH-ONLY",
    "queue_name": "INPUT_QUEUE-NAME",
    "job_to_wait_for": "INPUT_JOB-TO-WAIT-FOR",
    "step_to_wait_for": "INPUT_STEP-TO-WAIT-FOR",
    "poll_interval_seconds": "INPUT_POLL-INTERVAL-SECONDS",
    "initial_wait_seconds": "INPUT_INITIAL-WAIT-SECONDS",
    "continue_after_seconds": "INPUT_CONTINUE-AFTER-SECONDS",
    "abort_after_seconds": "INPUT_ABORT-AFTER-SECONDS",
    "exponential_backoff_retries": "INPUT_EXPONENTIAL-BACKOFF-RETRIES",
}

_OPTIONAL_TEXT = ("ref", "head_ref", "branch", "queue_name", "job_to_wait_for", "step_to_wait_for", "token")
_OPTIONAL_SECONDS = ("initial_wait_seconds", "continue_after_seconds", "abort_after_seconds")


@dataclass(frozen=True)
class Config:
    """
    Parameters for one gate invocation. Built once, never mutated.

    Optional thresholds and targets are None when not configured. The
    inputs treat a 0 threshold as not configured.
    """
    owner: str
    repo: str
    run_id: int
    workflow: str
    branch: Optional[str] = None
    same_branch_only: bool = True
    queue_name: Optional[str] = None
    job_to_wait_for: Optional[str] = None
    step_to_wait_for: Optional[str] = None
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    initial_wait_seconds: Optional[int] = None
    continue_after_seconds: Optional[int] = None
    abort_after_seconds: Optional[int] = None
    exponential_backoff_retries: bool = False
    token: Optional[str] = field(default=None, repr=False)
    api_url: str = DEFAULT_API_URL

    @property
    def branch_filter(self) -> Optional[str]:
        """Branch passed to the run listing, or None for all branches."""
        return self.branch if self.same_branch_only else None


# -------------------- Input schema --------------------

class GateInputs(BaseModel):
    """Raw gate inputs, validated before anything talks to the API."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    repository: str
    run_id: int = Field(gt=0)
    workflow: str = Field(min_length=1)
    ref: Optional[str] = None
    head_ref: Optional[str] = None
    branch: Optional[str] = None  # explicit override of ref/head_ref
    same_branch_only: bool = True
    queue_name: Optional[str] = None
    job_to_wait_for: Optional[str] = None
    step_to_wait_for: Optional[str] = None
    poll_interval_seconds: int = Field(DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    initial_wait_seconds: Optional[int] = Field(None, ge=0)
    continue_after_seconds: Optional[int] = Field(None, ge=0)
    abort_after_seconds: Optional[int] = Field(None, ge=0)
    exponential_backoff_retries: bool = False
    token: Optional[str] = None
    api_url: str = DEFAULT_API_URL

    @field_validator(*_OPTIONAL_TEXT, *_OPTIONAL_SECONDS, mode="before")
    @classmethod
    def _blank_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator(*_OPTIONAL_SECONDS, mode="before")
    @classmethod
    def _zero_seconds_is_absent(cls, v: Any) -> Any:
        # a 0 threshold switches the check off
        if isinstance(v, str) and v.strip().isdigit():
            v = int(v)
        if isinstance(v, int) and not isinstance(v, bool) and v == 0:
            return None
        return v

    @field_validator("repository")
    @classmethod
    def _owner_slash_repo(cls, v: str) -> str:
        owner, sep, repo = v.partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"expected 'owner/repo', got {v!r}")
        return v

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") or DEFAULT_API_URL

    @model_validator(mode="after")
    def _step_needs_job(self) -> GateInputs:
        if self.step_to_wait_for and not self.job_to_wait_for:
            raise ValueError("step-to-wait-for requires job-to-wait-for")
        return self

    def resolved_branch(self) -> Optional[str]:
        """
        Branch of the current run.

        Pull request events carry the source branch in GITHUB_HEAD_REF;
        push events only have GITHUB_REF (refs/heads/<branch>).
        """
        if self.branch:
            return self.branch
        if self.head_ref:
            return self.head_ref
        if self.ref:
            return self.ref.removeprefix("refs/heads/")
        return None

    def to_config(self) -> Config:
        owner, _, repo = self.repository.partition("/")
        return Config(
            owner=owner,
            repo=repo,
            run_id=self.run_id,
            workflow=self.workflow,
            branch=self.resolved_branch(),
            same_branch_only=self.same_branch_only,
            queue_name=self.queue_name,
            job_to_wait_for=self.job_to_wait_for,
            step_to_wait_for=self.step_to_wait_for,
            poll_interval_seconds=self.poll_interval_seconds,
            initial_wait_seconds=self.initial_wait_seconds,
            continue_after_seconds=self.continue_after_seconds,
            abort_after_seconds=self.abort_after_seconds,
            exponential_backoff_retries=self.exponential_backoff_retries,
            token=self.token,
            api_url=self.api_url,
        )


# -------------------- Loading --------------------

def _format_problem(err: Dict[str, Any]) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    env_name = ENV.get(loc)
    where = f"{loc} ({env_name})" if env_name else (loc or "inputs")
    return f"{where}: {err.get('msg', 'invalid value')}"


def load_config(**values: Any) -> Config:
    """
    Validate raw inputs and build the immutable Config.

    None values are dropped so field defaults apply.

    Raises:
        ConfigError: listing every validation problem
    """
    data = {k: v for k, v in values.items() if v is not None}
    try:
        inputs = GateInputs(**data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid turnstyle configuration",
            [_format_problem(err) for err in e.errors()],
        ) from e
    return inputs.to_config()


def load_config_from_env(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> Config:
    """
    Build Config from GitHub Actions environment variables.

    Blank variables count as unset. Explicit overrides win over the
    environment. The token falls back to GITHUB_TOKEN.
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for field_name, env_name in ENV.items():
        raw = env.get(env_name)
        if raw is not None and raw.strip():
            values[field_name] = raw
    if "token" not in values and (env.get("GITHUB_TOKEN") or "").strip():
        values["token"] = env["GITHUB_TOKEN"]
    values.update({k: v for k, v in overrides.items() if v is not None})
    return load_config(**values)
