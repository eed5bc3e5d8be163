# model.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

# Run / job / step status values reported by the platform
IN_PROGRESS = "in_progress"
QUEUED = "queued"
WAITING = "waiting"
COMPLETED = "completed"

# Statuses queried when building the list of runs that may still be active
ACTIVE_STATUSES = (IN_PROGRESS, QUEUED, WAITING)

SUCCESS = "success"


@dataclass(frozen=True)
class Run:
    """One execution of a workflow (a "workflow run")."""
    id: int
    status: str
    conclusion: Optional[str] = None
    head_branch: Optional[str] = None
    display_title: Optional[str] = None
    name: Optional[str] = None
    html_url: str = ""
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Run:
        """Create Run from a workflow run API payload."""
        return cls(
            id=int(data["id"]),
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
            head_branch=data.get("head_branch"),
            display_title=data.get("display_title"),
            name=data.get("name"),
            html_url=data.get("html_url") or "",
            created_at=data.get("created_at"),
        )

    @property
    def succeeded(self) -> bool:
        return self.conclusion == SUCCESS


@dataclass(frozen=True)
class Job:
    """A named unit of work inside a run."""
    id: int
    name: str
    status: str
    conclusion: Optional[str] = None
    run_id: Optional[int] = None
    html_url: str = ""
    started_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Job:
        """Create Job from a workflow job API payload."""
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
            run_id=data.get("run_id"),
            html_url=data.get("html_url") or "",
            started_at=data.get("started_at"),
        )

    @property
    def completed(self) -> bool:
        return self.status == COMPLETED


@dataclass(frozen=True)
class Step:
    """An ordered sub-unit of a job. Steps carry no id of their own."""
    name: str
    status: str
    conclusion: Optional[str] = None
    number: Optional[int] = None
    started_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Step:
        return cls(
            name=data.get("name") or "",
            status=data.get("status") or "",
            conclusion=data.get("conclusion"),
            number=data.get("number"),
            started_at=data.get("started_at"),
        )

    @property
    def completed(self) -> bool:
        return self.status == COMPLETED


@dataclass(frozen=True)
class Workflow:
    """A workflow definition in a repository."""
    id: int
    name: str
    path: str = ""
    state: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Workflow:
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            path=data.get("path") or "",
            state=data.get("state") or "",
        )
