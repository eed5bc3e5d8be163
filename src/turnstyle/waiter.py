# waiter.py
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Optional, TypeVar, Union

from .config import Config
from .errors import AbortedWaiting
from .filters import previous_runs, runs_before
from .github.runs import RunSource
from .model import Job, Run, Step
from .ui.console import get_console
from .ui.outputs import ELAPSED_SECONDS, FORCE_CONTINUED, ActionOutputs

# ---------------------------------------------------------------------
# One gate invocation is a sequence of ticks. Each tick looks at the
# active runs of the workflow and either ends the wait (continue-after /
# abort-after thresholds, nothing left to wait for, target job or step
# already completed) or sleeps and looks again.
#
# The tick itself (Waiter.decide) never sleeps; Waiter.wait is the loop
# that sleeps between ticks and threads WaitState through them.
# ---------------------------------------------------------------------


class Action(Enum):
    CONTINUED = "continued"
    ABORTED = "aborted"
    PROCEEDED = "proceeded"
    INITIAL_DELAY = "initial_delay"
    WAITING_RUN = "waiting_run"
    WAITING_JOB = "waiting_job"
    WAITING_STEP = "waiting_step"

    @property
    def terminal(self) -> bool:
        return self in (Action.CONTINUED, Action.ABORTED, Action.PROCEEDED)

    @property
    def waiting(self) -> bool:
        return self in (Action.WAITING_RUN, Action.WAITING_JOB, Action.WAITING_STEP)


@dataclass(frozen=True)
class WaitState:
    """Progress of one wait: seconds slept so far and the backoff attempt."""
    elapsed: int = 0
    attempt: int = 0

    @classmethod
    def start(cls) -> WaitState:
        return cls(elapsed=0, attempt=0)


@dataclass(frozen=True)
class Decision:
    """
    Outcome of one tick.

    For terminal actions `state` is the state the decision was made in.
    Otherwise it is the state to resume from after sleeping `interval`
    seconds.
    """
    action: Action
    state: WaitState
    interval: int = 0
    run: Optional[Run] = None
    job: Optional[Job] = None
    step: Optional[Step] = None


@dataclass(frozen=True)
class WaitResult:
    action: Action
    elapsed: int
    force_continued: bool


T = TypeVar("T", Job, Step)


def _find_by_name(items: Iterable[T], name: str) -> Optional[T]:
    return next((item for item in items if item.name == name), None)


class Waiter:
    """Blocks until earlier runs of the same workflow are out of the way."""
    
    def __init__(
        self,
        config: Config,
        source: RunSource,
        workflow_id: Union[int, str],
        *,
        sleep: Optional[Callable[[float], None]] = None,
        outputs: Optional[ActionOutputs] = None,
    ):
        """
        Args:
            config: Gate configuration
            source: Where runs, jobs and steps are read from
            workflow_id: Workflow whose runs are serialized
            sleep: Called with the number of seconds to pause between ticks
                   (defaults to time.sleep)
            outputs: Step outputs sink (defaults to $GITHUB_OUTPUT)
        """
        self.config = config
        self.source = source
        self.workflow_id = workflow_id
        self._sleep = sleep or time.sleep
        self.outputs = outputs if outputs is not None else ActionOutputs()
    
    def next_interval(self, attempt: int) -> int:
        """Poll interval after `attempt` waiting ticks."""
        base = self.config.poll_interval_seconds
        if not self.config.exponential_backoff_retries:
            return base
        return base * max(1, 2 * attempt)
    
    def _keep_waiting(
        self,
        action: Action,
        state: WaitState,
        run: Run,
        job: Optional[Job] = None,
        step: Optional[Step] = None,
    ) -> Decision:
        interval = self.next_interval(state.attempt)
        if self.config.exponential_backoff_retries:
            get_console().print_backoff(state.attempt + 1, interval)
        return Decision(
            action=action,
            state=WaitState(elapsed=state.elapsed + interval, attempt=state.attempt + 1),
            interval=interval,
            run=run,
            job=job,
            step=step,
        )
    
    def decide(self, state: WaitState) -> Decision:
        """Run a single tick of the wait."""
        config = self.config
        console = get_console()
        elapsed = state.elapsed

        if config.continue_after_seconds is not None and elapsed >= config.continue_after_seconds:
            console.print_info("Exceeded wait seconds. Continuing...")
            return Decision(Action.CONTINUED, state)

        if config.abort_after_seconds is not None and elapsed >= config.abort_after_seconds:
            console.print_info("Exceeded wait seconds. Aborting...")
            return Decision(Action.ABORTED, state)

        runs = self.source.list_runs(config.owner, config.repo, self.workflow_id, config.branch_filter)
        console.print_runs_fetched(self.workflow_id, len(runs))
        for run in runs:
            console.print_run_comparison(run, config.run_id)

        previous = previous_runs(runs, config.run_id, config.queue_name)

        if not previous:
            if config.initial_wait_seconds is not None and elapsed < config.initial_wait_seconds:
                console.print_info(
                    f"No previous runs found, waiting {config.initial_wait_seconds} seconds "
                    f"before checking for runs again..."
                )
                return Decision(
                    Action.INITIAL_DELAY,
                    replace(state, elapsed=elapsed + config.initial_wait_seconds),
                    interval=config.initial_wait_seconds,
                )
            console.print_decision(
                f"Allowing run {config.run_id} to proceed (found {len(runs)} total runs, "
                f"{len(runs_before(runs, config.run_id))} before current, 0 need waiting)"
            )
            return Decision(Action.PROCEEDED, state)

        console.print_info(f"Found {len(previous)} previous runs")
        run = previous[0]

        if config.job_to_wait_for:
            jobs = self.source.list_jobs(config.owner, config.repo, run.id)
            job = _find_by_name(jobs, config.job_to_wait_for)

            if job is not None and config.step_to_wait_for:
                steps = self.source.list_steps(config.owner, config.repo, job.id)
                step = _find_by_name(steps, config.step_to_wait_for)
                if step is not None and not step.completed:
                    console.print_waiting(f"step {step.name!r} completion from job", job.html_url)
                    return self._keep_waiting(Action.WAITING_STEP, state, run, job, step)
                if step is not None:
                    console.print_decision(f"Step {step.name!r} completed from run {run.html_url}")
                    return Decision(Action.PROCEEDED, state, run=run, job=job, step=step)
                console.print_info(
                    f"Step {config.step_to_wait_for!r} not found in job {job.id}, "
                    f"awaiting the whole job for safety"
                )

            if job is not None and not job.completed:
                console.print_waiting("job run completion from job", job.html_url)
                return self._keep_waiting(Action.WAITING_JOB, state, run, job)
            if job is not None:
                console.print_decision(f"Job {job.name!r} completed from run {run.html_url}")
                return Decision(Action.PROCEEDED, state, run=run, job=job)
            console.print_info(
                f"Job {config.job_to_wait_for!r} not found in run {run.id}, "
                f"awaiting full run for safety"
            )

        # Listed as active and not successful: wait, whatever its status says now.
        console.print_waiting("run", run.html_url or str(run.id))
        return self._keep_waiting(Action.WAITING_RUN, state, run)
    
    def _finish(self, decision: Decision) -> WaitResult:
        elapsed = decision.state.elapsed
        force_continued = decision.action is Action.CONTINUED
        self.outputs.set(FORCE_CONTINUED, "1" if force_continued else "")
        self.outputs.set(ELAPSED_SECONDS, elapsed)
        if decision.action is Action.ABORTED:
            raise AbortedWaiting(elapsed)
        return WaitResult(action=decision.action, elapsed=elapsed, force_continued=force_continued)
    
    def wait(self, state: Optional[WaitState] = None) -> WaitResult:
        """
        Poll until the gate opens.

        Returns:
            WaitResult with the total seconds waited

        Raises:
            AbortedWaiting: abort-after threshold reached
        """
        state = state or WaitState.start()
        if state.elapsed == 0:
            get_console().print_gate_started(
                run_id=self.config.run_id,
                workflow=str(self.workflow_id),
                branch=self.config.branch_filter,
            )

        while True:
            decision = self.decide(state)
            if decision.action.terminal:
                return self._finish(decision)
            self._sleep(decision.interval)
            state = decision.state
