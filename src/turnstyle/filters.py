# filters.py
from __future__ import annotations

from typing import Iterable, List, Optional

from .model import Run
from .ui.console import get_console


def matches_queue(run: Run, queue_name: str) -> bool:
    """Case-sensitive, unanchored substring match on display title or name."""
    return queue_name in (run.display_title or "") or queue_name in (run.name or "")


def runs_before(runs: Iterable[Run], run_id: int) -> List[Run]:
    """
    Runs that started before `run_id`.

    Ids are assigned by the platform in increasing order, so they are used
    instead of created_at, which can be out of order in listings.
    """
    return [r for r in runs if r.id < run_id]


def previous_runs(
    runs: Iterable[Run],
    current_run_id: int,
    queue_name: Optional[str] = None,
) -> List[Run]:
    """
    Previous runs the current run has to wait for, newest first.

    Pipeline:
      1. queue filter (only when queue_name is set)
      2. id strictly below the current run id
      3. conclusion != "success"
      4. sort by id, descending
    """
    console = get_console()
    candidates = list(runs)

    if queue_name:
        console.print_info(f"Filtering runs for queue name: {queue_name}")
        queued = []
        for run in candidates:
            matched = matches_queue(run, queue_name)
            console.print_queue_match(run, queue_name, matched)
            if matched:
                queued.append(run)
        console.print_info(f"After queue filtering: {len(queued)} runs match queue {queue_name!r}")
        candidates = queued

    before = runs_before(candidates, current_run_id)
    console.print_debug(f"Runs before current (ID < {current_run_id}): {len(before)}")

    waiting_on: List[Run] = []
    for run in before:
        keep = not run.succeeded
        console.print_run_verdict(run, waiting=keep)
        if keep:
            waiting_on.append(run)

    waiting_on.sort(key=lambda r: r.id, reverse=True)
    console.print_debug(f"Final previous runs to wait for: {len(waiting_on)}")
    return waiting_on
