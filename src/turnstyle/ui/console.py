"""Console output formatting utilities for turnstyle."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from typing import Optional

from turnstyle.model import Run


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Console:
    """Centralized console output formatting."""
    
    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.
        
        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
    
    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))
    
    def print_gate_started(
        self,
        run_id: int,
        workflow: str,
        branch: Optional[str],
    ) -> None:
        """Print gate start information."""
        print(f"\nTURNSTYLE STARTED [{_timestamp()}]")
        print(f"Run ID: {run_id}")
        print(f"Workflow: {workflow}")
        print(f"Branch filter: {branch or 'all branches'}")
        print()
    
    def print_runs_fetched(self, workflow_id: int | str, count: int) -> None:
        """Print the size of the run listing for one tick."""
        print(f"[{_timestamp()}] Found {count} active runs for workflow {workflow_id}")
    
    def print_run_comparison(self, run: Run, current_run_id: int) -> None:
        """Print where a listed run sits relative to the current run (debug only)."""
        if run.id < current_run_id:
            where = "BEFORE current"
        elif run.id > current_run_id:
            where = "AFTER current"
        else:
            where = "IS current"
        self.print_debug(
            f"{where:<14} | ID={run.id}, status={run.status!r}, "
            f"conclusion={run.conclusion!r}, created_at={run.created_at!r}"
        )
    
    def print_queue_match(self, run: Run, queue_name: str, matched: bool) -> None:
        """Print the queue filter verdict for one run (debug only)."""
        if matched:
            self.print_debug(f"Run {run.id} matches queue name: {queue_name}")
        else:
            self.print_debug(
                f"Run {run.id} does NOT match queue name: {queue_name} "
                f"(display_title: {run.display_title!r}, name: {run.name!r})"
            )
    
    def print_run_verdict(self, run: Run, waiting: bool) -> None:
        """Print whether a previous run will be waited on (debug only)."""
        verb = "Will wait for" if waiting else "Skipping successful"
        self.print_debug(
            f"{verb} run {run.id}, status: {run.status}, conclusion: {run.conclusion}"
        )
    
    def print_waiting(self, what: str, url: str) -> None:
        """Print that the gate is blocked on a run, job or step."""
        print(f"[{_timestamp()}] Awaiting {what} {url} ...")
    
    def print_backoff(self, attempt: int, interval: int) -> None:
        """Print exponential backoff progress."""
        print(f"Attempt {attempt}, next will be in {interval} seconds")
    
    def print_decision(self, message: str) -> None:
        """Print the outcome of a tick."""
        print(f"[{_timestamp()}] DECISION: {message}")
    
    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.
        
        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)
    
    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)
    
    def print_warning(self, message: str) -> None:
        """Print a warning."""
        print(f"WARNING: {message}", file=sys.stderr)
    
    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)
    
    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
