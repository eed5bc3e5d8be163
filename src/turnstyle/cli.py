# cli.py
from __future__ import annotations

import os
import sys
from typing import Callable

import click

from turnstyle.config import Config, load_config_from_env
from turnstyle.errors import AbortedWaiting, APIError, ConfigError
from turnstyle.filters import previous_runs
from turnstyle.github.runs import GitHubRunSource, resolve_workflow_id
from turnstyle.ui.console import Console, get_console, set_console
from turnstyle.ui.outputs import ELAPSED_SECONDS, FORCE_CONTINUED, ActionOutputs
from turnstyle.waiter import Waiter


def gate_options(fn: Callable) -> Callable:
    """Attach the gate inputs. Options left unset fall back to the Actions environment."""
    options = [
        click.option("--repository", help="owner/repo (GITHUB_REPOSITORY)"),
        click.option("--run-id", type=int, help="Current run id (GITHUB_RUN_ID)"),
        click.option(
            "--workflow",
            help="Workflow name, numeric id or file name (GITHUB_WORKFLOW)",
        ),
        click.option("--ref", help="Git ref of the current run (GITHUB_REF)"),
        click.option("--head-ref", help="Pull request source branch (GITHUB_HEAD_REF)"),
        click.option("--branch", default=None, help="Branch override (defaults to head ref, then ref)"),
        click.option(
            "--same-branch-only",
            type=click.BOOL,
            help="Only wait for runs on the same branch [default: true]",
        ),
        click.option("--queue-name", help="Only wait for runs whose title or name contains this"),
        click.option("--job-to-wait-for", help="Only wait for this job of the previous run"),
        click.option("--step-to-wait-for", help="Only wait for this step of that job"),
        click.option(
            "--poll-interval-seconds",
            type=int,
            help="Seconds between polls [default: 60]",
        ),
        click.option(
            "--initial-wait-seconds",
            type=int,
            help="Keep looking this long for previous runs before proceeding",
        ),
        click.option(
            "--continue-after-seconds",
            type=int,
            help="Stop waiting and continue after this many seconds",
        ),
        click.option(
            "--abort-after-seconds",
            type=int,
            help="Stop waiting and fail after this many seconds",
        ),
        click.option(
            "--exponential-backoff-retries",
            type=click.BOOL,
            help="Grow the poll interval while waiting [default: false]",
        ),
        click.option("--token", help="API token (INPUT_TOKEN or GITHUB_TOKEN)"),
        click.option("--api-url", help="API base URL (GITHUB_API_URL)"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _load(console: Console, **values) -> Config:
    try:
        return load_config_from_env(**values)
    except ConfigError as e:
        console.print_error(
            e.message,
            "The gate inputs did not validate:",
            details=e.problems,
            suggestion="Check the action inputs or pass the options explicitly, e.g.\n"
                       "  turnstyle wait --repository owner/repo --run-id 123 --workflow deploy",
        )
        sys.exit(2)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """turnstyle — serialize workflow runs."""
    # Actions sets RUNNER_DEBUG=1 when a run is re-run with debug logging
    debug = debug or os.environ.get("RUNNER_DEBUG") == "1"
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@gate_options
@click.pass_context
def wait(ctx, **values):
    """Block until earlier runs of this workflow have finished."""
    console = get_console()
    config = _load(console, **values)
    outputs = ActionOutputs()

    try:
        source = GitHubRunSource.from_config(config)
        workflow_id = resolve_workflow_id(source, config)
        if workflow_id is None:
            console.print_warning(
                f"Unable to find workflow {config.workflow!r} in {config.owner}/{config.repo}. "
                f"Proceeding without waiting."
            )
            outputs.set(FORCE_CONTINUED, "")
            outputs.set(ELAPSED_SECONDS, 0)
            return

        waiter = Waiter(config, source, workflow_id, outputs=outputs)
        result = waiter.wait()
        console.print_info(f"Waited {result.elapsed} seconds ({result.action.value})")

    except AbortedWaiting as e:
        console.print_error(
            "Aborted waiting",
            str(e),
            suggestion="Raise abort-after-seconds or use continue-after-seconds to proceed instead.",
        )
        sys.exit(1)
    except APIError as e:
        console.print_error(
            "GitHub API request failed",
            str(e),
            details=[f"HTTP status: {e.status}"] if e.status else None,
            suggestion="Check that the token has actions:read permission for this repository.",
        )
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@gate_options
@click.pass_context
def runs(ctx, **values):
    """Show the previous runs this run would wait for, without waiting."""
    console = get_console()
    config = _load(console, **values)

    try:
        source = GitHubRunSource.from_config(config)
        workflow_id = resolve_workflow_id(source, config)
        if workflow_id is None:
            console.print_warning(f"Unable to find workflow {config.workflow!r} in {config.owner}/{config.repo}.")
            sys.exit(1)

        active = source.list_runs(config.owner, config.repo, workflow_id, config.branch_filter)
        waiting_on = previous_runs(active, config.run_id, config.queue_name)
    except APIError as e:
        console.print_error("GitHub API request failed", str(e))
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)

    console.print_header(f"Runs ahead of {config.run_id}")
    if not waiting_on:
        console.print_info("  (none)")
    for run in waiting_on:
        console.print_info(
            f"  {run.id}  {run.status:<12} {run.conclusion or '-':<10} "
            f"{run.head_branch or '-'}  {run.html_url}"
        )


if __name__ == "__main__":
    cli()
