from .config import Config, load_config, load_config_from_env
from .filters import previous_runs
from .model import Job, Run, Step
from .waiter import Action, Decision, WaitResult, WaitState, Waiter

__all__ = [
    "Config",
    "load_config",
    "load_config_from_env",
    "previous_runs",
    "Job",
    "Run",
    "Step",
    "Action",
    "Decision",
    "WaitResult",
    "WaitState",
    "Waiter",
]
