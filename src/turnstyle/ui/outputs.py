# ui/outputs.py
from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Dict, Optional

from .console import get_console

FORCE_CONTINUED = "force_continued"
ELAPSED_SECONDS = "elapsed_seconds"


class ActionOutputs:
    """
    Step outputs for the surrounding GitHub Actions job.

    Values are appended to the file named by GITHUB_OUTPUT (one
    ``name=value`` line each, heredoc form for multi-line values). The
    latest value of every output is also kept in ``values`` so callers and
    tests can read them back without an Actions runner.
    """
    
    def __init__(self, path: Optional[str | Path] = None):
        """
        Args:
            path: Output file. Defaults to $GITHUB_OUTPUT; None disables file writes.
        """
        if path is None:
            path = os.environ.get("GITHUB_OUTPUT") or None
        self.path = Path(path) if path else None
        self.values: Dict[str, str] = {}
    
    def set(self, name: str, value: object) -> None:
        text = "" if value is None else str(value)
        self.values[name] = text
        get_console().print_debug(f"output {name}={text!r}")

        if self.path is None:
            return

        if "\n" in text:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            line = f"{name}<<{delimiter}\n{text}\n{delimiter}\n"
        else:
            line = f"{name}={text}\n"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line)
    
    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)

    @property
    def force_continued(self) -> bool:
        return bool(self.values.get(FORCE_CONTINUED))
