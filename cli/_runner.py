"""
Shared CLI runner helper.

Wrappers in this package run tools as subprocesses of the current
interpreter and propagate their exit code.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence

SOURCE_DIRS = ("schema_engine", "cli", "tests")


def run(cmd: Sequence[str]) -> None:
    """
    Run a command and exit with its return code.

    Example:
        >>> run([sys.executable, "-m", "pytest", "-q"])
    """
    result = subprocess.run(cmd)
    raise SystemExit(result.returncode)
