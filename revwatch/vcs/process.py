"""Subprocess plumbing shared by the command-line backends.

Backends never call :mod:`subprocess` directly; they go through a
``CommandRunner`` so tests can substitute scripted results and so every call
gets the same timeout and non-interactive environment.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import os
import subprocess
import typing as typ

from .errors import FetchError, FetchTimeoutError, ToolNotFoundError

if typ.TYPE_CHECKING:
    from pathlib import Path

# Credential prompts would block a worker thread forever.
_NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "true",
    "SSH_ASKPASS": "true",
    "LC_ALL": "C",
}


@dataclasses.dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of a finished command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Return True when the command exited with status zero."""
        return self.returncode == 0


class CommandRunner(typ.Protocol):
    """Callable that runs a command and captures its output."""

    def __call__(
        self,
        args: cabc.Sequence[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


def run_command(
    args: cabc.Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``args`` without a shell and capture text output.

    Raises
    ------
    ToolNotFoundError
        If the executable is not installed or cannot be started.
    FetchError
        If the argument vector is rejected before starting (NUL bytes).
    FetchTimeoutError
        If the command runs longer than ``timeout`` seconds.

    """
    argv = tuple(args)
    env = {**os.environ, **_NON_INTERACTIVE_ENV}
    try:
        completed = subprocess.run(  # noqa: S603 - argv is built by the backends
            argv,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError.missing(argv[0]) from exc
    except subprocess.TimeoutExpired as exc:
        raise FetchTimeoutError.after(" ".join(argv[:2]), timeout or 0.0) from exc
    except OSError as exc:
        raise ToolNotFoundError.unusable(argv[0], exc) from exc
    except ValueError as exc:
        # Raised for argument vectors containing NUL bytes.
        msg = f"cannot run {argv[0]}: {exc}"
        raise FetchError(msg) from exc
    return CommandResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
