"""Configuration for update scans.

Usage
-----
Create a configuration with defaults:

>>> config = ScanConfig()
>>> config.workers
8

Or load from environment variables:

>>> import os
>>> os.environ["REVWATCH_SCAN_WORKERS"] = "4"
>>> ScanConfig.from_env().workers
4

"""

from __future__ import annotations

import dataclasses as dc
import os
from pathlib import Path

DEFAULT_WORKERS = 8
DEFAULT_FETCH_TIMEOUT = 300.0

_DISABLED_TIMEOUT_SPELLINGS = frozenset({"none", "off"})


@dc.dataclass(frozen=True, slots=True)
class ScanConfig:
    """Configuration for the scan coordinator and its backends.

    Attributes
    ----------
    workers
        Number of worker threads a scan runs. Fixed for the duration of a
        scan. Default is 8.
    fetch_timeout
        Seconds each clone or remote query may take before it is abandoned
        and the target reported as failed. ``None`` disables the limit.
        Default is 300 seconds.
    work_dir
        Parent directory for temporary git clones. ``None`` uses the system
        temporary directory.
    git_executable
        Name or path of the git client.
    svn_executable
        Name or path of the Subversion client.

    """

    workers: int = DEFAULT_WORKERS
    fetch_timeout: float | None = DEFAULT_FETCH_TIMEOUT
    work_dir: Path | None = None
    git_executable: str = "git"
    svn_executable: str = "svn"

    def __post_init__(self) -> None:
        """Reject worker counts and timeouts that cannot run a scan."""
        if self.workers < 1:
            msg = f"workers must be positive, got: {self.workers}"
            raise ValueError(msg)
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            msg = f"fetch_timeout must be positive, got: {self.fetch_timeout}"
            raise ValueError(msg)

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_timeout(env_var: str, default: float | None) -> float | None:
        """Read a timeout in seconds; empty or ``none`` disables the limit."""
        raw = os.environ.get(env_var)
        if raw is None:
            return default
        text = raw.strip()
        if not text or text.lower() in _DISABLED_TIMEOUT_SPELLINGS:
            return None
        try:
            value = float(text)
        except ValueError as exc:
            msg = f"{env_var} must be a number of seconds, got: {raw!r}"
            raise ValueError(msg) from exc
        if value <= 0:
            msg = f"{env_var} must be positive, got: {value:g}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> ScanConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``REVWATCH_SCAN_WORKERS``: worker thread count; positive integer.
        - ``REVWATCH_FETCH_TIMEOUT``: seconds per fetch; empty or ``none``
          disables the limit.
        - ``REVWATCH_WORK_DIR``: parent directory for temporary clones.
        - ``REVWATCH_GIT_EXECUTABLE`` / ``REVWATCH_SVN_EXECUTABLE``: client
          executables.

        Raises
        ------
        ValueError
            If a numeric variable does not hold a positive number.

        """
        work_dir: Path | None = None
        raw_work_dir = os.environ.get("REVWATCH_WORK_DIR", "")
        if raw_work_dir.strip():
            work_dir = Path(raw_work_dir.strip())

        return cls(
            workers=cls._parse_positive_int("REVWATCH_SCAN_WORKERS", DEFAULT_WORKERS),
            fetch_timeout=cls._parse_timeout(
                "REVWATCH_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT
            ),
            work_dir=work_dir,
            git_executable=os.environ.get("REVWATCH_GIT_EXECUTABLE", "").strip()
            or "git",
            svn_executable=os.environ.get("REVWATCH_SVN_EXECUTABLE", "").strip()
            or "svn",
        )
