"""Git backend: shallow, checkout-less clones inspected with the git CLI.

Every fetch clones into a fresh temporary directory, resolves the
descriptor to a commit, reads the commit's metadata and removes the clone.
The clone directory is removed on every exit path; scans run repeatedly
against dozens of repositories and leaked clones add up quickly.

Resolution rules
----------------
- branch without a value: ``HEAD`` of the default branch
- branch with a value: ``refs/remotes/origin/<value>`` (cloned with
  ``--branch`` so only that branch is transferred)
- tag: ``refs/tags/<value>``, fetched explicitly after the clone because
  shallow clones do not carry tags
- commit: the object named by the value, fetched by hash when the shallow
  clone does not already contain it
- revision number: not a git concept; rejected before anything touches disk

"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
import typing as typ
from pathlib import Path

from revwatch.common.time import from_epoch_seconds
from revwatch.logging import get_logger, log_debug, log_error
from revwatch.revisions import RevisionDescriptor, RevisionKind

from .errors import (
    FetchError,
    NetworkFailureError,
    ResolutionFailureError,
    UnsupportedDescriptorKindError,
)
from .models import HASH_RECORD_LENGTH, CommitInfo, VcsKind
from .process import CommandResult, CommandRunner, run_command

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

_LOG_FORMAT = "--format=%H%x00%ct%x00%s"
_MISSING_BRANCH_MARKERS = ("not found in upstream", "could not find remote branch")
_MISSING_REF_MARKERS = ("couldn't find remote ref", "not our ref", "unadvertised")


def _mentions(stderr: str, markers: cabc.Iterable[str]) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in markers)


def _retry_writable(
    func: cabc.Callable[[str], object], target: str, _exc: BaseException
) -> None:
    # Pack files are read-only on some platforms.
    os.chmod(target, stat.S_IWRITE)  # noqa: PTH101
    func(target)


def remove_clone(path: Path) -> None:
    """Remove a temporary clone directory, logging (not raising) on failure."""
    try:
        shutil.rmtree(path, onexc=_retry_writable)
    except FileNotFoundError:
        return
    except OSError as exc:
        log_error(logger, "Failed to remove temporary clone %s: %s", path, exc)


class GitBackend:
    """Fetch commit metadata from git repositories via shallow clones."""

    kind = VcsKind.GIT

    def __init__(
        self,
        *,
        runner: CommandRunner = run_command,
        executable: str = "git",
        work_dir: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        """Configure the git executable, clone parent directory and timeout."""
        self._run = runner
        self._executable = executable
        self._work_dir = work_dir
        self._timeout = timeout

    def fetch_latest(self, descriptor: RevisionDescriptor, location: str) -> CommitInfo:
        """Clone ``location`` and return metadata for the resolved commit."""
        if descriptor.kind is RevisionKind.REVISION_NUMBER:
            raise UnsupportedDescriptorKindError(
                "git", descriptor.kind, location=location
            )

        clone_dir = self._make_clone_dir()
        try:
            self._clone(descriptor, location, clone_dir)
            sha = self._resolve(descriptor, location, clone_dir)
            return self._read_commit(sha, location, clone_dir)
        finally:
            remove_clone(clone_dir)

    def _make_clone_dir(self) -> Path:
        try:
            if self._work_dir is not None:
                self._work_dir.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix="revwatch-git-", dir=self._work_dir))
        except OSError as exc:
            msg = f"cannot create temporary clone directory: {exc}"
            raise FetchError(msg) from exc

    def _git(self, clone_dir: Path, *args: str) -> CommandResult:
        return self._run(
            [self._executable, "-C", str(clone_dir), *args], timeout=self._timeout
        )

    def _clone(
        self, descriptor: RevisionDescriptor, location: str, clone_dir: Path
    ) -> None:
        args = [
            self._executable,
            "clone",
            "--quiet",
            "--no-checkout",
            "--depth",
            "1",
            "--no-tags",
        ]
        if descriptor.kind is RevisionKind.BRANCH and descriptor.value is not None:
            args.extend(["--branch", descriptor.value])
        args.extend(["--", location, str(clone_dir)])

        log_debug(logger, "Cloning %s (%s)", location, descriptor.describe())
        result = self._run(args, timeout=self._timeout)
        if result.ok:
            return
        if descriptor.kind is RevisionKind.BRANCH and _mentions(
            result.stderr, _MISSING_BRANCH_MARKERS
        ):
            raise ResolutionFailureError.unresolved(
                f"branch {descriptor.value}", location, result.stderr
            )
        raise NetworkFailureError.command_failed(
            "git clone", location, result.returncode, result.stderr
        )

    def _resolve(
        self, descriptor: RevisionDescriptor, location: str, clone_dir: Path
    ) -> str:
        match descriptor.kind:
            case RevisionKind.BRANCH if descriptor.value is None:
                return self._rev_parse("HEAD", location, clone_dir)
            case RevisionKind.BRANCH:
                return self._rev_parse(
                    f"refs/remotes/origin/{descriptor.value}", location, clone_dir
                )
            case RevisionKind.TAG:
                self._fetch_tag(typ.cast("str", descriptor.value), location, clone_dir)
                return self._rev_parse(
                    f"refs/tags/{descriptor.value}", location, clone_dir
                )
            case RevisionKind.COMMIT:
                return self._resolve_commit(
                    typ.cast("str", descriptor.value), location, clone_dir
                )
            case _:  # pragma: no cover - rejected in fetch_latest
                raise UnsupportedDescriptorKindError(
                    "git", descriptor.kind, location=location
                )

    def _rev_parse(self, reference: str, location: str, clone_dir: Path) -> str:
        result = self._git(
            clone_dir, "rev-parse", "--verify", "--quiet", f"{reference}^{{commit}}"
        )
        sha = result.stdout.strip()
        if not result.ok or not sha:
            raise ResolutionFailureError.unresolved(reference, location, result.stderr)
        return sha

    def _fetch_tag(self, tag: str, location: str, clone_dir: Path) -> None:
        refspec = f"+refs/tags/{tag}:refs/tags/{tag}"
        result = self._git(
            clone_dir,
            "fetch",
            "--quiet",
            "--depth",
            "1",
            "--no-tags",
            "origin",
            refspec,
        )
        if result.ok:
            return
        if _mentions(result.stderr, _MISSING_REF_MARKERS):
            raise ResolutionFailureError.unresolved(
                f"tag {tag}", location, result.stderr
            )
        raise NetworkFailureError.command_failed(
            "git fetch", location, result.returncode, result.stderr
        )

    def _resolve_commit(self, sha: str, location: str, clone_dir: Path) -> str:
        try:
            return self._rev_parse(sha, location, clone_dir)
        except ResolutionFailureError:
            log_debug(logger, "Commit %s not in shallow clone of %s", sha, location)

        result = self._git(
            clone_dir, "fetch", "--quiet", "--depth", "1", "--no-tags", "origin", sha
        )
        if not result.ok:
            raise ResolutionFailureError.unresolved(
                f"commit {sha}", location, result.stderr
            )
        return self._rev_parse(sha, location, clone_dir)

    def _read_commit(self, sha: str, location: str, clone_dir: Path) -> CommitInfo:
        result = self._git(clone_dir, "log", "-1", "--no-color", _LOG_FORMAT, sha, "--")
        if not result.ok:
            raise ResolutionFailureError.unresolved(
                f"commit {sha}", location, result.stderr
            )
        fields = result.stdout.rstrip("\n").split("\x00", 2)
        if len(fields) != 3:  # noqa: PLR2004 - hash, time, subject
            msg = f"unexpected git log output for {sha}: {result.stdout!r}"
            raise FetchError(msg, location=location)
        full_hash, epoch, subject = fields
        try:
            timestamp = from_epoch_seconds(epoch)
        except ValueError as exc:
            msg = f"unexpected commit time for {sha}: {epoch!r}"
            raise FetchError(msg, location=location) from exc
        return CommitInfo(
            timestamp=timestamp,
            summary=subject,
            identifier=full_hash[:HASH_RECORD_LENGTH],
        )
