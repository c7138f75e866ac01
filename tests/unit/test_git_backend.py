"""Unit tests for the git backend with scripted runners and cmd-mox shims.

Run with:
    pytest tests/unit/test_git_backend.py
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from revwatch.revisions import RevisionDescriptor
from revwatch.vcs import (
    CommandResult,
    FetchError,
    FetchTimeoutError,
    GitBackend,
    NetworkFailureError,
    ResolutionFailureError,
    UnsupportedDescriptorKindError,
)
from tests.helpers.fakes import ScriptedRunner, has

if typ.TYPE_CHECKING:
    from pathlib import Path

    from cmd_mox import CmdMox

FULL_SHA = "3f9a2c17b0d94e6a8c5b1e2f7d6a9b0c4e8f1a2b"
JUNE_FIRST = int(dt.datetime(2024, 6, 1, tzinfo=dt.UTC).timestamp())
REPO = "https://example.test/engine.git"


def _log_output(subject: str = "Add widget support") -> str:
    return f"{FULL_SHA}\x00{JUNE_FIRST}\x00{subject}\n"


def _happy_runner() -> ScriptedRunner:
    return (
        ScriptedRunner()
        .on(has("rev-parse"), stdout=f"{FULL_SHA}\n")
        .on(has("log"), stdout=_log_output())
    )


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Parent directory for temporary clones."""
    return tmp_path / "clones"


def _leftovers(work_dir: Path) -> list[Path]:
    return list(work_dir.iterdir()) if work_dir.exists() else []


class TestGitBackendResolution:
    """Tests for descriptor resolution."""

    def test_default_branch_resolves_head(self, work_dir: Path) -> None:
        """A branch descriptor without a value resolves HEAD."""
        runner = _happy_runner()
        backend = GitBackend(runner=runner, work_dir=work_dir, timeout=30)

        commit = backend.fetch_latest(
            RevisionDescriptor.branch("src"), "https://example.test/engine.git"
        )

        assert commit.timestamp == dt.datetime(2024, 6, 1, tzinfo=dt.UTC)
        assert commit.summary == "Add widget support"
        assert commit.identifier == FULL_SHA[:7]
        clone = runner.commands("clone")[0]
        assert "--depth" in clone
        assert "--no-checkout" in clone
        assert "--branch" not in clone
        assert runner.commands("rev-parse")[0][-1] == "HEAD^{commit}"
        assert set(runner.timeouts) == {30}

    def test_named_branch_clones_that_branch(self, work_dir: Path) -> None:
        """Named branches are cloned with --branch and resolved remotely."""
        runner = _happy_runner()
        backend = GitBackend(runner=runner, work_dir=work_dir)

        backend.fetch_latest(
            RevisionDescriptor.branch("src", "release-2"),
            "https://example.test/engine.git",
        )

        clone = runner.commands("clone")[0]
        assert clone[clone.index("--branch") + 1] == "release-2"
        assert runner.commands("rev-parse")[0][-1] == (
            "refs/remotes/origin/release-2^{commit}"
        )

    def test_tag_is_fetched_then_resolved(self, work_dir: Path) -> None:
        """Tags are fetched explicitly because shallow clones omit them."""
        runner = _happy_runner()
        backend = GitBackend(runner=runner, work_dir=work_dir)

        backend.fetch_latest(
            RevisionDescriptor.tag("src", "v2.0"), "https://example.test/engine.git"
        )

        fetch = runner.commands("fetch")[0]
        assert fetch[-1] == "+refs/tags/v2.0:refs/tags/v2.0"
        assert runner.commands("rev-parse")[0][-1] == "refs/tags/v2.0^{commit}"

    def test_commit_missing_from_shallow_clone_is_fetched(self, work_dir: Path) -> None:
        """A commit outside the shallow history is fetched by hash."""
        attempts: list[int] = []

        def first_rev_parse_fails(argv: tuple[str, ...]) -> bool:
            if "rev-parse" not in argv:
                return False
            attempts.append(1)
            return len(attempts) == 1

        runner = (
            ScriptedRunner()
            .on(first_rev_parse_fails, returncode=1)
            .on(has("rev-parse"), stdout=f"{FULL_SHA}\n")
            .on(has("log"), stdout=_log_output())
        )
        backend = GitBackend(runner=runner, work_dir=work_dir)

        commit = backend.fetch_latest(
            RevisionDescriptor.commit("src", FULL_SHA[:12]),
            "https://example.test/engine.git",
        )

        assert commit.identifier == FULL_SHA[:7]
        assert runner.commands("fetch")[0][-1] == FULL_SHA[:12]
        assert len(runner.commands("rev-parse")) == 2

    def test_revision_numbers_rejected_before_cloning(self, work_dir: Path) -> None:
        """Revision numbers are not a git concept; nothing is cloned."""
        runner = _happy_runner()
        backend = GitBackend(runner=runner, work_dir=work_dir)

        with pytest.raises(UnsupportedDescriptorKindError) as excinfo:
            backend.fetch_latest(
                RevisionDescriptor.revision_number("src", 12),
                "https://example.test/engine.git",
            )

        assert excinfo.value.backend == "git"
        assert runner.calls == []
        assert not work_dir.exists()

    def test_malformed_log_output_raises_fetch_error(self, work_dir: Path) -> None:
        """Unexpected git log output is reported, not misparsed."""
        runner = (
            ScriptedRunner()
            .on(has("rev-parse"), stdout=f"{FULL_SHA}\n")
            .on(has("log"), stdout="garbage\n")
        )
        backend = GitBackend(runner=runner, work_dir=work_dir)

        with pytest.raises(FetchError, match="unexpected git log output"):
            backend.fetch_latest(RevisionDescriptor.branch("src"), "repo")
        assert _leftovers(work_dir) == []


@pytest.fixture
def pinned_clone(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Make every fetch clone into one known directory so argv is predictable."""
    clone_dir = tmp_path / "clone"

    def make_clone_dir(_backend: GitBackend) -> Path:
        clone_dir.mkdir()
        return clone_dir

    monkeypatch.setattr(GitBackend, "_make_clone_dir", make_clone_dir)
    return clone_dir


def _clone_args(clone_dir: Path, *extra: str) -> tuple[str, ...]:
    return (
        "clone",
        "--quiet",
        "--no-checkout",
        "--depth",
        "1",
        "--no-tags",
        *extra,
        "--",
        REPO,
        str(clone_dir),
    )


class TestGitBackendFailures:
    """Tests for failure classification through the real command runner.

    Uses cmd-mox shims for git, so the argv the backend builds is what
    ``run_command`` executes.
    """

    def test_missing_branch_raises_resolution_failure(
        self, cmd_mox: CmdMox, pinned_clone: Path
    ) -> None:
        """A branch absent upstream fails resolution, not the network."""
        cmd_mox.mock("git").with_args(
            *_clone_args(pinned_clone, "--branch", "nope")
        ).returns(
            exit_code=128,
            stderr="warning: Could not find remote branch nope to clone.\n"
            "fatal: Remote branch nope not found in upstream origin\n",
        )

        with pytest.raises(ResolutionFailureError) as excinfo:
            GitBackend().fetch_latest(RevisionDescriptor.branch("src", "nope"), REPO)

        assert "not found in upstream" in excinfo.value.stderr
        assert not pinned_clone.exists()

    def test_unreachable_repository_raises_network_failure(
        self, cmd_mox: CmdMox, pinned_clone: Path
    ) -> None:
        """Clone failures carry the client's last stderr line."""
        cmd_mox.mock("git").with_args(*_clone_args(pinned_clone)).returns(
            exit_code=128,
            stderr=f"Cloning into '{pinned_clone}'...\n"
            "fatal: unable to access 'https://example.test/': Could not resolve host\n",
        )

        with pytest.raises(NetworkFailureError, match="resolve host") as excinfo:
            GitBackend().fetch_latest(RevisionDescriptor.branch("src"), REPO)

        assert excinfo.value.location == REPO
        assert not pinned_clone.exists()

    def test_silent_clone_failure_reports_exit_status(
        self, cmd_mox: CmdMox, pinned_clone: Path
    ) -> None:
        """Without stderr the exit status identifies the failure."""
        cmd_mox.mock("git").with_args(*_clone_args(pinned_clone)).returns(
            exit_code=128
        )

        with pytest.raises(NetworkFailureError, match="exit status 128"):
            GitBackend().fetch_latest(RevisionDescriptor.branch("src"), REPO)


class TestGitBackendMultiStepFailures:
    """Tests for failures after a successful clone.

    Uses a scripted runner since these fetches make several git calls that
    need to be answered and checked together.
    """

    def test_missing_tag_raises_resolution_failure(self, work_dir: Path) -> None:
        """A tag absent upstream raises ResolutionFailureError."""
        runner = ScriptedRunner().on(
            has("fetch"),
            returncode=128,
            stderr="fatal: couldn't find remote ref refs/tags/v2.0\n",
        )
        backend = GitBackend(runner=runner, work_dir=work_dir)

        with pytest.raises(ResolutionFailureError, match="couldn't find remote ref"):
            backend.fetch_latest(RevisionDescriptor.tag("src", "v2.0"), REPO)

        assert _leftovers(work_dir) == []
        assert runner.commands("log") == []

    def test_unknown_commit_raises_resolution_failure(self, work_dir: Path) -> None:
        """A hash neither in the clone nor fetchable fails resolution."""
        sha = FULL_SHA[:12]
        runner = (
            ScriptedRunner()
            .on(has("rev-parse"), returncode=1)
            .on(has("fetch"), returncode=128, stderr="fatal: not our ref\n")
        )
        backend = GitBackend(runner=runner, work_dir=work_dir)

        with pytest.raises(ResolutionFailureError, match=f"commit {sha}"):
            backend.fetch_latest(RevisionDescriptor.commit("src", sha), REPO)

        assert runner.commands("fetch")[0][-1] == sha
        assert runner.commands("log") == []
        assert _leftovers(work_dir) == []


class TestGitBackendCleanup:
    """Tests for timeouts and clone removal with a scripted runner."""

    def test_timeout_propagates_and_cleans_up(self, work_dir: Path) -> None:
        """Runner timeouts surface as FetchTimeoutError after cleanup."""
        runner = ScriptedRunner().on(
            has("clone"), raises=FetchTimeoutError.after("git clone", 5)
        )
        backend = GitBackend(runner=runner, work_dir=work_dir, timeout=5)

        with pytest.raises(FetchTimeoutError, match="timed out after 5s"):
            backend.fetch_latest(RevisionDescriptor.branch("src"), REPO)

        assert runner.timeouts == [5]
        assert _leftovers(work_dir) == []

    def test_clone_directory_removed_after_success(self, work_dir: Path) -> None:
        """Successful fetches leave no clone behind."""
        created: list[str] = []

        def record_clone_dir(argv: tuple[str, ...]) -> bool:
            if "clone" in argv:
                created.append(argv[-1])
            return False

        runner = _happy_runner()
        passthrough = CommandResult(args=(), returncode=0)
        runner.script.insert(0, (record_clone_dir, passthrough))
        backend = GitBackend(runner=runner, work_dir=work_dir)

        backend.fetch_latest(RevisionDescriptor.branch("src"), REPO)

        assert created, "expected a clone command"
        assert created[0].startswith(str(work_dir))
        assert _leftovers(work_dir) == []
