"""Version-control backends used by update scans.

Each backend answers one question: what is the latest commit a revision
descriptor points at in a given repository? ``BackendRegistry`` maps a
target's version-control tag to the backend that answers it.

Usage
-----
Fetch the newest commit on a repository's default branch::

    from revwatch.revisions import RevisionDescriptor
    from revwatch.vcs import BackendRegistry

    registry = BackendRegistry.default()
    backend = registry.for_tag("git")
    commit = backend.fetch_latest(
        RevisionDescriptor.branch("src-1"), "https://example.org/engine.git"
    )
    print(commit.note)

"""

from revwatch.vcs.errors import (
    FetchError,
    FetchTimeoutError,
    NetworkFailureError,
    RefreshNotSupportedError,
    ResolutionFailureError,
    ToolNotFoundError,
    UnrecognizedBackendError,
    UnsupportedDescriptorKindError,
)
from revwatch.vcs.git import GitBackend
from revwatch.vcs.models import (
    CommitInfo,
    FetchResult,
    ForcedUpdate,
    ManualCheckRequired,
    Skipped,
    VcsKind,
)
from revwatch.vcs.placeholders import ArchivedBackend, ManualCheckBackend, NoVcsBackend
from revwatch.vcs.process import CommandResult, CommandRunner, run_command
from revwatch.vcs.protocol import VcsBackend
from revwatch.vcs.registry import BackendRegistry
from revwatch.vcs.svn import SubversionBackend

__all__ = [
    "ArchivedBackend",
    "BackendRegistry",
    "CommandResult",
    "CommandRunner",
    "CommitInfo",
    "FetchError",
    "FetchResult",
    "FetchTimeoutError",
    "ForcedUpdate",
    "GitBackend",
    "ManualCheckBackend",
    "ManualCheckRequired",
    "NetworkFailureError",
    "NoVcsBackend",
    "RefreshNotSupportedError",
    "ResolutionFailureError",
    "Skipped",
    "SubversionBackend",
    "ToolNotFoundError",
    "UnrecognizedBackendError",
    "UnsupportedDescriptorKindError",
    "VcsBackend",
    "VcsKind",
    "run_command",
]
