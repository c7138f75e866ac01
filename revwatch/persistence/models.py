"""Data transfer objects exchanged with persistence gateways."""

from __future__ import annotations

import dataclasses

import msgspec

from revwatch.revisions import RevisionDescriptor  # noqa: TC001
from revwatch.vcs.models import VcsKind


@dataclasses.dataclass(frozen=True, slots=True)
class Target:
    """Read-only snapshot of a tracked project source.

    The scan engine holds these only for the duration of one pass.
    """

    id: str
    name: str
    vcs: str
    location: str
    descriptor: RevisionDescriptor

    @property
    def vcs_kind(self) -> VcsKind:
        """Return the backend kind for this target's version-control tag."""
        return VcsKind.from_tag(self.vcs)


class LedgerEntry(msgspec.Struct, frozen=True, kw_only=True):
    """One summarised ledger row: a target with newer upstream activity.

    Attributes
    ----------
    target_name : str
        Display name of the tracked project.
    location : str
        Repository URI of the source that changed.
    vcs : str
        Version-control tag of that source.

    """

    target_name: str
    location: str
    vcs: str
