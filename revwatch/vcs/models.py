"""Value types shared by the version-control backends."""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import enum
import typing as typ

# Commit hashes are recorded in notes at this length.
HASH_RECORD_LENGTH = 7


class VcsKind(enum.StrEnum):
    """Closed set of backend kinds a target can dispatch to."""

    GIT = "git"
    SUBVERSION = "svn"
    NONE = "n/a"
    MANUAL = "manual"
    ARCHIVED = "archived"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_tag(cls, tag: str | None) -> VcsKind:
        """Map a stored version-control tag to a backend kind.

        Unknown tags map to ``UNRECOGNIZED`` rather than raising, so a
        single bad row cannot abort a scan.
        """
        if tag is None:
            return cls.UNRECOGNIZED
        return _TAG_ALIASES.get(tag.strip().lower(), cls.UNRECOGNIZED)


_TAG_ALIASES: dict[str, VcsKind] = {
    "git": VcsKind.GIT,
    "svn": VcsKind.SUBVERSION,
    "subversion": VcsKind.SUBVERSION,
    "n/a": VcsKind.NONE,
    "none": VcsKind.NONE,
    # Sources kept in release archives or in CVS are checked by hand.
    "rhv": VcsKind.MANUAL,
    "cvs": VcsKind.MANUAL,
    "manual": VcsKind.MANUAL,
    "archived": VcsKind.ARCHIVED,
}


@dataclasses.dataclass(frozen=True, slots=True)
class CommitInfo:
    """Metadata for the commit a descriptor resolved to."""

    timestamp: dt.datetime
    summary: str
    identifier: str

    @property
    def note(self) -> str:
        """Render the note persisted by a refresh."""
        return f"[{self.identifier}] {self.summary}"


@dataclasses.dataclass(frozen=True, slots=True)
class ForcedUpdate:
    """Result for targets with nothing to compare: always report an update."""


@dataclasses.dataclass(frozen=True, slots=True)
class ManualCheckRequired:
    """Result for targets an operator has to inspect by hand."""

    reason: str = "source must be checked manually"


@dataclasses.dataclass(frozen=True, slots=True)
class Skipped:
    """Result for targets deliberately excluded from scans."""

    reason: str


FetchResult: typ.TypeAlias = CommitInfo | ForcedUpdate | ManualCheckRequired | Skipped


def first_line(text: str | None) -> str:
    """Return ``text`` up to its first line break (empty for ``None``)."""
    if not text:
        return ""
    return text.splitlines()[0]
