"""Backends for targets that are never inspected over the network."""

from __future__ import annotations

import typing as typ

from .models import ForcedUpdate, ManualCheckRequired, Skipped, VcsKind

if typ.TYPE_CHECKING:
    from revwatch.revisions import RevisionDescriptor


class NoVcsBackend:
    """Targets without version control: nothing to compare, always updated."""

    kind = VcsKind.NONE

    def fetch_latest(
        self, descriptor: RevisionDescriptor, location: str
    ) -> ForcedUpdate:
        """Report an update unconditionally."""
        del descriptor, location
        return ForcedUpdate()


class ManualCheckBackend:
    """Targets an operator must check by hand (release archives, CVS)."""

    kind = VcsKind.MANUAL

    def fetch_latest(
        self, descriptor: RevisionDescriptor, location: str
    ) -> ManualCheckRequired:
        """Report that no automatic determination is possible."""
        del descriptor
        return ManualCheckRequired(f"check {location or 'source'} manually")


class ArchivedBackend:
    """Archived targets: excluded from scans."""

    kind = VcsKind.ARCHIVED

    def fetch_latest(self, descriptor: RevisionDescriptor, location: str) -> Skipped:
        """Report the target as skipped."""
        del descriptor, location
        return Skipped("archived")
