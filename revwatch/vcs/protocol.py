"""Protocol implemented by every version-control backend."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from revwatch.revisions import RevisionDescriptor

    from .models import FetchResult, VcsKind


class VcsBackend(typ.Protocol):
    """Strategy that fetches the latest relevant commit for a target.

    Implementations must be safe to call from several scan workers at once;
    any per-call state (temporary clones, subprocesses) stays local to the
    call.
    """

    @property
    def kind(self) -> VcsKind:
        """Backend kind this strategy serves."""
        ...

    def fetch_latest(
        self, descriptor: RevisionDescriptor, location: str
    ) -> FetchResult:
        """Return metadata for the commit ``descriptor`` resolves to.

        Raises
        ------
        FetchError
            If the repository cannot be reached or the descriptor does not
            resolve.

        """
        ...
