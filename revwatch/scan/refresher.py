"""Synchronous refresh of one target's baseline and note."""

from __future__ import annotations

import typing as typ

from revwatch.persistence.errors import TargetNotFoundError
from revwatch.vcs.errors import FetchError, RefreshNotSupportedError
from revwatch.vcs.models import CommitInfo

from .observability import ScanEventLogger

if typ.TYPE_CHECKING:
    from revwatch.persistence import PersistenceGateway, Target
    from revwatch.vcs import BackendRegistry


class SingleTargetRefresher:
    """Overwrite a target's stored commit time and note from upstream.

    Unlike a scan there is no comparison: whatever the descriptor resolves
    to now becomes the baseline. Nothing is written when the fetch fails, and
    the baseline and note are stored in one write.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        backends: BackendRegistry,
        *,
        event_logger: ScanEventLogger | None = None,
    ) -> None:
        """Wire the refresher to its collaborators."""
        self._gateway = gateway
        self._backends = backends
        self._events = event_logger or ScanEventLogger()

    def refresh(self, target: Target) -> CommitInfo:
        """Fetch ``target``'s commit and store its timestamp and note.

        Raises
        ------
        FetchError
            If the backend fails, or ``RefreshNotSupportedError`` when the
            backend has no commit metadata (no VCS, manual, archived).
        UnrecognizedBackendError
            If the target's version-control tag has no backend.
        PersistenceError
            If the baseline and note cannot be stored; neither is changed.

        """
        backend = self._backends.for_target(target)
        try:
            fetched = backend.fetch_latest(target.descriptor, target.location)
            if not isinstance(fetched, CommitInfo):
                raise RefreshNotSupportedError.for_vcs(target.vcs)
        except FetchError as exc:
            self._events.log_refresh_failed(target, exc)
            raise

        self._gateway.set_baseline_and_note(target.id, fetched.timestamp, fetched.note)
        self._events.log_refresh_completed(target, fetched)
        return fetched

    def refresh_by_id(self, target_id: str) -> CommitInfo:
        """Refresh the tracked target whose id is ``target_id``.

        Raises
        ------
        TargetNotFoundError
            If no tracked target has that id.

        """
        for target in self._gateway.list_tracked_targets():
            if target.id == target_id:
                return self.refresh(target)
        raise TargetNotFoundError(target_id)
