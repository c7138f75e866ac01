"""Dispatch from version-control tags to backend strategies."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from .errors import UnrecognizedBackendError
from .git import GitBackend
from .models import VcsKind
from .placeholders import ArchivedBackend, ManualCheckBackend, NoVcsBackend
from .svn import SubversionBackend

if typ.TYPE_CHECKING:
    from revwatch.persistence import Target
    from revwatch.scan.config import ScanConfig

    from .process import CommandRunner
    from .protocol import VcsBackend


class BackendRegistry(cabc.Mapping[VcsKind, "VcsBackend"]):
    """Immutable mapping of backend kinds to strategies.

    ``UNRECOGNIZED`` never has a backend. Dispatch goes through
    :meth:`for_target` or :meth:`for_tag`, which raise
    :class:`UnrecognizedBackendError` for tags with no registered backend.
    """

    def __init__(self, backends: cabc.Iterable[VcsBackend]) -> None:
        """Index ``backends`` by their ``kind``."""
        self._backends: dict[VcsKind, VcsBackend] = {}
        for backend in backends:
            if backend.kind is VcsKind.UNRECOGNIZED:
                msg = "UNRECOGNIZED cannot be bound to a backend"
                raise ValueError(msg)
            self._backends[backend.kind] = backend

    @classmethod
    def default(
        cls,
        config: ScanConfig | None = None,
        *,
        runner: CommandRunner | None = None,
    ) -> BackendRegistry:
        """Build the standard backend set from scan configuration."""
        from revwatch.scan.config import ScanConfig

        resolved = config or ScanConfig()
        runner_kwargs: dict[str, CommandRunner] = (
            {"runner": runner} if runner is not None else {}
        )
        return cls(
            [
                GitBackend(
                    executable=resolved.git_executable,
                    work_dir=resolved.work_dir,
                    timeout=resolved.fetch_timeout,
                    **runner_kwargs,
                ),
                SubversionBackend(
                    executable=resolved.svn_executable,
                    timeout=resolved.fetch_timeout,
                    **runner_kwargs,
                ),
                NoVcsBackend(),
                ManualCheckBackend(),
                ArchivedBackend(),
            ]
        )

    def __getitem__(self, kind: VcsKind) -> VcsBackend:
        """Return the backend for ``kind``."""
        return self._backends[kind]

    def __iter__(self) -> cabc.Iterator[VcsKind]:
        """Iterate over registered kinds."""
        return iter(self._backends)

    def __len__(self) -> int:
        """Return the number of registered backends."""
        return len(self._backends)

    def for_tag(self, vcs: str) -> VcsBackend:
        """Return the backend for a raw version-control tag.

        Raises
        ------
        UnrecognizedBackendError
            If ``vcs`` maps to no registered backend.

        """
        return self._lookup(VcsKind.from_tag(vcs), vcs)

    def for_target(self, target: Target) -> VcsBackend:
        """Return the backend for ``target`` through its :attr:`~Target.vcs_kind`.

        Raises
        ------
        UnrecognizedBackendError
            If the target's tag maps to no registered backend.

        """
        return self._lookup(target.vcs_kind, target.vcs)

    def _lookup(self, kind: VcsKind, vcs: str) -> VcsBackend:
        if kind is VcsKind.UNRECOGNIZED or kind not in self._backends:
            raise UnrecognizedBackendError(vcs)
        return self._backends[kind]
