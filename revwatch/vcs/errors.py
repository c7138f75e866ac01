"""Errors raised by version-control backends."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from revwatch.revisions import RevisionKind


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    return lines[-1] if lines else ""


class FetchError(RuntimeError):
    """Base class for failures while fetching commit metadata."""

    def __init__(self, message: str, *, location: str | None = None) -> None:
        """Initialise with a message and the repository location involved."""
        self.location = location
        super().__init__(message)


class UnsupportedDescriptorKindError(FetchError):
    """Raised when a backend cannot resolve a descriptor kind."""

    def __init__(
        self, backend: str, kind: RevisionKind, *, location: str | None = None
    ) -> None:
        """Record the backend and the descriptor kind it rejected."""
        self.backend = backend
        self.kind = kind
        super().__init__(
            f"{backend} cannot resolve {kind.value} descriptors", location=location
        )


class NetworkFailureError(FetchError):
    """Raised when a clone or remote query fails."""

    def __init__(
        self, message: str, *, location: str | None = None, stderr: str = ""
    ) -> None:
        """Keep the client's stderr for operators."""
        self.stderr = stderr
        super().__init__(message, location=location)

    @classmethod
    def command_failed(
        cls, command: str, location: str, returncode: int, stderr: str
    ) -> NetworkFailureError:
        """Return an error for a version-control command exiting non-zero."""
        detail = _last_line(stderr) or f"exit status {returncode}"
        return cls(
            f"{command} {location} failed: {detail}",
            location=location,
            stderr=stderr,
        )


class FetchTimeoutError(NetworkFailureError):
    """Raised when a version-control command exceeds the fetch timeout."""

    @classmethod
    def after(cls, command: str, timeout: float) -> FetchTimeoutError:
        """Return an error for a command that ran longer than ``timeout``."""
        return cls(f"{command} timed out after {timeout:g}s")


class ResolutionFailureError(FetchError):
    """Raised when a descriptor does not resolve to a real commit."""

    def __init__(
        self, message: str, *, location: str | None = None, stderr: str = ""
    ) -> None:
        """Keep the client's stderr for operators."""
        self.stderr = stderr
        super().__init__(message, location=location)

    @classmethod
    def unresolved(
        cls, reference: str, location: str, stderr: str = ""
    ) -> ResolutionFailureError:
        """Return an error for a reference missing from the remote."""
        detail = _last_line(stderr)
        message = f"{reference} does not resolve to a commit in {location}"
        if detail:
            message = f"{message}: {detail}"
        return cls(message, location=location, stderr=stderr)


class ToolNotFoundError(FetchError):
    """Raised when a version-control client is not installed."""

    @classmethod
    def missing(cls, executable: str) -> ToolNotFoundError:
        """Return an error naming the missing executable."""
        return cls(f"Required executable '{executable}' not found in PATH")

    @classmethod
    def unusable(cls, executable: str, exc: OSError) -> ToolNotFoundError:
        """Return an error for an executable the OS refused to start."""
        return cls(f"Executable '{executable}' could not be started: {exc}")


class RefreshNotSupportedError(FetchError):
    """Raised when a refresh targets a backend without commit metadata."""

    @classmethod
    def for_vcs(cls, vcs: str) -> RefreshNotSupportedError:
        """Return an error for targets whose backend has no commits to pull."""
        return cls(
            f"targets using {vcs!r} have no commit metadata to refresh "
            "automatically"
        )


class UnrecognizedBackendError(LookupError):
    """Raised when a target's version-control tag has no backend."""

    def __init__(self, vcs: str) -> None:
        """Initialise with the unrecognised tag."""
        self.vcs = vcs
        super().__init__(f"Unexpected vcs {vcs!r}")
