"""Subversion backend: remote revision-property queries via the svn CLI.

Nothing is checked out. The backend asks the server for the revision
properties (``svn:date``, ``svn:log``) of one revision and reads the
revision number from the XML envelope.

Only the repository-wide HEAD (a branch descriptor without a value) and
explicit revision numbers are resolved. Named branches, tags and commit
hashes raise :class:`UnsupportedDescriptorKindError` instead of being
silently treated as HEAD.
"""

from __future__ import annotations

import typing as typ
import xml.etree.ElementTree as ET  # noqa: S405 - output of the local svn client

from revwatch.common.time import parse_iso_timestamp
from revwatch.logging import get_logger, log_debug
from revwatch.revisions import RevisionDescriptor, RevisionKind

from .errors import (
    FetchError,
    NetworkFailureError,
    ResolutionFailureError,
    UnsupportedDescriptorKindError,
)
from .models import CommitInfo, VcsKind, first_line
from .process import CommandRunner, run_command

logger = get_logger(__name__)

_NO_SUCH_REVISION_MARKERS = ("no such revision", "e160006")


def _revision_argument(descriptor: RevisionDescriptor, location: str) -> str:
    if descriptor.is_default_branch:
        return "HEAD"
    if descriptor.kind is RevisionKind.REVISION_NUMBER:
        return typ.cast("str", descriptor.value)
    raise UnsupportedDescriptorKindError("svn", descriptor.kind, location=location)


def parse_revprops(xml_text: str, location: str) -> CommitInfo:
    """Build a :class:`CommitInfo` from ``svn proplist --revprop --xml`` output.

    Raises
    ------
    FetchError
        If the XML is malformed or lacks the revision number or date.

    """
    try:
        root = ET.fromstring(xml_text)  # noqa: S314
    except ET.ParseError as exc:
        msg = f"unparseable svn proplist output for {location}: {exc}"
        raise FetchError(msg, location=location) from exc

    revprops = root if root.tag == "revprops" else root.find("revprops")
    if revprops is None or not revprops.get("rev"):
        msg = f"svn proplist output for {location} has no revision number"
        raise FetchError(msg, location=location)

    properties = {
        prop.get("name"): prop.text or "" for prop in revprops.iter("property")
    }
    raw_date = properties.get("svn:date")
    if not raw_date:
        msg = f"revision r{revprops.get('rev')} of {location} has no svn:date"
        raise FetchError(msg, location=location)
    try:
        timestamp = parse_iso_timestamp(raw_date)
    except ValueError as exc:
        msg = f"unparseable svn:date {raw_date!r} for {location}"
        raise FetchError(msg, location=location) from exc

    return CommitInfo(
        timestamp=timestamp,
        summary=first_line(properties.get("svn:log")),
        identifier=f"r{revprops.get('rev')}",
    )


class SubversionBackend:
    """Fetch revision metadata from Subversion repositories."""

    kind = VcsKind.SUBVERSION

    def __init__(
        self,
        *,
        runner: CommandRunner = run_command,
        executable: str = "svn",
        timeout: float | None = None,
    ) -> None:
        """Configure the svn executable and per-query timeout."""
        self._run = runner
        self._executable = executable
        self._timeout = timeout

    def fetch_latest(self, descriptor: RevisionDescriptor, location: str) -> CommitInfo:
        """Query the revision properties of the resolved revision."""
        revision = _revision_argument(descriptor, location)
        log_debug(logger, "Querying %s at revision %s", location, revision)
        result = self._run(
            [
                self._executable,
                "proplist",
                "--revprop",
                "--verbose",
                "--xml",
                "--non-interactive",
                "--revision",
                revision,
                "--",
                location,
            ],
            timeout=self._timeout,
        )
        if not result.ok:
            if descriptor.kind is RevisionKind.REVISION_NUMBER and any(
                marker in result.stderr.lower() for marker in _NO_SUCH_REVISION_MARKERS
            ):
                raise ResolutionFailureError.unresolved(
                    f"r{revision}", location, result.stderr
                )
            raise NetworkFailureError.command_failed(
                "svn proplist", location, result.returncode, result.stderr
            )
        return parse_revprops(result.stdout, location)
