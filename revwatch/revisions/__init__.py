"""Revision descriptors for tracked targets."""

from revwatch.revisions.errors import InvalidRevisionDescriptorError
from revwatch.revisions.models import RevisionDescriptor, RevisionKind

__all__ = [
    "InvalidRevisionDescriptorError",
    "RevisionDescriptor",
    "RevisionKind",
]
