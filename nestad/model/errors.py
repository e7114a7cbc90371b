"""
nestAD Error Taxonomy
=====================

Exceptions raised by directory sources.

- DirectoryUnavailable is fatal: without the group catalog there is nothing
  to scan.
- DirectoryLookupError and its subclasses are per-group failures. The
  analyzer converts them into LookupFailure records and keeps going.
"""


class DirectoryError(Exception):
    """Base class for all directory access errors."""


class DirectoryUnavailable(DirectoryError):
    """The group catalog could not be listed (connection, bind or search failure)."""


class DirectoryLookupError(DirectoryError):
    """Resolving the members of a single group failed.
    
    Attributes:
        group_id: Identifier of the group whose lookup failed
        detail: Human-readable failure description
    """
    
    def __init__(self, group_id: str, detail: str = ""):
        super().__init__(detail or group_id)
        self.group_id = group_id
        self.detail = detail
    
    def __str__(self):
        return self.detail or f"lookup failed for {self.group_id}"


class GroupNotFound(DirectoryLookupError):
    """The group does not exist (or is not a group)."""


class AccessDenied(DirectoryLookupError):
    """The bound account may not read the group."""


class DirectoryTransientError(DirectoryLookupError):
    """Timeout, dropped connection or any other retryable directory error."""
