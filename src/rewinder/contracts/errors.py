"""Exceptions raised across subsystem boundaries.

Storage failures are NOT wrapped: SQLAlchemy errors propagate as-is so
callers see the real cause.
"""


class RewinderError(Exception):
    """Base class for rewinder errors."""


class LockTimeoutError(RewinderError):
    """Raised when a named lock cannot be acquired within the wait timeout.

    The version writer catches this internally: the host mutation has
    already committed, so the failure is logged and the version skipped.
    The next successful mutation resynchronises history through the
    not-head rebuild path.

    Attributes:
        name: Lock name that could not be acquired
        wait_seconds: How long the caller waited
    """

    def __init__(self, name: str, wait_seconds: float) -> None:
        self.name = name
        self.wait_seconds = wait_seconds
        super().__init__(f"Timed out after {wait_seconds:g}s waiting for lock {name!r}")


class SchemaCompatibilityError(RewinderError):
    """Raised when an existing history database is incompatible with current code."""


class VersionNotFoundError(RewinderError):
    """Raised when navigation targets a version outside the stored range.

    Attributes:
        record_type: Type discriminator of the record
        record_id: Identity value of the record
        version: Requested version number
        max_version: Highest stored version (0 when there is no history)
    """

    def __init__(self, record_type: str, record_id: str, version: int, max_version: int) -> None:
        self.record_type = record_type
        self.record_id = record_id
        self.version = version
        self.max_version = max_version
        super().__init__(f"{record_type}:{record_id} has no version {version} (available: 1..{max_version})")
