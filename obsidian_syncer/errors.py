"""Exception hierarchy for Obsidian Syncer."""

from typing import Optional


class SyncerError(Exception):
    """Base class for all errors raised by Obsidian Syncer."""


class ConfigError(SyncerError):
    """Raised when the settings file is missing or malformed."""


class RepositoryError(SyncerError):
    """Raised when the remote repository rejects a request or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PublishError(SyncerError):
    """Raised when a publish or delete batch could not be committed.

    The batch is never partially applied: every file goes out in a single
    commit, so a failure means the remote branch was left untouched.
    """

    def __init__(self, message: str, paths: Optional[list] = None):
        super().__init__(message)
        self.paths = paths or []
