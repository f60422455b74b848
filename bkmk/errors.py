"""
Error types shared across bkmk.

Every failure a user can cause or recover from is one of these. The
interactive session turns them into inline messages, the CLI prints
them and exits with status 1.
"""


class BkmkError(Exception):
    """Base class for all bkmk errors."""


class NotFoundError(BkmkError):
    """A group, command, backup or history file does not exist."""


class HistoryNotFoundError(NotFoundError):
    """No shell history file could be located."""


class DuplicateError(BkmkError):
    """A group or command name is already taken."""


class ValidationError(BkmkError):
    """User input was rejected before touching the store."""


class StorageError(BkmkError):
    """Reading or writing a file failed."""


class ProcessError(BkmkError):
    """A child process could not be started or exited with an error."""
