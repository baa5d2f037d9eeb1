from __future__ import annotations


class MnemosyneError(Exception):
    """Base class for failures raised by the memory store."""


class InvalidArgumentError(MnemosyneError, ValueError):
    """An argument is outside its allowed values."""


class UnsupportedTimeRangeError(InvalidArgumentError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Unsupported time range format: {value}")
        self.value = value


class StorageError(MnemosyneError):
    """The underlying SQLite read or write failed."""


class GitSyncError(MnemosyneError):
    """A git command used to mirror the database failed."""
