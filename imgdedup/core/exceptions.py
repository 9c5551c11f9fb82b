# core/exceptions.py

from typing import Optional


class DedupError(Exception):
    """Base class for all deduplication errors"""


class DecodeError(DedupError):
    """Input is not a readable or supported image"""


class HashError(DedupError):
    """Decoded image cannot be hashed (degenerate geometry)"""


class IndexContentionError(DedupError):
    """
    Duplicate index was used out of order.

    Raised only when a record is inserted after the index has been drained;
    never surfaces during a normal run.
    """


class FileSystemError(DedupError):
    """A delete or copy failed for a single path"""

    def __init__(self, path: str, cause: Optional[OSError] = None):
        self.path = path
        self.cause = cause
        reason = cause.strerror if cause is not None and cause.strerror else str(cause)
        super().__init__(f"{path}: {reason}")


class ConfigError(DedupError):
    """Invalid configuration; fatal before scanning begins"""
