"""
Custom exception hierarchy for the drive cataloger.

Per-file problems during a walk are logged and skipped, so these only
surface where a caller has to decide what to do.
"""


class DriveDriverError(Exception):
    """Base exception for all drive cataloger errors."""
    pass


class ConfigError(DriveDriverError):
    """Raised when the configuration file cannot be parsed."""
    pass


class CatalogError(DriveDriverError):
    """Base for catalog storage failures."""
    pass


class CatalogLoadError(CatalogError):
    """Raised when a metadata chunk cannot be read or decoded."""

    def __init__(self, chunk_path, reason):
        super().__init__(f"Failed to load chunk {chunk_path}: {reason}")
        self.chunk_path = chunk_path
        self.reason = reason


class CatalogWriteError(CatalogError):
    """Raised when a chunk or the stats file cannot be written."""
    pass
