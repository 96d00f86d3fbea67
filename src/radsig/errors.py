from __future__ import annotations


class RadsigError(Exception):
    """Base class for radsig failures."""


class FileUnreadable(RadsigError, OSError):
    def __init__(self, path: object, cause: object) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Cannot read {self.path}: {cause}")


class MalformedPopmap(RadsigError, ValueError):
    pass


class MalformedMarkerTable(RadsigError, ValueError):
    pass


class InvalidGroupSelection(RadsigError, ValueError):
    pass


class DegenerateStatistics(RuntimeWarning):
    """No marker was tested, so multiple-testing correction is skipped."""
