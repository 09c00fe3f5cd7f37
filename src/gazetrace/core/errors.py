"""Coded exceptions raised by the analysis pipeline."""

from __future__ import annotations

# Error codes
EC_INPUT_FORMAT = -2101
EC_MISSING_COLUMN = -2102
EC_DUPLICATE_COLUMN = -2103
EC_MALFORMED_ROW = -2104
EC_DATA_EMPTY = -2204
EC_STORAGE_DST_INVALID = -2701
EC_STORAGE_IO = -2704


class GazeTraceError(Exception):
    """Exception carrying an error code next to its message."""

    default_code = EC_INPUT_FORMAT

    def __init__(self, message: str, *, code: int | None = None):
        self.code = self.default_code if code is None else code
        self.message = message
        super().__init__(f"{self.code}: {message}")


class DuplicateColumnError(GazeTraceError):
    """The header row names the same column twice."""

    default_code = EC_DUPLICATE_COLUMN


class MalformedRowError(GazeTraceError):
    """A data row cannot be turned into a record."""

    default_code = EC_MALFORMED_ROW

    def __init__(self, message: str, *, row: int | None = None, code: int | None = None):
        self.row = row
        if row is not None:
            message = f"row {row}: {message}"
        super().__init__(message, code=code)


class MissingColumnError(GazeTraceError, KeyError):
    """A component dereferenced a column the header does not define."""

    default_code = EC_MISSING_COLUMN

    def __init__(self, column: str, *, available=None):
        self.column = column
        message = f"missing required column: {column!r}"
        if available is not None:
            message += f" (available: {sorted(available)})"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return Exception.__str__(self)


class EmptyDatasetError(GazeTraceError):
    """An operation that needs rows was handed an empty dataset."""

    default_code = EC_DATA_EMPTY


__all__ = [
    "EC_INPUT_FORMAT",
    "EC_MISSING_COLUMN",
    "EC_DUPLICATE_COLUMN",
    "EC_MALFORMED_ROW",
    "EC_DATA_EMPTY",
    "EC_STORAGE_DST_INVALID",
    "EC_STORAGE_IO",
    "GazeTraceError",
    "DuplicateColumnError",
    "MalformedRowError",
    "MissingColumnError",
    "EmptyDatasetError",
]
