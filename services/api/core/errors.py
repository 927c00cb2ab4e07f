"""
Exception types raised by the sheets document store.

Remote transport errors (gspread ``APIError`` and friends) are NOT wrapped:
they propagate unchanged once the retry wrapper gives up.
"""


class StoreError(Exception):
    """Base class for errors raised by the store itself."""


class ConfigurationError(StoreError, ValueError):
    """
    Missing or malformed configuration (credentials, spreadsheet id, key format).

    Raised when the session is established. Never retried.
    """


class HeaderRowMissing(StoreError):
    """The worksheet has no header row yet (row 1 is empty)."""


class UnsupportedStageError(StoreError, ValueError):
    """An aggregation stage outside the supported $match/$sort/$skip/$limit subset."""
