"""
Exception types raised by the PassVault core.
"""

from typing import Optional


class VaultError(Exception):
    """Base class for all PassVault errors."""


class ValidationError(VaultError, ValueError):
    """An entry failed validation and was not persisted."""


class StorageUnavailable(VaultError):
    """The backing database could not be opened, read or written."""


class CryptoFailure(VaultError):
    """A stored token could not be decrypted."""


class ParseSkip(VaultError):
    """A CSV row was rejected; the import continues with the next row."""

    def __init__(self, reason: str, line_number: Optional[int] = None):
        self.reason = reason
        self.line_number = line_number
        if line_number is not None:
            super().__init__(f"line {line_number}: {reason}")
        else:
            super().__init__(reason)
