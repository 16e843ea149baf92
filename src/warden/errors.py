"""Exception hierarchy.

Policy violations and invalid intents are ordinary results, not
exceptions; only misuse of the API and explicit integrity demands raise.
"""

from __future__ import annotations
from typing import Optional


class WardenError(Exception):
    """Base class for all package errors."""


class SettingsError(WardenError, ValueError):
    """A settings or configuration value is outside its allowed set."""


class LedgerCapacityError(WardenError, ValueError):
    """Append attempted on a chain already at max capacity."""


class ChainIntegrityError(WardenError):
    """A hash chain failed verification."""

    def __init__(self, broken_at: Optional[int], message: Optional[str] = None):
        self.broken_at = broken_at
        super().__init__(message or f"Chain integrity broken at index {broken_at}")
