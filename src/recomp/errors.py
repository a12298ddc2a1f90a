"""Exception types raised for malformed input."""

from __future__ import annotations

from typing import Optional, Sequence


class RecompError(Exception):
    """Base class for all recomp errors."""


class ValidationError(RecompError, ValueError):
    """Raised when a record or argument fails validation.

    Insufficient data is never reported through this exception; the quality
    gate and estimator fallbacks handle that case.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MissingUnitError(ValidationError):
    """Raised when mass values arrive without an explicit unit tag.

    Attributes:
        record_ids: Identifiers (dates or row numbers) of the legacy records
            that must be migrated to carry a unit before they can be used.
    """

    def __init__(self, record_ids: Sequence[str]):
        self.record_ids = list(record_ids)
        shown = ", ".join(self.record_ids[:5])
        more = f" (+{len(self.record_ids) - 5} more)" if len(self.record_ids) > 5 else ""
        super().__init__(
            f"{len(self.record_ids)} record(s) have no mass unit and need migration: {shown}{more}",
            field="unit",
        )
