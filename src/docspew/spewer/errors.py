"""Failures surfaced to callers of the index writer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SpewerError(Exception):
    """A document could not be written to the index."""

    document: str
    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.message} (document={self.document})"
        return f"{self.message} (document={self.document}, status={self.status_code})"


class UnsupportedOperationError(NotImplementedError):
    """Raised for writer operations that are deliberately not implemented."""
