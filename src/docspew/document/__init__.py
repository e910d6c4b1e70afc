"""Document model interfaces."""

from .models import CapturedDocument, Document, Metadata

__all__ = ["CapturedDocument", "Document", "Metadata"]
