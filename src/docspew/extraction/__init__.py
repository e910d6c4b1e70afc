"""Content digests, container parsing and embedded document recovery."""

from .digest import Digester, DigestError, DigestResult
from .memory import DigestEmbeddedHandler, EmbeddedDocumentMemoryExtractor
from .parser import (
    ContentParser,
    EmbeddedHandler,
    ParseError,
    ParsingEmbeddedHandler,
    TextSink,
    ZipContainerParser,
)
from .tree import DocumentTreeBuilder

__all__ = [
    "ContentParser",
    "DigestEmbeddedHandler",
    "DigestError",
    "DigestResult",
    "Digester",
    "DocumentTreeBuilder",
    "EmbeddedDocumentMemoryExtractor",
    "EmbeddedHandler",
    "ParseError",
    "ParsingEmbeddedHandler",
    "TextSink",
    "ZipContainerParser",
]
