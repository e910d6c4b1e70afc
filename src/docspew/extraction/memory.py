"""Recover one embedded document from a container by its content digest."""

from __future__ import annotations

from contextlib import ExitStack
import logging
from typing import BinaryIO

from docspew.document.models import RESOURCE_NAME, CapturedDocument, Metadata
from docspew.extraction.digest import Digester
from docspew.extraction.parser import ContentParser, ParsingEmbeddedHandler, ZipContainerParser, rewindable

logger = logging.getLogger(__name__)


class DigestEmbeddedHandler(ParsingEmbeddedHandler):
    """Captures the first embed whose digest matches, recursing into the rest.

    After a capture every later callback returns without digesting, but the
    surrounding parse is left to run to completion.
    """

    def __init__(self, parser: ContentParser, digester: Digester, digest: str) -> None:
        super().__init__(parser)
        self._digester = digester
        self._digest = digest.strip().lower()
        self._document: CapturedDocument | None = None

    @property
    def document(self) -> CapturedDocument | None:
        return self._document

    def handle_embedded(self, stream: BinaryIO, metadata: Metadata, *, output_markup: bool = True) -> None:
        if self._document is not None:
            return

        with ExitStack() as stack:
            source = rewindable(stream, stack)
            start = source.tell()
            result = self._digester.digest(source)
            metadata.set(self._digester.metadata_key, result.value)
            source.seek(start)

            if result.value == self._digest:
                content = source.read()
                self._document = CapturedDocument(content=content, metadata=metadata.copy())
                logger.info(
                    "Matched embedded document %s (%d bytes)",
                    metadata.get(RESOURCE_NAME),
                    len(content),
                )
                return

            super().handle_embedded(source, metadata, output_markup=output_markup)


class EmbeddedDocumentMemoryExtractor:
    """Parse a container and keep only the embed with the requested digest in memory."""

    def __init__(
        self,
        algorithm: str = "SHA-256",
        modifier: str | None = None,
        *,
        parser: ContentParser | None = None,
    ) -> None:
        self._algorithm = algorithm
        self._modifier = modifier
        self._parser = parser or ZipContainerParser()

    def extract(self, stream: BinaryIO, digest: str) -> CapturedDocument | None:
        """Return the matching embedded document, or ``None`` when absent."""

        handler = DigestEmbeddedHandler(self._parser, Digester(self._algorithm, self._modifier), digest)
        self._parser.parse(stream, Metadata(), embedded=handler)

        if handler.document is None:
            logger.info("No embedded document matched digest %s", digest)
        return handler.document
