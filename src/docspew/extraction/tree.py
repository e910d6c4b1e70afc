"""Build an indexable document tree from a container file."""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from docspew.document.models import RESOURCE_NAME, Document, Metadata
from docspew.extraction.digest import Digester
from docspew.extraction.parser import ContentParser, TextSink, ZipContainerParser, rewindable


class _TreeEmbeddedHandler:
    """Turns every embed into a child document identified by its digest."""

    def __init__(self, parser: ContentParser, digester: Digester, parent: Document) -> None:
        self._parser = parser
        self._digester = digester
        self._parent = parent

    def handle_embedded(self, stream: BinaryIO, metadata: Metadata, *, output_markup: bool = True) -> None:
        with ExitStack() as stack:
            source = rewindable(stream, stack)
            start = source.tell()
            result = self._digester.digest(source)
            source.seek(start)
            metadata.set(self._digester.metadata_key, result.value)

            name = metadata.get(RESOURCE_NAME) or result.value
            child = Document(path=self._parent.path / name, id=result.value, metadata=metadata)
            sink = TextSink()
            handler = _TreeEmbeddedHandler(self._parser, self._digester, child)
            self._parser.parse(source, metadata, embedded=handler, sink=sink)
            child.text = sink.getvalue()
            self._parent.add_embed(child)


class DocumentTreeBuilder:
    def __init__(self, parser: ContentParser | None = None, digester: Digester | None = None) -> None:
        self._parser = parser or ZipContainerParser()
        self._digester = digester or Digester()

    def build(self, path: str | Path) -> Document:
        source_path = Path(path)
        metadata = Metadata()
        metadata.set(RESOURCE_NAME, source_path.name)

        with source_path.open("rb") as stream:
            result = self._digester.digest(stream)
            stream.seek(0)
            metadata.set(self._digester.metadata_key, result.value)

            document = Document(path=PurePosixPath(source_path.as_posix()), id=result.value, metadata=metadata)
            sink = TextSink()
            handler = _TreeEmbeddedHandler(self._parser, self._digester, document)
            self._parser.parse(stream, metadata, embedded=handler, sink=sink)

        document.text = sink.getvalue()
        return document
