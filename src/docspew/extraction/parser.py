"""Content parser contract and a ZIP container implementation.

A parser walks one stream and calls back into an :class:`EmbeddedHandler`
for every embedded sub-stream it encounters. The handler decides whether to
consume the sub-stream itself or to let the default recursive behaviour of
:class:`ParsingEmbeddedHandler` parse it in turn.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime
import logging
import mimetypes
import shutil
from tempfile import SpooledTemporaryFile
from typing import BinaryIO, Protocol, runtime_checkable
from zipfile import BadZipFile, ZipExtFile, ZipFile, ZipInfo
import zlib

from docspew.document.models import CONTENT_LENGTH, CONTENT_TYPE, LAST_MODIFIED, RESOURCE_NAME, Metadata
from docspew.extraction.text import extract_text

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
_EMPTY_ZIP_MAGIC = b"PK\x05\x06"
_SNIFF_BYTES = 512
_SPOOL_MEMORY_LIMIT = 8 * 1024 * 1024

_MAGIC_TYPES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (ZIP_MAGIC, "application/zip"),
    (_EMPTY_ZIP_MAGIC, "application/zip"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x1f\x8b", "application/gzip"),
)


@dataclass(slots=True)
class ParseError(Exception):
    """Structural or format error raised while walking a container."""

    resource: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (resource={self.resource})"


class TextSink:
    """Collects text emitted by a parse, in traversal order."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def write(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def getvalue(self) -> str:
        return "\n\n".join(self._parts)


@runtime_checkable
class EmbeddedHandler(Protocol):
    """Callback invoked once per embedded sub-stream."""

    def handle_embedded(self, stream: BinaryIO, metadata: Metadata, *, output_markup: bool = True) -> None:
        """Consume the sub-stream, or delegate to the default handler."""


@runtime_checkable
class ContentParser(Protocol):
    def parse(
        self,
        stream: BinaryIO,
        metadata: Metadata,
        *,
        embedded: EmbeddedHandler,
        sink: TextSink | None = None,
    ) -> None:
        """Parse a stream, filling metadata and reporting embeds to the handler."""


class ParsingEmbeddedHandler:
    """Default embed behaviour: parse the sub-stream with the same parser."""

    def __init__(self, parser: ContentParser, sink: TextSink | None = None) -> None:
        self._parser = parser
        self._sink = sink

    @property
    def parser(self) -> ContentParser:
        return self._parser

    def handle_embedded(self, stream: BinaryIO, metadata: Metadata, *, output_markup: bool = True) -> None:
        self._parser.parse(stream, metadata, embedded=self, sink=self._sink)


def spool(stream: BinaryIO) -> SpooledTemporaryFile:
    buffer = SpooledTemporaryFile(max_size=_SPOOL_MEMORY_LIMIT)
    shutil.copyfileobj(stream, buffer)
    buffer.seek(0)
    return buffer


def rewindable(stream: BinaryIO, stack: ExitStack) -> BinaryIO:
    """Return a stream that can be read and then rewound to where it started."""

    if stream.seekable():
        return stream
    return stack.enter_context(spool(stream))


def detect_content_type(head: bytes, resource_name: str | None) -> str:
    for magic, media_type in _MAGIC_TYPES:
        if head.startswith(magic):
            return media_type

    prefix = head.lstrip().lower()
    if prefix.startswith((b"<!doctype html", b"<html")):
        return "text/html"
    if prefix.startswith(b"<?xml"):
        return "application/xml"

    if resource_name:
        guessed, _ = mimetypes.guess_type(resource_name, strict=False)
        if guessed:
            return guessed

    if head and b"\x00" not in head:
        return "text/plain"
    return "application/octet-stream"


def _iso_timestamp(info: ZipInfo) -> str | None:
    try:
        return datetime(*info.date_time).isoformat()
    except ValueError:
        return None


class ZipContainerParser:
    """Walks ZIP archives entry by entry; extracts text from text and HTML leaves."""

    def parse(
        self,
        stream: BinaryIO,
        metadata: Metadata,
        *,
        embedded: EmbeddedHandler,
        sink: TextSink | None = None,
    ) -> None:
        with ExitStack() as stack:
            source = rewindable(stream, stack)
            start = source.tell()
            head = source.read(_SNIFF_BYTES)
            source.seek(start)

            if CONTENT_TYPE not in metadata:
                metadata.set(CONTENT_TYPE, detect_content_type(head, metadata.get(RESOURCE_NAME)))

            if head.startswith((ZIP_MAGIC, _EMPTY_ZIP_MAGIC)):
                # Seeking inside a compressed member re-inflates it from the start.
                if isinstance(source, ZipExtFile):
                    source = stack.enter_context(spool(source))
                self._parse_archive(source, metadata, embedded=embedded)
                return

            if sink is not None:
                text = extract_text(source.read(), metadata.get(CONTENT_TYPE))
                sink.write(text)

    def _parse_archive(self, source: BinaryIO, metadata: Metadata, *, embedded: EmbeddedHandler) -> None:
        resource = metadata.get(RESOURCE_NAME) or "<stream>"
        try:
            archive = ZipFile(source, "r")
        except BadZipFile as exc:
            raise ParseError(resource, f"Corrupt ZIP container: {exc}") from exc

        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue

                try:
                    entry_metadata = self._entry_metadata(archive, info)
                    with archive.open(info, "r") as entry:
                        embedded.handle_embedded(entry, entry_metadata, output_markup=True)
                except (BadZipFile, zlib.error) as exc:
                    raise ParseError(f"{resource}/{info.filename}", f"Corrupt ZIP entry: {exc}") from exc
                except (NotImplementedError, RuntimeError) as exc:
                    # Encrypted entries and unsupported compression methods.
                    raise ParseError(f"{resource}/{info.filename}", f"Unreadable ZIP entry: {exc}") from exc

    def _entry_metadata(self, archive: ZipFile, info: ZipInfo) -> Metadata:
        metadata = Metadata()
        metadata.set(RESOURCE_NAME, info.filename)
        metadata.set(CONTENT_LENGTH, str(info.file_size))

        with archive.open(info, "r") as entry:
            head = entry.read(_SNIFF_BYTES)
        metadata.set(CONTENT_TYPE, detect_content_type(head, info.filename))

        modified = _iso_timestamp(info)
        if modified is not None:
            metadata.set(LAST_MODIFIED, modified)
        if info.comment:
            metadata.set("zip:comment", info.comment.decode("utf-8", errors="replace"))

        logger.debug("Found embedded entry %s (%d bytes)", info.filename, info.file_size)
        return metadata
