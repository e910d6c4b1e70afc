"""Canonical document structures shared by extraction and index writing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Iterable, Iterator

CONTENT_TYPE = "Content-Type"
CONTENT_LENGTH = "Content-Length"
RESOURCE_NAME = "resourceName"
TITLE = "dc:title"
LAST_MODIFIED = "Last-Modified"


class Metadata:
    """Multi-valued name/value store as produced by a content parser.

    A name is multi-valued when the parser declared it so or added a second
    value to it. The flag sticks even if the values are later replaced.
    """

    def __init__(self) -> None:
        self._values: dict[str, list[str]] = {}
        self._multi_valued: set[str] = set()

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Metadata({self._values!r})"

    def names(self) -> list[str]:
        return list(self._values)

    def get(self, name: str) -> str | None:
        values = self._values.get(name)
        if not values:
            return None
        return values[0]

    def get_values(self, name: str) -> list[str]:
        return list(self._values.get(name, ()))

    def set(self, name: str, value: str) -> None:
        self._values[name] = [value]

    def set_values(self, name: str, values: Iterable[str]) -> None:
        self._values[name] = list(values)
        self._multi_valued.add(name)

    def add(self, name: str, value: str) -> None:
        existing = self._values.setdefault(name, [])
        if existing:
            self._multi_valued.add(name)
        existing.append(value)

    def declare_multi_valued(self, name: str) -> None:
        self._multi_valued.add(name)

    def is_multi_valued(self, name: str) -> bool:
        return name in self._multi_valued

    def copy(self) -> "Metadata":
        clone = Metadata()
        clone._values = {name: list(values) for name, values in self._values.items()}
        clone._multi_valued = set(self._multi_valued)
        return clone

    def to_dict(self) -> dict[str, str | list[str]]:
        return {
            name: list(values) if self.is_multi_valued(name) else (values[0] if values else "")
            for name, values in self._values.items()
        }


@dataclass(slots=True)
class Document:
    """A parsed document with its recursively embedded children."""

    path: PurePosixPath
    id: str | None = None
    metadata: Metadata = field(default_factory=Metadata)
    text: str = ""
    embeds: list["Document"] = field(default_factory=list)

    def add_embed(self, embed: "Document") -> None:
        self.embeds.append(embed)

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True, slots=True)
class CapturedDocument:
    """Raw bytes and metadata snapshot of one embedded sub-document."""

    content: bytes
    metadata: Metadata

    @property
    def size(self) -> int:
        return len(self.content)
