"""Map a hierarchical document onto flat index fields with nested child records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import PurePath
import re
from typing import Mapping

from docspew.document.models import CONTENT_TYPE, TITLE, Document, Metadata
from docspew.spewer.fields import FieldNames

logger = logging.getLogger(__name__)

_MEDIA_TYPE_RE = re.compile(r"^\s*([\w!#$&^.+-]+)/([\w!#$&^.+-]+)\s*(?:;.*)?$")

# Image metadata extractors emit these without a zone when the source has none.
DATE_FIELD_NAMES = frozenset(
    {
        "dcterms:created",
        "dcterms:modified",
        "meta:save-date",
        "meta:creation-date",
        "modified",
        "Last-Modified",
        "date",
        "Last-Save-Date",
        "Creation-Date",
    }
)

CHILD_DOCUMENTS_KEY = "_childDocuments_"


class UpdateMode(str, Enum):
    REPLACE = "replace"
    SET = "set"


FieldValue = str | tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MappedField:
    name: str
    value: FieldValue
    mode: UpdateMode = UpdateMode.REPLACE

    def payload_value(self) -> object:
        value: object = list(self.value) if isinstance(self.value, tuple) else self.value
        if self.mode is UpdateMode.SET:
            return {"set": value}
        return value


@dataclass(slots=True)
class IndexRecord:
    """One document's fields plus the records of its embedded children."""

    fields: dict[str, MappedField] = field(default_factory=dict)
    children: list["IndexRecord"] = field(default_factory=list)

    @property
    def mapped_fields(self) -> list[MappedField]:
        return list(self.fields.values())

    def set_field(self, mapped: MappedField) -> None:
        self.fields[mapped.name] = mapped

    def get(self, name: str) -> MappedField | None:
        return self.fields.get(name)

    def value(self, name: str) -> FieldValue | None:
        mapped = self.fields.get(name)
        return mapped.value if mapped is not None else None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {name: mapped.payload_value() for name, mapped in self.fields.items()}
        if self.children:
            payload[CHILD_DOCUMENTS_KEY] = [child.to_payload() for child in self.children]
        return payload


def media_base_type(value: str) -> str | None:
    """Return ``type/subtype`` without parameters, or ``None`` when unparseable."""

    match = _MEDIA_TYPE_RE.match(value)
    if match is None:
        return None
    return f"{match.group(1)}/{match.group(2)}".lower()


def _name_count(path: PurePath) -> int:
    return len([part for part in path.parts if part != path.anchor])


class DocumentFieldMapper:
    """Produces a fresh :class:`IndexRecord` tree for each document mapped.

    With ``atomic_writes`` every field but the identifier is sent as a partial
    ``set`` update, so fields missing from the payload keep their stored value.
    """

    def __init__(
        self,
        fields: FieldNames | None = None,
        *,
        output_metadata: bool = True,
        atomic_writes: bool = False,
        fix_dates: bool = True,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        self._fields = fields or FieldNames()
        self._output_metadata = output_metadata
        self._atomic_writes = atomic_writes
        self._fix_dates = fix_dates
        self._tags = dict(tags or {})

    @property
    def fields(self) -> FieldNames:
        return self._fields

    def map(self, document: Document) -> IndexRecord:
        record = IndexRecord()
        fields = self._fields

        if self._output_metadata:
            self._set_metadata_fields(document.metadata, record)

        for name, value in self._tags.items():
            self._set(record, fields.for_tag(name), value)

        # Identity is always a full replace.
        if fields.id is not None and document.id is not None:
            record.set_field(MappedField(fields.id, document.id, UpdateMode.REPLACE))

        if fields.base_type is not None:
            base_types = self._base_types(document)
            if base_types:
                self._set(record, fields.base_type, base_types)

        if fields.path is not None:
            self._set(record, fields.path, str(document.path))

        if fields.parent_path is not None and _name_count(document.path) > 1:
            self._set(record, fields.parent_path, str(document.path.parent))

        self._set(record, fields.text, document.text)

        for embed in document.embeds:
            record.children.append(self.map(embed))

        return record

    def _set(self, record: IndexRecord, name: str, value: str | list[str] | tuple[str, ...]) -> None:
        stored: FieldValue = value if isinstance(value, str) else tuple(value)
        mode = UpdateMode.SET if self._atomic_writes else UpdateMode.REPLACE
        record.set_field(MappedField(name, stored, mode))

    def _set_metadata_fields(self, metadata: Metadata, record: IndexRecord) -> None:
        for name in metadata.names():
            field_name = self._fields.for_metadata(name)

            # Bad HTML files can have many titles. Ignore all but the first.
            if metadata.is_multi_valued(name) and name != TITLE:
                values = [value for value in metadata.get_values(name) if value]

                # Parsers sometimes repeat the content type.
                if name == CONTENT_TYPE and len(metadata.get_values(name)) > 1:
                    values = list(dict.fromkeys(values))

                if values:
                    self._set(record, field_name, values)
                continue

            value = metadata.get(name)
            if value and self._fix_dates and name in DATE_FIELD_NAMES and not value.endswith("Z"):
                value = value + "Z"
            if value:
                self._set(record, field_name, value)

    def _base_types(self, document: Document) -> list[str]:
        base_types: list[str] = []
        for raw in document.metadata.get_values(CONTENT_TYPE):
            base = media_base_type(raw)
            if base is None:
                logger.warning('Content type could not be parsed: "%s". Was: "%s".', document, raw)
                base = raw
            if base not in base_types:
                base_types.append(base)
        return base_types
