"""Index field naming."""

from __future__ import annotations

from dataclasses import dataclass
import re

_NON_WORD_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_ID_FIELD = "id"
DEFAULT_TEXT_FIELD = "content"
DEFAULT_PATH_FIELD = "path"
DEFAULT_PARENT_PATH_FIELD = "parent_path"
DEFAULT_BASE_TYPE_FIELD = "content_base_type"
DEFAULT_METADATA_PREFIX = "metadata_"
DEFAULT_TAG_PREFIX = "tag_"


@dataclass(frozen=True, slots=True)
class FieldNames:
    """Names of the index fields documents are written to.

    Set ``id``, ``path``, ``parent_path`` or ``base_type`` to ``None`` to stop
    writing that field.
    """

    id: str | None = DEFAULT_ID_FIELD
    text: str = DEFAULT_TEXT_FIELD
    path: str | None = DEFAULT_PATH_FIELD
    parent_path: str | None = DEFAULT_PARENT_PATH_FIELD
    base_type: str | None = DEFAULT_BASE_TYPE_FIELD
    metadata_prefix: str = DEFAULT_METADATA_PREFIX
    tag_prefix: str = DEFAULT_TAG_PREFIX

    def for_metadata(self, name: str) -> str:
        """Map a parser metadata name such as ``dc:title`` to ``metadata_dc_title``."""

        normalized = _NON_WORD_RE.sub("_", name.lower()).strip("_")
        return self.metadata_prefix + normalized

    def for_tag(self, name: str) -> str:
        return self.tag_prefix + name
