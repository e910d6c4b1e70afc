"""Index writing: field mapping, the Solr client and batched commits."""

from .client import (
    IndexClient,
    IndexClientError,
    IndexHttpError,
    IndexServerError,
    IndexTransportError,
    SolrClient,
    UpdateResponse,
)
from .commit import CommitCoordinator, CommitOutcome, PendingCounter
from .config import SpewerSettings
from .errors import SpewerError, UnsupportedOperationError
from .fields import FieldNames
from .mapper import DocumentFieldMapper, IndexRecord, MappedField, UpdateMode
from .spewer import SolrSpewer

__all__ = [
    "CommitCoordinator",
    "CommitOutcome",
    "DocumentFieldMapper",
    "FieldNames",
    "IndexClient",
    "IndexClientError",
    "IndexHttpError",
    "IndexRecord",
    "IndexServerError",
    "IndexTransportError",
    "MappedField",
    "PendingCounter",
    "SolrClient",
    "SolrSpewer",
    "SpewerError",
    "SpewerSettings",
    "UnsupportedOperationError",
    "UpdateMode",
    "UpdateResponse",
]
