"""Writes mapped documents to a Solr core, committing in batches."""

from __future__ import annotations

import logging
import threading
from typing import Mapping

from docspew.document.models import Document
from docspew.spewer.client import (
    IndexClient,
    IndexHttpError,
    IndexServerError,
    IndexTransportError,
    UpdateResponse,
)
from docspew.spewer.commit import CommitCoordinator, CommitOutcome
from docspew.spewer.config import SpewerSettings
from docspew.spewer.errors import SpewerError, UnsupportedOperationError
from docspew.spewer.fields import FieldNames
from docspew.spewer.mapper import DocumentFieldMapper, IndexRecord

logger = logging.getLogger(__name__)


class SolrSpewer:
    """Index writer safe to share between worker threads.

    Write failures raise :class:`SpewerError`. Commit failures are only
    logged, since the document itself was already accepted by the index.
    """

    def __init__(
        self,
        client: IndexClient,
        fields: FieldNames | None = None,
        settings: SpewerSettings | None = None,
    ) -> None:
        self._client = client
        self._fields = fields or FieldNames()
        self._settings = settings or SpewerSettings()
        self._coordinator = CommitCoordinator(client, self._settings.commit_interval)
        self._mapper = self._build_mapper()

    @property
    def settings(self) -> SpewerSettings:
        return self._settings

    @property
    def mapper(self) -> DocumentFieldMapper:
        return self._mapper

    @property
    def pending(self) -> int:
        return self._coordinator.pending

    def configure(self, options: Mapping[str, object]) -> "SolrSpewer":
        self._settings = self._settings.with_options(options)
        self._coordinator.threshold = self._settings.commit_interval
        self._mapper = self._build_mapper()
        return self

    def _build_mapper(self) -> DocumentFieldMapper:
        return DocumentFieldMapper(
            self._fields,
            output_metadata=self._settings.output_metadata,
            atomic_writes=self._settings.atomic_writes,
            fix_dates=self._settings.fix_dates,
            tags=self._settings.tags,
        )

    def write(self, document: Document, cancel: threading.Event | None = None) -> None:
        record = self._mapper.map(document)

        try:
            response = self._add(record)
        except IndexServerError as exc:
            raise SpewerError(
                str(document), "Unable to add document to the index. There was a server-side error."
            ) from exc
        except IndexHttpError as exc:
            raise SpewerError(
                str(document),
                f"Unable to add document to the index. HTTP error {exc.status_code} was returned.",
                exc.status_code,
            ) from exc
        except (IndexTransportError, OSError) as exc:
            raise SpewerError(
                str(document), "Unable to add document to the index. There was an error communicating with the server."
            ) from exc

        logger.info('Document added to the index in %dms: "%s".', response.elapsed_ms, document)
        self._coordinator.record_write()

        if self._coordinator.threshold > 0:
            self._coordinator.maybe_commit(self._coordinator.threshold, cancel=cancel)

    def write_metadata(self, document: Document) -> None:
        raise UnsupportedOperationError(f"Metadata-only writes are not supported: {document}")

    def commit_pending(self, threshold: int, cancel: threading.Event | None = None) -> CommitOutcome:
        return self._coordinator.maybe_commit(threshold, cancel=cancel)

    def _add(self, record: IndexRecord) -> UpdateResponse:
        commit_within_ms = self._settings.commit_within_ms
        if commit_within_ms is not None:
            return self._client.add(record, commit_within_ms=commit_within_ms)
        return self._client.add(record)

    def close(self) -> None:
        # Commit whatever is left when auto-committing is enabled.
        try:
            if self._coordinator.threshold > 0:
                self._coordinator.flush()
        finally:
            self._client.close()

    def __enter__(self) -> "SolrSpewer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
