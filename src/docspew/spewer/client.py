"""Index client contract and the Solr JSON update API implementation."""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Any, Protocol, runtime_checkable

import httpx

from docspew.spewer.mapper import IndexRecord

DEFAULT_TIMEOUT_SECONDS = 30.0


class IndexClientError(Exception):
    """Base class for failures talking to the index."""


@dataclass(slots=True)
class IndexServerError(IndexClientError):
    """The server answered, but not with a usable update response."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class IndexHttpError(IndexClientError):
    status_code: int
    message: str

    def __str__(self) -> str:
        return f"{self.message} (status={self.status_code})"


@dataclass(slots=True)
class IndexTransportError(IndexClientError):
    """The request never produced a response."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class UpdateResponse:
    status: int
    qtime_ms: int
    elapsed_ms: int


@runtime_checkable
class IndexClient(Protocol):
    def add(self, record: IndexRecord, commit_within_ms: int | None = None) -> UpdateResponse:
        ...

    def commit(self) -> UpdateResponse:
        ...

    def close(self) -> None:
        ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("msg"):
            return str(error["msg"])

    text = response.text.strip()
    return text[:500] if text else response.reason_phrase


def _parse_update_response(response: httpx.Response, elapsed_ms: int) -> UpdateResponse:
    try:
        body = response.json()
    except ValueError as exc:
        raise IndexServerError(f"Malformed update response from index: {exc}") from exc

    header = body.get("responseHeader") if isinstance(body, dict) else None
    if not isinstance(header, dict):
        raise IndexServerError("Update response missing 'responseHeader'")

    try:
        status = int(header.get("status", 0))
        qtime_ms = int(header.get("QTime", 0))
    except (TypeError, ValueError) as exc:
        raise IndexServerError(f"Update response header is invalid: {exc}") from exc

    if status != 0:
        raise IndexServerError(f"Index reported update status {status}")

    return UpdateResponse(status=status, qtime_ms=qtime_ms, elapsed_ms=elapsed_ms)


class SolrClient:
    """Thin wrapper over ``httpx.Client`` for one Solr core's update handler."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        base = base_url.strip().rstrip("/")
        if not (base.startswith("http://") or base.startswith("https://")):
            raise ValueError("Solr URL must start with http:// or https://")

        self._base_url = base
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def add(self, record: IndexRecord, commit_within_ms: int | None = None) -> UpdateResponse:
        params: dict[str, Any] = {"wt": "json"}
        if commit_within_ms is not None:
            params["commitWithin"] = commit_within_ms
        return self._update(params, [record.to_payload()])

    def commit(self) -> UpdateResponse:
        return self._update({"commit": "true", "wt": "json"}, [])

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "SolrClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _update(self, params: dict[str, Any], body: object) -> UpdateResponse:
        started = time.perf_counter()
        try:
            response = self._client.post(f"{self._base_url}/update", params=params, json=body)
        except httpx.TransportError as exc:
            raise IndexTransportError(f"Error communicating with the index: {exc}") from exc
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        if response.is_error:
            raise IndexHttpError(response.status_code, _error_message(response))

        return _parse_update_response(response, elapsed_ms)
