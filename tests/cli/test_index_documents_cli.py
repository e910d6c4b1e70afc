from __future__ import annotations

import io
import json
from pathlib import Path
import threading
from zipfile import ZipFile

import pytest

from docspew.cli import index_documents
from docspew.spewer.client import IndexHttpError, UpdateResponse
from docspew.spewer.mapper import IndexRecord


class _FakeSolrClient:
    instances: list["_FakeSolrClient"] = []

    def __init__(self, base_url: str, *, fail_on: str | None = None) -> None:
        self.base_url = base_url
        self.fail_on = fail_on
        self.records: list[tuple[IndexRecord, int | None]] = []
        self.commits = 0
        self.closed = False
        self._lock = threading.Lock()
        _FakeSolrClient.instances.append(self)

    def add(self, record: IndexRecord, commit_within_ms: int | None = None) -> UpdateResponse:
        path = record.value("path")
        if self.fail_on is not None and isinstance(path, str) and path.endswith(self.fail_on):
            raise IndexHttpError(400, "rejected")
        with self._lock:
            self.records.append((record, commit_within_ms))
        return UpdateResponse(status=0, qtime_ms=1, elapsed_ms=1)

    def commit(self) -> UpdateResponse:
        self.commits += 1
        return UpdateResponse(status=0, qtime_ms=1, elapsed_ms=1)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    for name in (
        "DOCSPEW_SOLR_URL",
        "DOCSPEW_COMMIT_INTERVAL",
        "DOCSPEW_COMMIT_WITHIN",
        "DOCSPEW_ATOMIC_WRITES",
        "DOCSPEW_FIX_DATES",
        "DOCSPEW_OUTPUT_METADATA",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(index_documents, "load_dotenv", lambda: False)
    _FakeSolrClient.instances = []


def _write_zip(path: Path, entries: list[tuple[str, bytes]]) -> None:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w") as archive:
        for name, data in entries:
            archive.writestr(name, data)
    path.write_bytes(buffer.getvalue())


def test_cli_indexes_directory_with_nested_children(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(index_documents, "SolrClient", _FakeSolrClient)
    docs = tmp_path / "docs"
    docs.mkdir()
    _write_zip(docs / "bundle.zip", [("a.txt", b"alpha"), ("b.txt", b"beta")])
    (docs / "note.txt").write_text("plain note", encoding="utf-8")
    (docs / ".hidden").write_text("skip me", encoding="utf-8")

    exit_code = index_documents.main(
        [
            "--path",
            str(docs),
            "--solr-url",
            "http://solr.test/solr/core1",
            "--commit-interval",
            "1",
            "--commit-within",
            "2s",
            "--tag",
            "project=demo",
            "--workers",
            "2",
        ]
    )

    stats = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert stats["scanned"] == 2
    assert stats["indexed"] == 2
    assert stats["errors"] == 0

    client = _FakeSolrClient.instances[0]
    assert client.base_url == "http://solr.test/solr/core1"
    assert client.closed is True
    assert client.commits >= 1
    assert all(commit_within == 2000 for _, commit_within in client.records)

    by_path = {str(record.value("path")): record for record, _ in client.records}
    bundle = by_path[(docs / "bundle.zip").as_posix()]
    assert [child.value("content") for child in bundle.children] == ["alpha", "beta"]
    assert bundle.value("tag_project") == "demo"


def test_cli_reports_write_errors(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(
        index_documents,
        "SolrClient",
        lambda base_url: _FakeSolrClient(base_url, fail_on="bad.txt"),
    )
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "bad.txt").write_text("bad", encoding="utf-8")
    (docs / "good.txt").write_text("good", encoding="utf-8")

    exit_code = index_documents.main(["--path", str(docs)])

    stats = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert stats["indexed"] == 1
    assert stats["errors"] == 1
    assert stats["error_details"][0]["source_path"] == str(docs / "bad.txt")
    assert "HTTP error 400" in stats["error_details"][0]["error"]


def test_cli_rejects_malformed_tag(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(index_documents, "SolrClient", _FakeSolrClient)

    with pytest.raises(SystemExit) as excinfo:
        index_documents.main(["--path", str(tmp_path), "--tag", "no-separator"])

    assert excinfo.value.code == 2


def test_cli_keeps_going_past_unreadable_archive(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr(index_documents, "SolrClient", _FakeSolrClient)
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "good.txt").write_text("good", encoding="utf-8")
    _write_zip(docs / "locked.zip", [("secret.txt", b"hidden")])
    data = bytearray((docs / "locked.zip").read_bytes())
    data[data.index(b"PK\x01\x02") + 8] |= 0x01
    (docs / "locked.zip").write_bytes(bytes(data))

    exit_code = index_documents.main(["--path", str(docs)])

    stats = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert stats["indexed"] == 1
    assert stats["errors"] == 1
    assert stats["error_details"][0]["source_path"] == str(docs / "locked.zip")
    assert "secret.txt" in stats["error_details"][0]["error"]
