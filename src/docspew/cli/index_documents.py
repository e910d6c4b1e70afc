"""CLI entrypoint for parsing documents and writing them to a Solr core."""

from __future__ import annotations

import argparse
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
import threading
import time

from dotenv import load_dotenv

from docspew.extraction.digest import DigestError, Digester
from docspew.extraction.parser import ParseError, ZipContainerParser
from docspew.extraction.tree import DocumentTreeBuilder
from docspew.spewer.client import SolrClient
from docspew.spewer.config import SpewerSettings
from docspew.spewer.errors import SpewerError
from docspew.spewer.spewer import SolrSpewer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexRunStats:
    scanned: int = 0
    indexed: int = 0
    errors: int = 0
    duration_ms: int = 0
    error_details: list[dict[str, str]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_indexed(self) -> None:
        with self._lock:
            self.indexed += 1

    def record_error(self, source_path: str, error: str) -> None:
        with self._lock:
            self.errors += 1
            self.error_details.append({"source_path": source_path, "error": error})

    def to_dict(self) -> dict[str, int | list[dict[str, str]]]:
        return {
            "scanned": self.scanned,
            "indexed": self.indexed,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
            "error_details": self.error_details,
        }


def _collect_inputs(target: Path) -> list[Path]:
    if target.is_file():
        return [target]
    if target.is_dir():
        return sorted(
            path
            for path in target.rglob("*")
            if path.is_file() and not any(part.startswith(".") for part in path.relative_to(target).parts)
        )
    return []


def _parse_tags(raw_tags: list[str]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for raw in raw_tags:
        name, separator, value = raw.partition("=")
        if not separator or not name.strip():
            raise ValueError(f"Tag must look like name=value, got {raw!r}")
        tags[name.strip()] = value.strip()
    return tags


def _index_one(
    file_path: Path,
    *,
    builder: DocumentTreeBuilder,
    spewer: SolrSpewer,
    stats: IndexRunStats,
) -> None:
    source_path = str(file_path)
    try:
        document = builder.build(file_path)
        spewer.write(document)
    except (ParseError, DigestError, SpewerError, OSError) as exc:
        logger.error("Failed to index %s: %s", source_path, exc)
        stats.record_error(source_path, str(exc))
        return
    except Exception as exc:
        # A malformed file must not take the rest of the run down with it.
        logger.error("Unexpected failure indexing %s", source_path, exc_info=True)
        stats.record_error(source_path, f"{type(exc).__name__}: {exc}")
        return
    stats.record_indexed()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Parse documents and write them to a Solr core")
    parser.add_argument("--path", required=True, help="Source file or directory")
    parser.add_argument("--solr-url", help="Solr core URL (defaults to DOCSPEW_SOLR_URL)")
    parser.add_argument("--commit-interval", help="Commit every time this many documents are added")
    parser.add_argument("--commit-within", help="Ask Solr to commit each document within this duration")
    parser.add_argument("--atomic-writes", action="store_true", default=None, help="Make atomic updates")
    parser.add_argument("--no-fix-dates", dest="fix_dates", action="store_false", default=None)
    parser.add_argument("--no-metadata", dest="output_metadata", action="store_false", default=None)
    parser.add_argument("--tag", action="append", default=[], help="Tag written with every document, name=value")
    parser.add_argument("--algorithm", default="SHA-256", help="Digest algorithm used for document ids")
    parser.add_argument("--modifier", default="", help="Digest modifier used for document ids")
    parser.add_argument("--workers", type=int, default=1, help="Concurrent writer threads")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    if args.workers < 1:
        parser.error("--workers must be >= 1")

    try:
        settings = SpewerSettings.from_env().with_options(
            {
                "commitInterval": args.commit_interval,
                "commitWithin": args.commit_within,
                "atomicWrites": args.atomic_writes,
                "fixDates": args.fix_dates,
                "outputMetadata": args.output_metadata,
                "tags": _parse_tags(args.tag) if args.tag else None,
            }
        )
        digester = Digester(args.algorithm, args.modifier)
        client = SolrClient(args.solr_url or settings.solr_url)
    except ValueError as exc:
        parser.error(str(exc))

    builder = DocumentTreeBuilder(ZipContainerParser(), digester)
    files = _collect_inputs(Path(args.path))
    stats = IndexRunStats(scanned=len(files))
    started = time.perf_counter()

    with SolrSpewer(client, settings=settings) as spewer:
        with ThreadPoolExecutor(max_workers=args.workers, thread_name_prefix="spewer") as executor:
            futures = [
                executor.submit(_index_one, file_path, builder=builder, spewer=spewer, stats=stats)
                for file_path in files
            ]
            for future in futures:
                future.result()

    stats.duration_ms = int((time.perf_counter() - started) * 1000)
    print(json.dumps(stats.to_dict(), ensure_ascii=True, indent=2))
    return 0 if stats.errors == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
