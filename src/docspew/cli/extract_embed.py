"""CLI entrypoint for recovering one embedded document by digest."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from docspew.extraction.digest import DigestError
from docspew.extraction.memory import EmbeddedDocumentMemoryExtractor
from docspew.extraction.parser import ParseError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract an embedded document matching a content digest")
    parser.add_argument("--path", required=True, help="Container file to search")
    parser.add_argument("--digest", required=True, help="Hex digest of the embedded document")
    parser.add_argument("--algorithm", default="SHA-256", help="Digest algorithm")
    parser.add_argument("--modifier", default="", help="Digest modifier the digest was computed with")
    parser.add_argument("--output", help="Write the recovered bytes to this file")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    try:
        extractor = EmbeddedDocumentMemoryExtractor(args.algorithm, args.modifier)
    except ValueError as exc:
        parser.error(str(exc))

    source_path = Path(args.path)
    try:
        with source_path.open("rb") as stream:
            document = extractor.extract(stream, args.digest)
    except (ParseError, DigestError, OSError) as exc:
        print(json.dumps({"path": str(source_path), "found": False, "error": str(exc)}, ensure_ascii=True, indent=2))
        return 2

    payload: dict[str, object] = {"path": str(source_path), "digest": args.digest, "found": document is not None}
    if document is not None:
        payload["size"] = document.size
        payload["metadata"] = document.metadata.to_dict()
        if args.output:
            Path(args.output).write_bytes(document.content)
            payload["output"] = args.output

    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0 if document is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
