from __future__ import annotations

import json
import logging
from pathlib import Path
import shutil
from typing import Any

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".pdf", ".csv", ".txt"}


def discover_documents(
    docs_dir: Path,
    *,
    seed_document: Path | None = None,
    supported_extensions: set[str] | None = None,
) -> list[Path]:
    if docs_dir.exists() and not docs_dir.is_dir():
        raise NotADirectoryError(f"Docs path is not a directory: {docs_dir}")
    docs_dir.mkdir(parents=True, exist_ok=True)

    if seed_document is not None:
        target = docs_dir / seed_document.name
        if seed_document.is_file() and not target.exists():
            shutil.copyfile(seed_document, target)
            logger.info("Seeded %s into %s", seed_document.name, docs_dir)
        elif not seed_document.is_file():
            logger.warning("Seed document not found: %s", seed_document)

    extensions = supported_extensions or SUPPORTED_EXTENSIONS
    files = sorted(
        path
        for path in docs_dir.iterdir()
        if path.is_file() and path.suffix.lower() in extensions
    )
    if not files:
        logger.info("No documents found in %s", docs_dir)
    return files


def load_corpus_records(corpus_path: Path) -> list[dict[str, Any]]:
    """Read a JSON-lines corpus; blank lines are ignored and malformed ones logged and skipped."""
    if not corpus_path.exists():
        raise FileNotFoundError(f"Corpus file not found: {corpus_path}")

    records: list[dict[str, Any]] = []
    with corpus_path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Skipping corpus line %d: %s", line_number, exc)
                continue
            if not isinstance(parsed, dict):
                logger.warning("Skipping corpus line %d: not a JSON object", line_number)
                continue
            records.append(parsed)

    logger.info("Found %d corpus records in %s", len(records), corpus_path)
    return records
