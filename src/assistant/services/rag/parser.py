"""Turn raw files and pre-chunked corpus records into `ProcessedDocument`s.

Supported inputs are PDF (via PyMuPDF), CSV, plain text and JSON-lines chunk
records. Every failure is raised as a `DocumentParseError` subclass so the
ingestion layer can skip a single document without aborting the batch.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, BinaryIO

import fitz  # PyMuPDF

from assistant.services.rag.types import ProcessedDocument

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = {"pdf", "csv", "txt", "jsonl-chunk"}

FileInput = str | Path | BinaryIO


class DocumentParseError(ValueError):
    pass


class UnsupportedTypeError(DocumentParseError):
    pass


class ParseError(DocumentParseError):
    pass


class EmptyContentError(DocumentParseError):
    pass


def _normalize_type(value: str) -> str:
    return value.strip().lower().lstrip(".")


def _read_input(file: FileInput) -> tuple[bytes, str]:
    if isinstance(file, (str, Path)):
        path = Path(file)
        try:
            return path.read_bytes(), path.name
        except OSError as exc:
            raise ParseError(f"Could not read {path}: {exc}") from exc

    name = Path(str(getattr(file, "name", "") or "upload")).name
    try:
        data = file.read()
    except OSError as exc:
        raise ParseError(f"Could not read {name}: {exc}") from exc
    if isinstance(data, str):
        data = data.encode("utf-8")
    return data, name


def _decode_utf8(data: bytes, *, filename: str) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{filename} is not valid UTF-8 text") from exc


def _page_spans_text(page: fitz.Page) -> str:
    lines: list[str] = []
    for block in page.get_text("dict").get("blocks", []):
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            text = "".join(span.get("text", "") for span in line.get("spans", []))
            if text.strip():
                lines.append(text)
    return "\n".join(lines)


def _parse_pdf(data: bytes, filename: str) -> ProcessedDocument:
    try:
        pdf = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise ParseError(f"{filename} is not a readable PDF: {exc}") from exc

    pages: list[str] = []
    with pdf:
        if pdf.needs_pass:
            raise ParseError(f"{filename} is password protected")
        page_count = pdf.page_count
        try:
            for page in pdf:
                text = page.get_text("text")
                if not text.strip():
                    # no plain text layer; retry with span-level extraction
                    text = _page_spans_text(page)
                if not text.strip():
                    logger.debug("No extractable text on page %d of %s", page.number + 1, filename)
                    continue
                pages.append(text.rstrip("\n"))
        except (RuntimeError, ValueError) as exc:
            raise ParseError(f"Could not extract text from {filename}: {exc}") from exc

    content = "\n".join(pages)
    if not content.strip():
        raise EmptyContentError(f"No text could be extracted from {filename}")

    return ProcessedDocument(
        content=content,
        metadata={"type": "pdf", "filename": filename, "pageCount": str(page_count)},
        source_id=filename,
    )


def _parse_csv(data: bytes, filename: str) -> ProcessedDocument:
    text = _decode_utf8(data, filename=filename)
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise EmptyContentError(f"{filename} has no rows")

    try:
        rows = [[column.strip() for column in row] for row in csv.reader(lines)]
    except csv.Error as exc:
        raise ParseError(f"{filename} is not valid CSV: {exc}") from exc

    headers, records = rows[0], rows[1:]
    parts: list[str] = []
    for row in records:
        if len(row) != len(headers):
            continue
        parts.append("\n".join(f"{header}: {value}" for header, value in zip(headers, row)))
        parts.append("\n\n")

    content = "".join(parts)
    if not content.strip():
        raise EmptyContentError(f"{filename} has no rows matching its header")

    return ProcessedDocument(
        content=content,
        metadata={"type": "csv", "filename": filename, "rowCount": str(len(lines))},
        source_id=filename,
    )


def _parse_txt(data: bytes, filename: str) -> ProcessedDocument:
    content = _decode_utf8(data, filename=filename)
    if not content.strip():
        raise EmptyContentError(f"{filename} is empty")

    return ProcessedDocument(
        content=content,
        metadata={"type": "txt", "filename": filename},
        source_id=filename,
    )


def _parse_jsonl_chunk(data: bytes, filename: str) -> ProcessedDocument:
    text = _decode_utf8(data, filename=filename)
    try:
        record = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{filename} is not a valid chunk record: {exc}") from exc
    return parse_chunk_record(record)


_PARSERS = {
    "pdf": _parse_pdf,
    "csv": _parse_csv,
    "txt": _parse_txt,
    "jsonl-chunk": _parse_jsonl_chunk,
}


def resolve_file_type(file: FileInput, file_type: str | None = None) -> str:
    if file_type:
        resolved = _normalize_type(file_type)
    else:
        name = str(file) if isinstance(file, (str, Path)) else str(getattr(file, "name", ""))
        resolved = _normalize_type(Path(name).suffix)

    if resolved not in SUPPORTED_TYPES:
        raise UnsupportedTypeError(
            f"Unsupported file type {resolved!r} (supported: {sorted(SUPPORTED_TYPES)})"
        )
    return resolved


def parse(file: FileInput, file_type: str | None = None) -> ProcessedDocument:
    resolved = resolve_file_type(file, file_type)
    data, filename = _read_input(file)
    return _PARSERS[resolved](data, filename)


def parse_chunk_record(record: Any) -> ProcessedDocument:
    """Map one corpus record `{chunk, metadata: {heading, source, url?}}` onto a document."""
    if not isinstance(record, dict):
        raise ParseError("Chunk record must be a JSON object")

    chunk = record.get("chunk")
    metadata = record.get("metadata")
    if not isinstance(chunk, str):
        raise ParseError("Chunk record is missing 'chunk' text")
    if not isinstance(metadata, dict):
        raise ParseError("Chunk record is missing 'metadata'")

    heading = metadata.get("heading")
    source = metadata.get("source")
    if not isinstance(heading, str) or not isinstance(source, str):
        raise ParseError("Chunk metadata requires string 'heading' and 'source'")
    if not chunk.strip():
        raise EmptyContentError(f"Chunk {source}-{heading} has no text")

    mapped = {"type": "chunk", "heading": heading, "source": source}
    url = metadata.get("url")
    if isinstance(url, str) and url.strip():
        mapped["url"] = url.strip()

    return ProcessedDocument(content=chunk, metadata=mapped, source_id=f"{source}-{heading}")
