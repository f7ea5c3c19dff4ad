from __future__ import annotations

from collections.abc import Sequence

from assistant.services.rag.types import RetrievalHit

DOCUMENT_SEPARATOR = "\n\n---\n\n"


class ContextAssembler:
    def __init__(self, *, separator: str = DOCUMENT_SEPARATOR) -> None:
        self._separator = separator

    def format_hit(self, hit: RetrievalHit) -> str:
        metadata = hit.document.metadata
        heading = metadata.get("heading", "").strip()
        source = metadata.get("source") or metadata.get("filename") or ""
        url = metadata.get("url", "").strip()

        lines: list[str] = []
        if heading:
            lines.append(f"# {heading}")
        lines.append(hit.document.content.strip())
        if source:
            lines.append(f"Source: {source}")
        if url:
            lines.append(f"Reference: [{heading or 'Link'}]({url})")
        return "\n".join(lines)

    def assemble(self, hits: Sequence[RetrievalHit]) -> str:
        """Render ranked hits into one context block; empty input gives ``""``."""
        return self._separator.join(self.format_hit(hit) for hit in hits)
