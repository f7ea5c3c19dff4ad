from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProcessedDocument:
    content: str
    metadata: dict[str, str]
    source_id: str


@dataclass(frozen=True)
class IndexedDocument:
    document: ProcessedDocument
    embedding: list[float]

    @property
    def source_id(self) -> str:
        return self.document.source_id


@dataclass(frozen=True)
class RetrievalHit:
    indexed: IndexedDocument
    score: float

    @property
    def document(self) -> ProcessedDocument:
        return self.indexed.document


@dataclass(frozen=True)
class SkippedDocument:
    source: str
    reason: str


@dataclass(frozen=True)
class IngestionSummary:
    document_count: int
    skipped: list[SkippedDocument] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)
