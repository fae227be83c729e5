from __future__ import annotations

import json
from typing import List, Optional

from pydantic import BaseModel, Field

# Field mapping of the search index. documentId is matched exactly by the
# search client, everything else is analysed full text.
INDEX_PROPERTIES = {
    "title": {"type": "text"},
    "url": {"type": "text"},
    "content": {"type": "text"},
    "documentTitle": {"type": "text"},
    "documentId": {"type": "keyword"},
}


class Document(BaseModel):
    path: str                  # relative to the source root, "/" separated
    content: str


class Section(BaseModel):
    title: str
    anchor_id: str
    url: str                   # page url + "#" + anchor_id
    text: str
    source_order: int


class DocumentMetadata(BaseModel):
    document_title: Optional[str] = None
    document_id: Optional[str] = None


class SearchDocument(BaseModel):
    """Body stored in the index for one section."""

    title: str
    url: str
    content: str
    documentTitle: Optional[str] = None
    documentId: Optional[str] = None


class IndexOperation(BaseModel):
    operation_id: str
    index_name: str
    section: Section
    document_title: Optional[str] = None
    document_id: Optional[str] = None

    def document(self) -> SearchDocument:
        return SearchDocument(
            title=self.section.title,
            url=self.section.url,
            content=self.section.text,
            documentTitle=self.document_title,
            documentId=self.document_id,
        )

    def action(self) -> dict:
        return {"index": {"_index": self.index_name, "_id": self.operation_id}}

    def payload_size(self) -> int:
        body = json.dumps(self.document().model_dump(), ensure_ascii=False)
        return len(body.encode("utf-8"))


class Batch(BaseModel):
    number: int
    operations: List[IndexOperation]
    payload_bytes: int = 0

    def to_ndjson(self) -> str:
        lines = []
        for op in self.operations:
            lines.append(json.dumps(op.action(), ensure_ascii=False))
            lines.append(json.dumps(op.document().model_dump(), ensure_ascii=False))
        return "\n".join(lines) + "\n"


class BatchResult(BaseModel):
    number: int
    operations: int
    ok: bool
    error: Optional[str] = None


class RunReport(BaseModel):
    index_name: str
    documents: int = 0
    skipped_documents: List[str] = Field(default_factory=list)
    sections: int = 0
    batches: List[BatchResult] = Field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def failed_batches(self) -> List[BatchResult]:
        return [b for b in self.batches if not b.ok]

    @property
    def ok(self) -> bool:
        return not self.failed_batches
