"""
Trading knowledge base search.

Documents are stored with their embedding in the ``knowledge_documents``
table and ranked against the query embedding by cosine similarity.
"""

import logging
import math
import re
from typing import Any

import litellm
import numpy as np

from trade_analyst.config import AIConfig
from trade_analyst.exceptions import ConfigurationError, DataFetchError
from trade_analyst.models import KnowledgeChunk, KnowledgeContext
from trade_analyst.storage.database import Database
from trade_analyst.storage.models import KnowledgeDocument

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = 1536
KB_TYPES = ("stock", "forex")
EMBED_BATCH_SIZE = 100
DEFAULT_CHUNK_CHARS = 2000


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Embeddings must have same dimensions")
    va, vb = np.asarray(a, dtype=float), np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def _field(item: Any, key: str) -> Any:
    return item[key] if isinstance(item, dict) else getattr(item, key)


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def split_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> list[str]:
    """Pack blank-line separated paragraphs into chunks of at most ``max_chars``; longer paragraphs are cut."""
    chunks: list[str] = []
    current = ""
    for paragraph in (p.strip() for p in re.split(r"\n\s*\n", text)):
        while len(paragraph) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(paragraph[:max_chars])
            paragraph = paragraph[max_chars:].lstrip()
        if not paragraph:
            continue
        if current and len(current) + 2 + len(paragraph) > max_chars:
            chunks.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph
    if current:
        chunks.append(current)
    return chunks


def format_context_for_prompt(context: KnowledgeContext) -> str:
    """Render search results as a markdown block for prompt injection."""
    if not context.chunks:
        return "No relevant knowledge base content found."

    sections = []
    for i, chunk in enumerate(context.chunks, 1):
        source = chunk.metadata.get("source") or "Unknown source"
        title = chunk.metadata.get("title") or ""
        sections.append(
            f"### Source {i}: {title} ({source})\nRelevance: {chunk.similarity * 100:.1f}%\n\n{chunk.content}"
        )
    return "## Relevant Knowledge Base Content\n\n" + "\n\n---\n\n".join(sections)


class KnowledgeBase:
    def __init__(self, database: Database, ai_config: AIConfig):
        self.db = database
        self.model = ai_config.embedding_model
        self._api_key = ai_config.openai_api_key
        self._api_base = ai_config.openai_base_url

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self._api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        try:
            response = await litellm.aembedding(
                model=f"openai/{self.model}",
                input=texts,
                dimensions=EMBEDDING_DIMENSIONS,
                api_key=self._api_key,
                api_base=self._api_base,
            )
        except Exception as e:
            raise DataFetchError(f"Embedding request failed: {e}") from e

        items = sorted(response.data, key=lambda item: _field(item, "index"))
        return [_field(item, "embedding") for item in items]

    async def add_documents(
        self, contents: list[str], metadata: dict[str, Any] | None = None, kb_type: str = "stock"
    ) -> list[int]:
        """Embed and store chunks of one source; each chunk gets its position in the metadata."""
        if kb_type not in KB_TYPES:
            raise ValueError(f"kb_type must be one of {KB_TYPES}")

        embeddings: list[list[float]] = []
        for start in range(0, len(contents), EMBED_BATCH_SIZE):
            embeddings.extend(await self.embed(contents[start : start + EMBED_BATCH_SIZE]))

        docs = []
        for i, (content, embedding) in enumerate(zip(contents, embeddings, strict=True)):
            doc_metadata = dict(metadata or {})
            if len(contents) > 1:
                doc_metadata.update(chunk=i + 1, chunks=len(contents))
            docs.append(
                KnowledgeDocument(kb_type=kb_type, content=content, doc_metadata=doc_metadata, embedding=embedding)
            )

        with self.db.session() as session:
            session.add_all(docs)
            session.flush()
            doc_ids = [doc.id for doc in docs]

        tokens = sum(estimate_tokens(c) for c in contents)
        logger.info(f"[KnowledgeBase] Added {len(doc_ids)} {kb_type} document(s) ({tokens} tokens)")
        return doc_ids

    async def add_document(self, content: str, metadata: dict[str, Any] | None = None, kb_type: str = "stock") -> int:
        [doc_id] = await self.add_documents([content], metadata, kb_type)
        return doc_id

    def count_documents(self, kb_type: str | None = None) -> int:
        with self.db.session() as session:
            query = session.query(KnowledgeDocument)
            if kb_type:
                query = query.filter(KnowledgeDocument.kb_type == kb_type)
            return query.count()

    async def search(self, query: str, kb_type: str = "stock", limit: int = 5) -> KnowledgeContext:
        [query_embedding] = await self.embed([query])

        with self.db.session() as session:
            docs = session.query(KnowledgeDocument).filter(KnowledgeDocument.kb_type == kb_type).all()
            scored = [
                KnowledgeChunk(
                    id=doc.id,
                    content=doc.content,
                    metadata=dict(doc.doc_metadata or {}),
                    similarity=cosine_similarity(query_embedding, doc.embedding),
                )
                for doc in docs
            ]

        scored.sort(key=lambda c: c.similarity, reverse=True)
        chunks = scored[:limit]
        return KnowledgeContext(
            query=query,
            chunks=chunks,
            total_tokens=sum(estimate_tokens(c.content) for c in chunks),
        )
