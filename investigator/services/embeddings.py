from __future__ import annotations

import asyncio
import hashlib
import math
import re
import time
from typing import Any

from loguru import logger

from investigator.config import settings

TOKEN_RE = re.compile(r"[a-z0-9]+")


class LocalEmbeddingService:
    """Sentence-transformers embeddings, run off the event loop.

    When the model weights cannot be loaded (offline host, bad model name) the
    service degrades to feature-hashed bag-of-words vectors.
    """

    def __init__(self, model_name: str | None = None, batch_size: int | None = None, dim: int = 384):
        self.model_name = model_name or settings.local_embed_model
        self.batch_size = batch_size or int(settings.local_embed_batch_size)
        self.dim = dim
        self._model: Any | None = None
        self._load_attempted = False
        self._lock = asyncio.Lock()

    @property
    def using_fallback(self) -> bool:
        return self._load_attempted and self._model is None

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            if not self._load_attempted:
                await asyncio.to_thread(self._load_model)
                self._load_attempted = True
        return await asyncio.to_thread(self._embed_sync, texts)

    async def embed_text(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        return vectors[0]

    def _load_model(self) -> None:
        try:
            self._model = _sentence_transformer(self.model_name)
        except (OSError, ValueError) as exc:
            logger.warning(f"Embedding model {self.model_name} unavailable, using hashed vectors: {exc}")
            self._model = None

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        if self._model is None:
            return [hashed_embedding(text, self.dim) for text in texts]

        retries = 3
        for attempt in range(retries):
            try:
                vectors = self._model.encode(
                    texts,
                    batch_size=self.batch_size,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                )
                return [list(map(float, row)) for row in vectors]
            except RuntimeError as exc:
                if attempt == retries - 1:
                    logger.warning(f"Embedding failed after {retries} attempts, using hashed vectors: {exc}")
                    break
                time.sleep(0.2 * (attempt + 1))
        return [hashed_embedding(text, self.dim) for text in texts]


def _sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


def hashed_embedding(text: str, dim: int = 384) -> list[float]:
    """Signed feature hashing of lowercase word tokens, L2-normalized."""
    vector = [0.0] * dim
    for token in TOKEN_RE.findall(text.lower()):
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        vector[(value >> 1) % dim] += 1.0 if value & 1 else -1.0
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]
