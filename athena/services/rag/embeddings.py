"""
Embedding service using Voyage AI for legal text (voyage-law-2 by default).

The model name doubles as the version tag stored with every chunk embedding,
so query and corpus vectors can be checked for coming from the same model.
"""

import logging
from typing import List, Optional

import httpx

from athena.config import settings
from athena.core.exceptions import (
    CorpusConfigurationError,
    EmbeddingFailure,
    InvalidInputError,
)
from athena.core.validators import validate_embedding

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Voyage AI embeddings with a fixed output dimensionality."""

    def __init__(
        self,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model or settings.EMBEDDING_MODEL
        self.dimension = dimension or settings.EMBEDDING_DIM
        self.api_key = api_key if api_key is not None else settings.VOYAGE_API_KEY
        self.base_url = base_url or settings.VOYAGE_BASE_URL
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT_SECONDS
        self._transport = transport

    async def embed(self, text: str) -> List[float]:
        """Embed a query string. Uses input_type 'query' for better retrieval."""
        if not text or not text.strip():
            raise InvalidInputError("cannot embed empty text")
        vectors = await self._request([text], input_type="query")
        return vectors[0]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple documents. Uses input_type 'document'."""
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise InvalidInputError("cannot embed empty document text")
        return await self._request(texts, input_type="document")

    async def _request(self, texts: List[str], input_type: str) -> List[List[float]]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/embeddings",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "model": self.model,
                        "input": texts,
                        "input_type": input_type,
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning("Voyage embeddings request failed (%s): %s", self.model, e)
            raise EmbeddingFailure(f"embedding provider error: {e}") from e
        except ValueError as e:
            raise EmbeddingFailure("embedding provider returned invalid JSON") from e

        try:
            items = sorted(data["data"], key=lambda d: d.get("index", 0))
            raw = [d["embedding"] for d in items]
        except (AttributeError, KeyError, TypeError) as e:
            raise EmbeddingFailure("embedding provider returned a malformed payload") from e

        if len(raw) != len(texts):
            raise EmbeddingFailure(
                f"expected {len(texts)} embeddings, provider returned {len(raw)}"
            )

        vectors: List[List[float]] = []
        for values in raw:
            try:
                vector = validate_embedding(values)
            except ValueError as e:
                raise EmbeddingFailure(str(e)) from e
            if len(vector) != self.dimension:
                raise CorpusConfigurationError(
                    f"model {self.model} returned {len(vector)} dimensions, "
                    f"corpus expects {self.dimension}"
                )
            vectors.append(vector)
        return vectors
