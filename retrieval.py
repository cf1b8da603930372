import asyncio
import logging
from typing import List, Optional, Protocol

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from sentence_transformers import SentenceTransformer

from config import AppConfig
from errors import RetrievalError
from prompt import RetrievedPassage

logger = logging.getLogger(__name__)


class Retriever(Protocol):
    """Anything that returns passages relevant to a query, best match first."""

    async def search(self, query: str, k: int) -> List[RetrievedPassage]: ...


class QdrantRetriever:
    """
    Vector similarity search over a Qdrant collection.

    Queries are embedded with a SentenceTransformer and matched against
    points whose payload follows the ingestion layout::

        {"page_content": "<text>", "metadata": {...}}

    Results are returned in the order Qdrant ranks them.

    Args:
        config: Application settings including Qdrant and embedding configuration.
        client: Optional pre-built Qdrant client.
        embedder: Optional pre-loaded embedding model.
    """

    def __init__(
        self,
        config: AppConfig,
        client: Optional[AsyncQdrantClient] = None,
        embedder: Optional[SentenceTransformer] = None,
    ):
        self.collection = config.qdrant_collection
        if client is None:
            client = AsyncQdrantClient(url=config.qdrant_url)
        if embedder is None:
            embedder = SentenceTransformer(config.embedding_model)
        self.client = client
        self.embedder = embedder

    async def search(self, query: str, k: int) -> List[RetrievedPassage]:
        """
        Retrieve the ``k`` passages closest to the query.

        Args:
            query: The user question or search prompt.
            k: Maximum number of passages to return.

        Returns:
            Passages ordered by relevance, most relevant first.

        Raises:
            RetrievalError: If the query cannot be embedded, Qdrant cannot be
                queried, or it returns malformed points.
        """
        try:
            q_vec = await asyncio.to_thread(
                self.embedder.encode, f"query: {query}", normalize_embeddings=True
            )
        except Exception as e:  # noqa: BLE001
            raise RetrievalError(f"Embedding query failed: {e!r}") from e

        try:
            search = (
                await self.client.query_points(
                    collection_name=self.collection,
                    query=q_vec.tolist(),
                    limit=k,
                    with_payload=True,
                )
            ).points
        except (UnexpectedResponse, ResponseHandlingException) as e:
            raise RetrievalError(
                f"Qdrant search in '{self.collection}' failed: {e}"
            ) from e

        if not search:
            logger.warning("⚠️  No vector hits returned from Qdrant")
            return []

        try:
            passages = [
                RetrievedPassage(
                    text=p.payload["page_content"],
                    metadata=dict(p.payload.get("metadata") or {}),
                )
                for p in search
            ]
        except (KeyError, TypeError) as e:
            raise RetrievalError(
                f"Malformed point payload in '{self.collection}': {e}"
            ) from e

        logger.debug(f"🔎 Retrieved {len(passages)} passages for query: {query!r}")
        return passages
