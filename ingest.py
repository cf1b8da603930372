"""
Load a CSV corpus into the Qdrant collection searched by the chat API.

The first column of each row is the passage text; any further columns are
kept as metadata (``column_1``, ``column_2``, ...). Run once before starting
the server:

    python ingest.py healthcare_dataset.csv
    python ingest.py data.csv --skip-header --batch-size 128
"""

import argparse
import csv
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams
from sentence_transformers import SentenceTransformer

from config import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class Document:
    """
    A passage read from the source corpus.

    Attributes:
        id: Unique identifier, also used as the Qdrant point id.
        page_content: Passage text.
        metadata: Remaining row columns plus the ``id``.
    """

    id: str
    page_content: str
    metadata: Dict[str, Any]


def read_documents_from_csv(path: Path, skip_header: bool = False) -> List[Document]:
    """
    Read one document per non-empty CSV row.

    Args:
        path: CSV file to read.
        skip_header: Ignore the first row.

    Returns:
        Documents in file order.
    """
    docs = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        if skip_header:
            next(reader, None)
        for record in reader:
            if not record:
                continue
            doc_id = str(uuid.uuid4())
            metadata: Dict[str, Any] = {"id": doc_id}
            for i, value in enumerate(record[1:], start=1):
                metadata[f"column_{i}"] = value
            docs.append(Document(id=doc_id, page_content=record[0], metadata=metadata))
    return docs


def ensure_collection(client: QdrantClient, collection: str, vector_size: int) -> bool:
    """
    Create the collection with cosine distance if it does not exist.

    Returns:
        True if the collection was created, False if it already existed.
    """
    if client.collection_exists(collection):
        logger.info(f"Collection {collection} already exists")
        return False

    client.create_collection(
        collection_name=collection,
        vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
    )
    logger.info(f"Created collection: {collection}")
    return True


def ingest_documents(
    client: QdrantClient,
    embedder: SentenceTransformer,
    collection: str,
    docs: List[Document],
    batch_size: int = 64,
) -> int:
    """
    Embed documents and upsert them as points, ``batch_size`` at a time.

    Returns:
        Number of points written.
    """
    written = 0
    for start in range(0, len(docs), batch_size):
        batch = docs[start : start + batch_size]
        vectors = embedder.encode(
            [f"passage: {d.page_content}" for d in batch], normalize_embeddings=True
        )
        client.upsert(
            collection_name=collection,
            points=[
                PointStruct(
                    id=d.id,
                    vector=list(map(float, vec)),
                    payload={"page_content": d.page_content, "metadata": d.metadata},
                )
                for d, vec in zip(batch, vectors)
            ],
        )
        written += len(batch)
        logger.debug(f"📥 Upserted {written}/{len(docs)} documents")
    return written


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ingest", description="Load a CSV corpus into the Qdrant collection."
    )
    parser.add_argument("csv_path", type=Path, help="CSV file to ingest.")
    parser.add_argument(
        "--skip-header", action="store_true", default=False, help="Ignore the first row."
    )
    parser.add_argument(
        "--batch-size", type=int, default=64, help="Documents embedded per upsert."
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    config = AppConfig.load()

    docs = read_documents_from_csv(args.csv_path, skip_header=args.skip_header)
    logger.info(f"Read {len(docs)} documents from {args.csv_path}")

    embedder = SentenceTransformer(config.embedding_model)
    client = QdrantClient(url=config.qdrant_url)

    ensure_collection(
        client, config.qdrant_collection, embedder.get_sentence_embedding_dimension()
    )
    written = ingest_documents(
        client, embedder, config.qdrant_collection, docs, batch_size=args.batch_size
    )
    logger.info(f"✅ Ingested {written} documents into {config.qdrant_collection}")


if __name__ == "__main__":
    main()
