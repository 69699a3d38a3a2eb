"""
OpenSearch Vector Store
Handles k-NN vector storage and filtered similarity search
"""
from typing import List, Dict, Any, Optional, Sequence
import logging

from opensearchpy import AsyncOpenSearch

from storage.vector_store import (
    IN_OPERATOR,
    SearchResult,
    UpsertResult,
    VectorRecord,
    VectorStore,
    validate_filter,
)

logger = logging.getLogger(__name__)

# Metadata fields that are filtered on and must be indexed as exact keywords
KEYWORD_FIELDS = ("docType", "chunkId", "parentId", "source", "originalUrl")


def build_filter_clauses(metadata_filter: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Translate a flat metadata filter into OpenSearch term/terms clauses"""
    clauses = []
    for key, condition in validate_filter(metadata_filter).items():
        if isinstance(condition, dict):
            clauses.append({"terms": {key: list(condition[IN_OPERATOR])}})
        else:
            clauses.append({"term": {key: condition}})
    return clauses


class OpenSearchVectorStore(VectorStore):
    """Async OpenSearch client for vector operations"""

    def __init__(
        self,
        index_name: str,
        dimension: int,
        host: str = "localhost",
        port: int = 9200,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 30.0,
        client: Optional[AsyncOpenSearch] = None
    ):
        self.index_name = index_name
        self.dimension = dimension
        self.timeout = timeout

        if client is not None:
            self.client = client
        else:
            http_auth = (username, password) if username and password else None
            self.client = AsyncOpenSearch(
                hosts=[{"host": host, "port": port}],
                http_auth=http_auth,
                use_ssl=use_ssl,
                verify_certs=use_ssl,
                timeout=timeout,
            )

    def index_mapping(self) -> Dict[str, Any]:
        """k-NN index mapping with keyword metadata fields"""
        properties: Dict[str, Any] = {field: {"type": "keyword"} for field in KEYWORD_FIELDS}
        properties.update({
            "text": {"type": "text"},
            "title": {"type": "text"},
            "position": {"type": "integer"},
            "startChar": {"type": "integer"},
            "endChar": {"type": "integer"},
            "embedding": {
                "type": "knn_vector",
                "dimension": self.dimension,
                "method": {
                    "name": "hnsw",
                    "space_type": "cosinesimil",
                    "engine": "lucene",
                    "parameters": {
                        "ef_construction": 512,
                        "m": 16
                    }
                }
            }
        })

        return {
            "mappings": {"properties": properties},
            "settings": {
                "index": {
                    "knn": True,
                    "knn.algo_param.ef_search": 512
                }
            }
        }

    async def create_index(self):
        """Create the vector index if it does not exist yet"""
        try:
            await self.client.indices.create(index=self.index_name, body=self.index_mapping())
            logger.info(f"Created OpenSearch index {self.index_name} (dimension {self.dimension})")
        except Exception as e:
            if "already exists" not in str(e).lower():
                raise
            logger.debug(f"OpenSearch index {self.index_name} already exists")

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> UpsertResult:
        """Index records with their ids as document ids, so rewrites overwrite"""
        result = UpsertResult()
        if not records:
            return result

        bulk_body = []
        for record in records:
            bulk_body.extend([
                {"index": {"_index": self.index_name, "_id": record.id}},
                {**record.metadata, "text": record.text, "embedding": list(record.vector)}
            ])

        try:
            response = await self.client.bulk(body=bulk_body, request_timeout=self.timeout)
        except Exception as e:
            logger.error(f"Bulk upsert of {len(records)} records failed: {e}")
            for record in records:
                result.failed[record.id] = str(e)
            return result

        for item in response.get("items", []):
            action = item.get("index", {})
            doc_id = action.get("_id")
            if action.get("error"):
                error = action["error"]
                reason = error.get("reason", str(error)) if isinstance(error, dict) else str(error)
                result.failed[doc_id] = reason
            else:
                result.succeeded_ids.append(doc_id)

        if result.failed:
            logger.warning(f"Bulk upsert: {len(result.failed)} of {len(records)} records rejected")
        return result

    async def similarity_search(
        self,
        query_vector: List[float],
        k: int,
        metadata_filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """Perform filtered k-NN similarity search"""
        filters = build_filter_clauses(metadata_filter)

        knn_clause: Dict[str, Any] = {
            "vector": list(query_vector),
            "k": k
        }
        if filters:
            # Efficient filtering: the filter is applied during the k-NN search
            knn_clause["filter"] = {"bool": {"filter": filters}}

        body = {
            "size": k,
            "_source": {"excludes": ["embedding"]},
            "query": {"knn": {"embedding": knn_clause}}
        }

        response = await self.client.search(
            index=self.index_name,
            body=body,
            request_timeout=self.timeout
        )

        results = []
        for hit in response["hits"]["hits"]:
            source = dict(hit["_source"])
            text = source.pop("text", "")
            results.append(SearchResult(
                id=hit["_id"],
                score=hit["_score"],
                text=text,
                metadata=source
            ))

        return results

    async def count(self, metadata_filter: Optional[Dict[str, Any]] = None) -> int:
        filters = build_filter_clauses(metadata_filter)
        body = {"query": {"bool": {"filter": filters}}} if filters else {"query": {"match_all": {}}}
        response = await self.client.count(index=self.index_name, body=body)
        return int(response.get("count", 0))

    async def refresh(self):
        """Make recent writes visible to search"""
        await self.client.indices.refresh(index=self.index_name)

    async def health_check(self) -> bool:
        """Check OpenSearch connectivity"""
        try:
            response = await self.client.cluster.health()
            return response.get("status") in ["green", "yellow"]
        except Exception as e:
            logger.warning(f"OpenSearch health check failed: {e}")
            return False

    async def close(self):
        """Close OpenSearch connection"""
        if self.client:
            await self.client.close()
