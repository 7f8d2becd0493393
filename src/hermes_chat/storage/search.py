"""Typesense mirror of the archive index, for full-text history search."""

from typing import Any

import typesense
from typesense.exceptions import ObjectNotFound

from hermes_chat.config import TypesenseConfig
from hermes_chat.logging import get_logger
from hermes_chat.models import ArchivedConversation

logger = get_logger("search")

COLLECTION_NAME = "archived_conversations"

ARCHIVES_SCHEMA: dict[str, Any] = {
    "name": COLLECTION_NAME,
    "fields": [
        {"name": "id", "type": "string"},
        {"name": "topic_id", "type": "string"},
        {"name": "title", "type": "string"},
        {"name": "tags", "type": "string[]", "facet": True},
        {"name": "summary", "type": "string"},
        {"name": "filename", "type": "string"},
        {"name": "archived_at", "type": "int64", "sort": True},
        {"name": "content", "type": "string"},
    ],
    "default_sorting_field": "archived_at",
}


class ArchiveSearchIndexer:
    """Indexes archived conversations in Typesense.

    The SQLite index stays authoritative; this collection only serves
    search, so write failures here are logged and reported as False.
    """

    def __init__(self, config: TypesenseConfig) -> None:
        """Initialize indexer with Typesense configuration.

        Args:
            config: TypesenseConfig with connection details
        """
        self._config = config
        self._client = typesense.Client({
            "nodes": [{
                "host": config.host,
                "port": str(config.port),
                "protocol": config.protocol,
            }],
            "api_key": config.api_key,
            "connection_timeout_seconds": 5,
        })

    @property
    def client(self) -> typesense.Client:
        """Access the underlying Typesense client."""
        return self._client

    def ensure_collection(self) -> None:
        """Create the archived_conversations collection if it doesn't exist."""
        try:
            self._client.collections[COLLECTION_NAME].retrieve()
            logger.debug("Collection already exists: collection=%s", COLLECTION_NAME)
        except ObjectNotFound:
            self._client.collections.create(ARCHIVES_SCHEMA)
            logger.info("Created collection: collection=%s", COLLECTION_NAME)

    def upsert_archive(self, record: ArchivedConversation) -> bool:
        """Create or replace the document for an archived conversation."""
        try:
            self._client.collections[COLLECTION_NAME].documents.upsert(record.to_typesense_doc())
            return True
        except Exception:
            logger.exception("Failed to index archived conversation: key=%s", record.key)
            return False

    def delete_archive(self, key: str) -> bool:
        """Remove an archived conversation's document.

        Returns False if the document was absent or Typesense could not be
        reached; the mirror is best effort.
        """
        try:
            self._client.collections[COLLECTION_NAME].documents[key].delete()
            return True
        except ObjectNotFound:
            return False
        except Exception:
            logger.exception("Failed to remove archived conversation from search: key=%s", key)
            return False

    def search_archives(
        self,
        query: str,
        page: int = 1,
        per_page: int = 10,
        tag: str | None = None,
    ) -> dict[str, Any]:
        """Search archived conversations.

        Args:
            query: Search query string (use "*" for all)
            page: Page number (1-based)
            per_page: Number of results per page
            tag: Only return conversations carrying this tag

        Returns:
            Search results from Typesense
        """
        search_params: dict[str, Any] = {
            "q": query,
            "query_by": "title,summary,tags,content",
            "page": page,
            "per_page": per_page,
            "sort_by": "archived_at:desc",
        }
        if tag:
            search_params["filter_by"] = f"tags:={tag}"

        return self._client.collections[COLLECTION_NAME].documents.search(search_params)
