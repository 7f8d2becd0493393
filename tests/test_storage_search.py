"""Tests for the Typesense archive mirror."""

from unittest.mock import MagicMock, patch

import pytest
from typesense.exceptions import ObjectNotFound

from hermes_chat.config import TypesenseConfig
from hermes_chat.models import ArchivedConversation, Role, TranscriptEntry
from hermes_chat.storage.search import ARCHIVES_SCHEMA, ArchiveSearchIndexer


@pytest.fixture
def config() -> TypesenseConfig:
    """Provide a test TypesenseConfig."""
    return TypesenseConfig(
        enabled=True,
        host="localhost",
        port=8108,
        protocol="http",
        api_key="test-api-key",
    )


@pytest.fixture
def mock_client() -> MagicMock:
    """Provide a mock Typesense client."""
    return MagicMock()


@pytest.fixture
def indexer(config: TypesenseConfig, mock_client: MagicMock) -> ArchiveSearchIndexer:
    """Provide an ArchiveSearchIndexer with mocked client."""
    with patch("hermes_chat.storage.search.typesense.Client", return_value=mock_client):
        return ArchiveSearchIndexer(config)


@pytest.fixture
def record() -> ArchivedConversation:
    """Provide an archived conversation."""
    return ArchivedConversation(
        key="conv-1",
        topic_id="topic-1",
        title="Japan Trip",
        tags=["travel"],
        summary="- trip in March",
        suggested_filename="japan-trip",
        archived_at=1_700_000_000,
        conversation=[
            TranscriptEntry(id="u1", role=Role.USER, text="Plan my trip to Japan"),
            TranscriptEntry(id="s1", role=Role.SYSTEM, text="Created file"),
            TranscriptEntry(id="m1", role=Role.MODEL, text="Sure, when?"),
        ],
        filename="chat-history/2025-03-15-01-japan-trip.md",
    )


class TestArchiveSearchIndexerInit:
    """Tests for ArchiveSearchIndexer initialization."""

    def test_creates_client_with_config(self, config: TypesenseConfig) -> None:
        """The client is built from the Typesense config."""
        with patch("hermes_chat.storage.search.typesense.Client") as mock_client_class:
            ArchiveSearchIndexer(config)

            mock_client_class.assert_called_once_with({
                "nodes": [{
                    "host": "localhost",
                    "port": "8108",
                    "protocol": "http",
                }],
                "api_key": "test-api-key",
                "connection_timeout_seconds": 5,
            })

    def test_client_property(self, indexer: ArchiveSearchIndexer, mock_client: MagicMock) -> None:
        """The underlying client is exposed."""
        assert indexer.client is mock_client


class TestEnsureCollection:
    """Tests for ensure_collection."""

    def test_creates_collection_when_missing(
        self, indexer: ArchiveSearchIndexer, mock_client: MagicMock
    ) -> None:
        """A missing collection is created from the schema."""
        mock_client.collections.__getitem__.return_value.retrieve.side_effect = ObjectNotFound("missing")

        indexer.ensure_collection()

        mock_client.collections.create.assert_called_once_with(ARCHIVES_SCHEMA)

    def test_skips_existing_collection(
        self, indexer: ArchiveSearchIndexer, mock_client: MagicMock
    ) -> None:
        """An existing collection is left alone."""
        mock_client.collections.__getitem__.return_value.retrieve.return_value = {"name": "archived_conversations"}

        indexer.ensure_collection()

        mock_client.collections.create.assert_not_called()


class TestUpsertArchive:
    """Tests for upsert_archive."""

    def test_upserts_document(
        self,
        indexer: ArchiveSearchIndexer,
        mock_client: MagicMock,
        record: ArchivedConversation,
    ) -> None:
        """The record is sent as a Typesense document."""
        assert indexer.upsert_archive(record) is True

        documents = mock_client.collections.__getitem__.return_value.documents
        documents.upsert.assert_called_once_with({
            "id": "conv-1",
            "topic_id": "topic-1",
            "title": "Japan Trip",
            "tags": ["travel"],
            "summary": "- trip in March",
            "filename": "chat-history/2025-03-15-01-japan-trip.md",
            "archived_at": 1_700_000_000,
            "content": "user: Plan my trip to Japan\nmodel: Sure, when?",
        })

    def test_failure_is_reported_not_raised(
        self,
        indexer: ArchiveSearchIndexer,
        mock_client: MagicMock,
        record: ArchivedConversation,
    ) -> None:
        """Search indexing failures do not propagate."""
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.upsert.side_effect = ConnectionError("typesense down")

        assert indexer.upsert_archive(record) is False


class TestDeleteArchive:
    """Tests for delete_archive."""

    def test_deletes_document(self, indexer: ArchiveSearchIndexer, mock_client: MagicMock) -> None:
        """The document with the record key is deleted."""
        documents = mock_client.collections.__getitem__.return_value.documents

        assert indexer.delete_archive("conv-1") is True
        documents.__getitem__.assert_called_with("conv-1")

    def test_missing_document(self, indexer: ArchiveSearchIndexer, mock_client: MagicMock) -> None:
        """A missing document is reported as False."""
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.__getitem__.return_value.delete.side_effect = ObjectNotFound("conv-1")

        assert indexer.delete_archive("conv-1") is False

    def test_unreachable_server_is_reported_not_raised(
        self, indexer: ArchiveSearchIndexer, mock_client: MagicMock
    ) -> None:
        """Connection failures are logged and reported as False."""
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.__getitem__.return_value.delete.side_effect = ConnectionError("typesense down")

        assert indexer.delete_archive("conv-1") is False


class TestSearchArchives:
    """Tests for search_archives."""

    def test_search_params(self, indexer: ArchiveSearchIndexer, mock_client: MagicMock) -> None:
        """Queries search all text fields, newest first."""
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.search.return_value = {"found": 0, "hits": []}

        result = indexer.search_archives("japan", per_page=5)

        assert result == {"found": 0, "hits": []}
        documents.search.assert_called_once_with({
            "q": "japan",
            "query_by": "title,summary,tags,content",
            "page": 1,
            "per_page": 5,
            "sort_by": "archived_at:desc",
        })

    def test_tag_filter(self, indexer: ArchiveSearchIndexer, mock_client: MagicMock) -> None:
        """A tag restricts results with a filter."""
        documents = mock_client.collections.__getitem__.return_value.documents

        indexer.search_archives("*", tag="travel")

        assert documents.search.call_args[0][0]["filter_by"] == "tags:=travel"
