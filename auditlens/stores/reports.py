"""MongoDB persistence for vulnerability reports."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional, Sequence

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..config import DEFAULT_COLLECTION, DEFAULT_DB_NAME
from ..llm.schemas import Vulnerability
from ..logging import get_logger

_SERVER_SELECTION_TIMEOUT_MS = 10_000


class StorageError(RuntimeError):
    """Raised when the document store cannot be reached."""


def _default_client_factory(uri: str) -> MongoClient:
    return MongoClient(uri, serverSelectionTimeoutMS=_SERVER_SELECTION_TIMEOUT_MS)


class ReportStore:
    """Caches a MongoDB client, health-checks it before reuse and reconnects on failure."""

    def __init__(
        self,
        uri: str | None,
        *,
        db_name: str = DEFAULT_DB_NAME,
        collection: str = DEFAULT_COLLECTION,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.uri = uri
        self.db_name = db_name
        self.collection_name = collection
        self._client_factory = client_factory or _default_client_factory
        self._client: Any = None
        self._db: Any = None
        self._lock = threading.Lock()
        self.logger = get_logger("stores.reports")
        if not uri:
            self.logger.error(
                "MONGODB_ATLAS_CONNECTION_STRING is not defined; analysis reports will not be saved."
            )

    @property
    def configured(self) -> bool:
        return bool(self.uri)

    def save_report(
        self,
        contract_identifier: str,
        selected_tools: Sequence[str],
        vulnerabilities: Sequence[Vulnerability],
    ) -> Optional[str]:
        """Insert a report document and return its id, or ``None`` on failure."""
        if not self.uri:
            self.logger.error(
                "Cannot save analysis report: MONGODB_ATLAS_CONNECTION_STRING is not defined."
            )
            return None
        document: Dict[str, Any] = {
            "contractIdentifier": contract_identifier,
            "analysisTimestamp": datetime.now(UTC),
            "selectedTools": list(selected_tools),
            "vulnerabilities": [item.model_dump(by_alias=True) for item in vulnerabilities],
        }
        try:
            db = self._connect()
            result = db[self.collection_name].insert_one(document)
        except (PyMongoError, StorageError) as exc:
            self.logger.error(
                "Error saving analysis report to MongoDB for identifier %s: %s",
                contract_identifier,
                exc,
            )
            return None
        inserted_id = str(result.inserted_id)
        self.logger.info(
            "Analysis report saved with ID: %s for identifier: %s",
            inserted_id,
            contract_identifier,
        )
        return inserted_id

    def close(self) -> None:
        with self._lock:
            self._discard_client()

    def _connect(self) -> Any:
        with self._lock:
            if self._client is not None and self._db is not None:
                try:
                    self._client.admin.command("ping")
                    return self._db
                except PyMongoError as exc:
                    self.logger.warning(
                        "MongoDB connection lost, attempting to reconnect: %s", exc
                    )
                    self._discard_client()

            if not self.uri:
                raise StorageError(
                    "MongoDB connection URI is not defined. Cannot connect to database."
                )

            try:
                client = self._client_factory(self.uri)
            except ValueError as exc:
                # pymongo rejects malformed URIs (bad port, unescaped credentials) with ValueError.
                raise StorageError(f"Invalid MongoDB connection URI: {exc}") from exc
            try:
                client.admin.command("ping")
            except PyMongoError:
                self.logger.error("Failed to connect to MongoDB")
                client.close()
                raise
            self._client = client
            self._db = client[self.db_name]
            self.logger.info("Connected to MongoDB database %s", self.db_name)
            return self._db

    def _discard_client(self) -> None:
        client = self._client
        self._client = None
        self._db = None
        if client is None:
            return
        try:
            client.close()
        except PyMongoError as exc:
            self.logger.debug("Ignoring error while closing MongoDB client: %s", exc)


__all__ = ["ReportStore", "StorageError"]
