"""
MongoDB backend for normalized jobs.

Same contract as the Convex store: one document per ``externalId``, inserted
when new, patched when its expiry, title or apply URL changed, skipped
otherwise.
"""

import asyncio
import time
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, IndexModel, InsertOne, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, PyMongoError

from hiring_scraper.core.config import settings
from hiring_scraper.core.exceptions import PersistenceError
from hiring_scraper.service.job_store import JobStore, UpsertCounts
from hiring_scraper.utils.logging import setup_logger

logger = setup_logger(__name__)

# A stored job is rewritten only when one of these differs.
CHANGE_FIELDS = ("isExpired", "title", "applyUrl")


def _now_millis() -> int:
    return int(time.time() * 1000)


class MongoJobStore(JobStore):
    name = "mongo"

    def __init__(
        self,
        database_name: Optional[str] = None,
        collection_name: str = "jobs",
        mongo_uri: Optional[str] = None,
        create_indexes: bool = True,
        collection: Optional[Collection] = None,
    ):
        """
        Connect to MongoDB, or wrap an existing collection.

        Args:
            database_name: Name of the MongoDB database
            collection_name: Name of the collection
            mongo_uri: MongoDB connection URI
            create_indexes: Whether to create indexes on initialization
            collection: Pre-built collection; skips connecting when given
        """
        self.client: Optional[MongoClient] = None

        if collection is None:
            self.mongo_uri = mongo_uri or settings.MONGO_URI
            try:
                self.client = MongoClient(str(self.mongo_uri))
                self.client.admin.command("ping")
                logger.info("Connected to MongoDB", extra={"uri": self.mongo_uri})
            except ConnectionFailure as e:
                logger.error("Failed to connect to MongoDB", extra={"error": str(e)})
                raise PersistenceError(f"mongo connect: {e}") from e
            collection = self.client[database_name or settings.DATABASE_NAME][collection_name]

        self.collection = collection

        if create_indexes:
            self._create_indexes()

    def _create_indexes(self) -> None:
        try:
            self.collection.create_indexes([
                IndexModel([("externalId", ASCENDING)], unique=True),
                IndexModel([("company", ASCENDING)]),
                IndexModel([("isExpired", ASCENDING)]),
                IndexModel([("scrapedAt", DESCENDING)]),
            ])
            logger.info("Database indexes created")
        except PyMongoError as e:
            logger.warning("Error creating indexes", extra={"error": str(e)})

    def _plan(self, jobs: list[dict[str, Any]]) -> tuple[list[Any], UpsertCounts]:
        ids = [job["externalId"] for job in jobs]
        projection = {field: 1 for field in CHANGE_FIELDS}
        projection["externalId"] = 1
        known = {doc["externalId"]: doc for doc in self.collection.find({"externalId": {"$in": ids}}, projection)}

        operations: list[Any] = []
        counts = UpsertCounts()
        now = _now_millis()

        for job in jobs:
            document = {**job, "scrapedAt": now}
            existing = known.get(job["externalId"])
            if existing is None:
                operations.append(InsertOne(document))
                counts.inserted += 1
            elif any(existing.get(field) != job.get(field) for field in CHANGE_FIELDS):
                operations.append(UpdateOne({"externalId": job["externalId"]}, {"$set": document}))
                counts.updated += 1
            else:
                counts.skipped += 1
                continue
            # Later duplicates in the same batch compare against this version.
            known[job["externalId"]] = document

        return operations, counts

    def _bulk_upsert_sync(self, jobs: list[dict[str, Any]]) -> UpsertCounts:
        operations, counts = self._plan(jobs)
        if operations:
            self.collection.bulk_write(operations, ordered=True)
        return counts

    async def bulk_upsert(self, jobs: list[dict[str, Any]]) -> UpsertCounts:
        try:
            return await asyncio.to_thread(self._bulk_upsert_sync, jobs)
        except PyMongoError as e:
            raise PersistenceError(f"mongo bulk upsert: {e}") from e

    def _list_all_sync(self) -> list[dict[str, Any]]:
        jobs = []
        for doc in self.collection.find({}):
            doc.pop("_id", None)
            jobs.append(doc)
        return jobs

    async def list_all(self) -> list[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._list_all_sync)
        except PyMongoError as e:
            raise PersistenceError(f"mongo list: {e}") from e

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
            self.client = None
