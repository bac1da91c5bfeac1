import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

from direct_messages.exceptions import PartialWriteFailure, StoreUnavailable
from direct_messages.models.message import MessageDocument


logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str, write: bool = False) -> Iterator[None]:
    """Translate pymongo errors raised inside the block into messaging errors."""
    try:
        yield
    except ConnectionFailure as exc:
        raise StoreUnavailable(f"{operation} failed: store unreachable") from exc
    except PyMongoError as exc:
        if write:
            raise PartialWriteFailure(f"{operation} rejected by store: {exc}") from exc
        raise StoreUnavailable(f"{operation} failed: {exc}") from exc


def _utcnow_ms() -> datetime:
    # MongoDB keeps millisecond precision; truncate so the returned doc matches the stored one
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        with store_errors("ensure_indexes", write=True):
            await self.collection.create_index(
                [("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("created_at", ASCENDING)]
            )
            await self.collection.create_index([("receiver_id", ASCENDING), ("read", ASCENDING)])

    async def list_involving(self, user_id: str) -> List[MessageDocument]:
        query = {"$or": [{"sender_id": user_id}, {"receiver_id": user_id}]}
        sort = [("created_at", DESCENDING), ("_id", DESCENDING)]
        with store_errors("list_involving"):
            items = await self.collection.find(query).sort(sort).to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def list_thread(self, user_a: str, user_b: str) -> List[MessageDocument]:
        query = {
            "$or": [
                {"sender_id": user_a, "receiver_id": user_b},
                {"sender_id": user_b, "receiver_id": user_a},
            ]
        }
        sort = [("created_at", ASCENDING), ("_id", ASCENDING)]
        with store_errors("list_thread"):
            items = await self.collection.find(query).sort(sort).to_list(length=None)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def insert_message(self, sender_id: str, receiver_id: str, body: str) -> MessageDocument:
        doc: MessageDocument = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "body": body,
            "created_at": _utcnow_ms(),
            "read": False,
        }
        with store_errors("insert_message", write=True):
            result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def mark_read(self, receiver_id: str, sender_id: str) -> int:
        query = {"receiver_id": receiver_id, "sender_id": sender_id, "read": False}
        with store_errors("mark_read", write=True):
            result = await self.collection.update_many(query, {"$set": {"read": True}})
        return result.modified_count or 0

    async def count_unread(self, receiver_id: str, sender_id: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"receiver_id": receiver_id, "read": False}
        if sender_id:
            query["sender_id"] = sender_id
        with store_errors("count_unread"):
            return await self.collection.count_documents(query)
