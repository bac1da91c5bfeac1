from typing import Dict, Iterable, List

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase

from direct_messages.models.user import display_name_of
from direct_messages.repositories.message_repository import store_errors


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """Resolve display names for a batch of user ids.

        Ids with no profile are left out; the caller decides the fallback.
        """
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        lookup: List = list(ids)
        for uid in ids:
            try:
                lookup.append(ObjectId(uid))
            except (InvalidId, TypeError):
                pass
        with store_errors("get_display_names"):
            cursor = self._collection.find(
                {"_id": {"$in": lookup}},
                {"username": 1, "full_name": 1, "email": 1},
            )
            users = await cursor.to_list(length=None)
        names: Dict[str, str] = {}
        for user in users:
            user["_id"] = str(user["_id"])  # normalize for lookup by string id
            names[user["_id"]] = display_name_of(user)
        return names
