"""User Repository - Directory of actors seen by the service"""
from typing import Dict, List
from pymongo import ASCENDING
from pymongo.collection import Collection

from .mongo_client import USERS, get_collection
from ..domain.models import UserProfile


class UserRepository:
    """Repository for user profiles"""

    def __init__(self):
        self._users: Collection = get_collection(USERS)

    def upsert_user(self, profile: UserProfile) -> None:
        doc = profile.model_dump(mode="python")
        self._users.update_one(
            {"user_id": profile.user_id},
            {"$set": doc, "$setOnInsert": {"_id": profile.user_id}},
            upsert=True,
        )

    def get_users(self, user_ids: List[str]) -> Dict[str, UserProfile]:
        if not user_ids:
            return {}
        profiles = {}
        for doc in self._users.find({"user_id": {"$in": list(user_ids)}}):
            doc.pop("_id", None)
            profiles[doc["user_id"]] = UserProfile.model_validate(doc)
        return profiles

    def get_user_ids_by_role(self, role: str) -> List[str]:
        """Roles are stored upper-cased, as they come off the token"""
        cursor = self._users.find({"roles": role.upper()}, {"user_id": 1}).sort("user_id", ASCENDING)
        return [doc["user_id"] for doc in cursor]
