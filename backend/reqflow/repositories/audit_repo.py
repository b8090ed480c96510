"""Audit Repository - Data access for audit log entries (append-only)"""
from typing import List, Optional
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import AUDIT_LOGS, get_collection
from ..domain.models import AuditLogEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit log operations - there is no update or delete"""

    def __init__(self):
        self._audit_logs: Collection = get_collection(AUDIT_LOGS)

    def create_entries(
        self,
        entries: List[AuditLogEntry],
        session: Optional[ClientSession] = None
    ) -> List[AuditLogEntry]:
        """Insert audit entries"""
        if not entries:
            return []

        docs = []
        for entry in entries:
            doc = entry.model_dump(mode="python")
            doc["_id"] = entry.audit_id
            docs.append(doc)

        self._audit_logs.insert_many(docs, ordered=True, session=session)
        logger.info(
            f"Created {len(entries)} audit entries",
            extra={"request_id": entries[0].entity_id}
        )
        return entries

    def get_entries_for_entity(self, entity_id: str) -> List[AuditLogEntry]:
        """Entries for an entity, oldest first"""
        cursor = self._audit_logs.find({"entity_id": entity_id}).sort(
            [("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        return [AuditLogEntry.from_document(doc) for doc in cursor]
