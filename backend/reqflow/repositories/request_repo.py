"""Request Repository - Data access for request documents"""
from typing import Any, Dict, List, Optional
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import REQUESTS, get_collection
from ..domain.errors import ConflictError, RequestNotFoundError
from ..domain.models import RequestFilters
from ..domain.request import Request
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RequestRepository:
    """Repository for request operations"""

    def __init__(self):
        self._requests: Collection = get_collection(REQUESTS)

    def create_request(self, request: Request, session: Optional[ClientSession] = None) -> Request:
        """Insert a new request document"""
        doc = request.model_dump(mode="python")
        doc["_id"] = request.request_id
        self._requests.insert_one(doc, session=session)
        logger.info(f"Created request: {request.request_id}", extra={"request_id": request.request_id})
        return request

    def get_request(self, request_id: str, session: Optional[ClientSession] = None) -> Optional[Request]:
        doc = self._requests.find_one({"request_id": request_id}, session=session)
        if doc:
            doc.pop("_id", None)
            return Request.model_validate(doc)
        return None

    def get_request_or_raise(self, request_id: str) -> Request:
        request = self.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(
                f"Request {request_id} not found",
                details={"request_id": request_id}
            )
        return request

    def replace_request(
        self,
        request: Request,
        expected_version: int,
        session: Optional[ClientSession] = None
    ) -> int:
        """Replace the request document if it is still at expected_version"""
        new_version = expected_version + 1
        doc = request.model_dump(mode="python")
        doc["version"] = new_version
        doc.pop("request_id")

        result = self._requests.update_one(
            {"request_id": request.request_id, "version": expected_version},
            {"$set": doc},
            session=session,
        )

        if result.matched_count == 0:
            exists = self._requests.find_one(
                {"request_id": request.request_id},
                {"version": 1},
                session=session,
            )
            if exists:
                raise ConflictError(
                    f"Request {request.request_id} was modified. Please refresh and try again.",
                    details={
                        "expected_version": expected_version,
                        "current_version": exists.get("version"),
                    }
                )
            raise RequestNotFoundError(
                f"Request {request.request_id} not found",
                details={"request_id": request.request_id}
            )

        logger.info(
            f"Updated request: {request.request_id}",
            extra={"request_id": request.request_id, "version": new_version}
        )
        return new_version

    def list_requests(self, filters: RequestFilters) -> List[Request]:
        cursor = (
            self._requests.find(self._build_query(filters))
            .sort("updated_at", DESCENDING)
            .skip(filters.skip)
            .limit(filters.limit)
        )
        requests = []
        for doc in cursor:
            doc.pop("_id", None)
            requests.append(Request.model_validate(doc))
        return requests

    def count_requests(self, filters: RequestFilters) -> int:
        return self._requests.count_documents(self._build_query(filters))

    def _build_query(self, filters: RequestFilters) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if filters.requester_id:
            query["requester_id"] = filters.requester_id
        if filters.assignee_id:
            query["assignee_id"] = filters.assignee_id
        if filters.participant_id:
            query["$or"] = [
                {"requester_id": filters.participant_id},
                {"assignee_id": filters.participant_id},
                {"reviewer_id": filters.participant_id},
                {"watcher_ids": filters.participant_id},
            ]
        if filters.status:
            query["status"] = filters.status.value
        if filters.statuses:
            _merge(query, "status", {"$in": [s.value for s in filters.statuses]})
        if filters.exclude_requester_id:
            _merge(query, "requester_id", {"$ne": filters.exclude_requester_id})
        if filters.request_type:
            query["request_type"] = filters.request_type.value
        if filters.priority:
            query["priority"] = filters.priority.value
        return query


def _merge(query: Dict[str, Any], field: str, condition: Dict[str, Any]) -> None:
    """Add operator conditions to a field that may already hold an exact match"""
    current = query.get(field)
    if current is None:
        query[field] = condition
    elif isinstance(current, dict):
        current.update(condition)
    else:
        query[field] = {"$eq": current, **condition}
