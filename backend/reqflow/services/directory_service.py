"""Directory Service - Remember actors and resolve user IDs to display names"""
from typing import Dict, Iterable, Optional

from ..domain.models import ActorContext, UserProfile
from ..repositories.store import RequestStore, get_request_store
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryService:
    """
    Lightweight user directory

    Profiles are captured from authenticated tokens, so a name is known
    once that user has called the API at least once.
    """

    def __init__(self, store: Optional[RequestStore] = None):
        self.store = store if store is not None else get_request_store()

    def remember_actor(self, actor: ActorContext) -> None:
        """Upsert the actor's profile from their token claims"""
        self.store.upsert_user(UserProfile(
            user_id=actor.user_id,
            display_name=actor.display_name,
            email=actor.email,
            roles=list(actor.roles),
            last_seen_at=utc_now(),
        ))

    def resolve_names(self, user_ids: Iterable[Optional[str]]) -> Dict[str, str]:
        """Map user IDs to display names; unknown IDs map to themselves"""
        ids = [user_id for user_id in dict.fromkeys(user_ids) if user_id]
        profiles = self.store.get_users(ids)
        return {
            user_id: profiles[user_id].display_name if user_id in profiles else user_id
            for user_id in ids
        }
