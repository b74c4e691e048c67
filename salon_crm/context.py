"""
Tenant (salon) and actor resolution.

Managers carry their salon on ``profiles``; collaborators on their active
``team`` record. A configured salon id short-circuits both lookups.
"""

import logging
from typing import Optional

from .exceptions import StoreError
from .store.base import QueryFilter, StoreClient

logger = logging.getLogger(__name__)


class TenantResolver:
    """Resolves the current actor and their salon through the store"""

    def __init__(self, store: StoreClient, salon_id: Optional[str] = None):
        self.store = store
        self.salon_id = salon_id
        self._cached_salon_id: Optional[str] = None

    async def actor_id(self) -> Optional[str]:
        return await self.store.current_user_id()

    async def tenant_id(self) -> Optional[str]:
        """Salon id for the current actor, or None if it can't be determined"""
        if self.salon_id:
            return self.salon_id
        if self._cached_salon_id:
            return self._cached_salon_id

        user_id = await self.actor_id()
        if not user_id:
            logger.error("❌ Cannot resolve salon: no authenticated user")
            return None

        try:
            profile = await self.store.query_one("profiles", QueryFilter(eq={"id": user_id}))
            if profile and profile.get("salon_id"):
                self._cached_salon_id = str(profile["salon_id"])
                return self._cached_salon_id

            member = await self.store.query_one(
                "team", QueryFilter(eq={"user_id": user_id, "is_active": True})
            )
        except StoreError as e:
            logger.error(f"❌ Salon lookup failed for user {user_id}: {e}")
            return None

        if member and member.get("salon_id"):
            self._cached_salon_id = str(member["salon_id"])
            return self._cached_salon_id

        logger.warning(f"⚠️ No salon found for user {user_id}")
        return None

    def forget(self) -> None:
        """Drop the cached salon (e.g. after the session changes)"""
        self._cached_salon_id = None
