"""
application.services.profile - UserProfile documents.

Profiles live in the top-level `users` collection keyed by uid. They are
written once at registration; a session watches its own profile so one
written after sign-in still shows up.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from domain.entities import UserProfile
from domain.exceptions import RecordDecodeError
from domain.models import CollectionPath, RawDocument
from domain.ports import CollectionGateway, ListenerRegistration

logger = logging.getLogger(__name__)

ProfileListener = Callable[[Optional[UserProfile]], None]


class ProfileService:
    """Reads, watches and creates account profiles through the gateway."""

    def __init__(self, gateway: CollectionGateway):
        self._gateway = gateway

    async def fetch(self, user_id: str) -> Optional[UserProfile]:
        """Return the stored profile, or None if missing or unreadable."""
        doc = await self._gateway.get_document(CollectionPath.users(), user_id)
        if doc is None:
            logger.debug("No profile stored for user %s", user_id)
            return None
        return self._decode(doc)

    def watch(self, user_id: str, listener: ProfileListener) -> ListenerRegistration:
        """Call `listener` with the user's profile (or None) on every change."""
        def _on_snapshot(docs, error) -> None:
            if error is not None or docs is None:
                logger.warning("Profile snapshot error for %s: %s", user_id, error)
                return
            doc = next((d for d in docs if d.id == user_id), None)
            listener(self._decode(doc) if doc is not None else None)

        return self._gateway.subscribe(CollectionPath.users(), _on_snapshot)

    async def create(self, user_id: str, full_name: str, email: str) -> UserProfile:
        """Write the registration-time profile for a new account."""
        profile = UserProfile(id=user_id, full_name=full_name, email=email)
        await self._gateway.set_document(
            CollectionPath.users(), user_id, profile.to_document(),
        )
        logger.info("Created profile for user %s", user_id)
        return profile

    @staticmethod
    def _decode(doc: RawDocument) -> Optional[UserProfile]:
        try:
            return UserProfile.from_document(doc.id, doc.data)
        except RecordDecodeError as exc:
            logger.warning("Unreadable profile for user %s: %s", doc.id, exc)
            return None
