"""
application.repositories.menu - The signed-in user's menu catalog.
"""

from __future__ import annotations

from typing import Optional

from domain.catalog import CategoryClassifier, default_classifier, resolve_category
from domain.entities import MenuItem
from domain.models import MenuCategory, RawDocument, SyncPolicy
from domain.ports import CollectionGateway
from application.repositories.synced import SyncedRepository


class MenuRepository(SyncedRepository[MenuItem]):
    """Optimistic menu collection. Snapshot order is kept as delivered."""

    collection_name = "menu"

    def __init__(
        self,
        gateway: CollectionGateway,
        policy: SyncPolicy = SyncPolicy.REPLACE,
        classifier: CategoryClassifier = default_classifier,
    ):
        super().__init__(gateway, policy)
        self._classifier = classifier

    @property
    def classifier(self) -> CategoryClassifier:
        return self._classifier

    def _decode(self, doc: RawDocument) -> MenuItem:
        return MenuItem.from_document(doc.id, doc.data)

    def find_by_name(self, name: str) -> Optional[MenuItem]:
        for item in self._items:
            if item.name == name:
                return item
        return None

    def sorted_by_name(self) -> list[MenuItem]:
        return sorted(self._items, key=lambda item: item.name)

    def category_of(self, item_name: str) -> MenuCategory:
        """Category for reporting; legacy items fall back to the classifier."""
        return resolve_category(item_name, self.find_by_name(item_name), self._classifier)
