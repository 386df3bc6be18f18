"""
domain.catalog - Menu category classification.

Legacy menu items carry no category. Reports fall back to a name table
for those; any callable of the same shape can replace it.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from domain.entities import MenuItem
from domain.models import MenuCategory

CategoryClassifier = Callable[[str], MenuCategory]

DEFAULT_CAKE_NAMES = frozenset({
    'Chocolate Cake (6")',
    'Red Velvet Cake (6")',
    'Red Velvet Cake (8")',
    'Sansrival Cake (6")',
    'Sansrival Cake (8")',
    'Ube Leche Flan Cake (6")',
    'Ube Leche Flan Cake (8")',
    'Ube Macapuno Cake (6")',
    'Ube Macapuno Cake (8")',
    'Custard Cake (8x8")',
    "Custard Cake (9x13)",
})

DEFAULT_DESSERT_NAMES = frozenset({
    'Brownies (8x8")',
    'Butterscotch Brownies (8x8")',
    "Leche Flan",
    "Cheese Rolls",
    "Crinkles",
    "Kuntsinta",
    "Puto",
})


class NameTableClassifier:
    """Classify by exact name membership; anything unknown is Other."""

    def __init__(
        self,
        cakes: Iterable[str] = DEFAULT_CAKE_NAMES,
        desserts: Iterable[str] = DEFAULT_DESSERT_NAMES,
    ):
        self._cakes = frozenset(cakes)
        self._desserts = frozenset(desserts)

    def __call__(self, name: str) -> MenuCategory:
        if name in self._cakes:
            return MenuCategory.CAKE
        if name in self._desserts:
            return MenuCategory.DESSERT
        return MenuCategory.OTHER


default_classifier: CategoryClassifier = NameTableClassifier()


def resolve_category(
    item_name: str,
    menu_item: Optional[MenuItem],
    classifier: CategoryClassifier = default_classifier,
) -> MenuCategory:
    """Stored category wins; otherwise ask the classifier."""
    if menu_item is not None and menu_item.category is not None:
        return menu_item.category
    return classifier(item_name)
