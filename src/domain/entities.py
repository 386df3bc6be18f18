"""
domain.entities - Persistence-aware types (have IDs, timestamps).

These dataclasses are decoupled from any persistence strategy. Each entity
knows how to turn itself into a document body (the camelCase keys the
document store holds) and how to rebuild itself from one. The document id
is never part of the body; the store assigns it on first write.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from domain.exceptions import RecordDecodeError
from domain.models import MenuCategory, OrderStatus


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _require(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise RecordDecodeError(f"missing field '{key}'")
    value = data[key]
    # bool is an int subclass; a stored true/false is never a valid number
    if isinstance(value, bool) or not isinstance(value, kind):
        raise RecordDecodeError(
            f"field '{key}' has type {type(value).__name__}"
        )
    return value


def _decode_status(raw: str) -> str:
    try:
        return OrderStatus(raw).value
    except ValueError as exc:
        raise RecordDecodeError(f"unknown order status {raw!r}") from exc


@dataclass
class Order:
    """One customer purchase to be fulfilled."""
    id: Optional[str] = None
    item_name: str = ""
    customer_name: str = ""
    quantity: int = 1
    total: float = 0.0
    notes: str = ""
    source: str = ""
    timestamp: str = ""
    pickup_date: str = ""  # YYYY-MM-DD
    pickup_time: str = ""  # HH:MM
    status: str = OrderStatus.PENDING.value

    @classmethod
    def create(cls, **fields: Any) -> Order:
        """Build a new, unpersisted order stamped with the current time."""
        fields.pop("id", None)
        fields.setdefault("timestamp", utc_now_iso())
        return cls(**fields)

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def is_pending(self) -> bool:
        return self.status == OrderStatus.PENDING.value

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.pickup_date, self.pickup_time)

    def with_id(self, doc_id: str) -> Order:
        return replace(self, id=doc_id)

    def to_document(self) -> dict[str, Any]:
        return {
            "itemName": self.item_name,
            "customerName": self.customer_name,
            "quantity": self.quantity,
            "total": self.total,
            "notes": self.notes,
            "source": self.source,
            "timestamp": self.timestamp,
            "pickupDate": self.pickup_date,
            "pickupTime": self.pickup_time,
            "status": self.status,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Order:
        """Decode a stored body. Raises RecordDecodeError on bad records."""
        return cls(
            id=doc_id,
            item_name=_require(data, "itemName", str),
            customer_name=_require(data, "customerName", str),
            quantity=_require(data, "quantity", int),
            total=float(_require(data, "total", (int, float))),
            notes=_require(data, "notes", str),
            source=_require(data, "source", str),
            timestamp=_require(data, "timestamp", str),
            pickup_date=_require(data, "pickupDate", str),
            pickup_time=_require(data, "pickupTime", str),
            status=_decode_status(_require(data, "status", str)),
        )


@dataclass
class MenuItem:
    """A catalog offering. `name` doubles as the reporting join key."""
    id: Optional[str] = None
    name: str = ""
    base_price: float = 0.0
    category: Optional[MenuCategory] = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def with_id(self, doc_id: str) -> MenuItem:
        return replace(self, id=doc_id)

    def to_document(self) -> dict[str, Any]:
        body: dict[str, Any] = {"name": self.name, "basePrice": self.base_price}
        if self.category is not None:
            body["category"] = self.category.value
        return body

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> MenuItem:
        raw_category = data.get("category")
        category = None
        if raw_category is not None:
            try:
                category = MenuCategory(raw_category)
            except ValueError as exc:
                raise RecordDecodeError(
                    f"unknown category {raw_category!r}"
                ) from exc
        return cls(
            id=doc_id,
            name=_require(data, "name", str),
            base_price=float(_require(data, "basePrice", (int, float))),
            category=category,
        )


@dataclass
class UserProfile:
    """Account metadata, written once at registration."""
    id: Optional[str] = None
    full_name: str = ""
    email: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    role: str = "user"

    def to_document(self) -> dict[str, Any]:
        return {
            "fullName": self.full_name,
            "email": self.email,
            "createdAt": self.created_at,
            "role": self.role,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> UserProfile:
        return cls(
            id=doc_id,
            full_name=_require(data, "fullName", str),
            email=_require(data, "email", str),
            created_at=_require(data, "createdAt", str),
            role=data.get("role") or "user",
        )
