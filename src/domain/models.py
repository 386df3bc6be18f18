"""
domain.models - Value objects shared across layers.

Immutable data containers with no business logic and no dependencies on
infrastructure (no SQLite, no JWT, no terminal output).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class MenuCategory(str, Enum):
    CAKE = "Cake"
    DESSERT = "Dessert"
    OTHER = "Other"


class SyncPolicy(str, Enum):
    """How a repository folds an incoming snapshot into local state.

    REPLACE:           the snapshot fully replaces the local collection.
    PRESERVE_PENDING:  optimistic mutations whose write has not yet been
                       confirmed by a later snapshot are re-applied on top.
    """
    REPLACE = "replace"
    PRESERVE_PENDING = "preserve_pending"


class OrderView(str, Enum):
    """Dashboard filters."""
    TODAY = "today"
    PENDING = "pending"
    COMPLETED = "completed"
    ALL = "all"


class AuthMessageCategory(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    ACCOUNT_EXISTS = "account_exists"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CollectionPath:
    """Slash-separated location of a collection, e.g. users/<uid>/orders."""
    value: str

    @classmethod
    def for_user(cls, user_id: str, collection: str) -> CollectionPath:
        if not user_id:
            raise ValueError("user_id must not be empty")
        return cls(f"users/{user_id}/{collection}")

    @classmethod
    def users(cls) -> CollectionPath:
        return cls("users")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RawDocument:
    """One record as delivered by the store: id plus undecoded body."""
    id: str
    data: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Repository observation
# ---------------------------------------------------------------------------

class ChangeReason(str, Enum):
    SNAPSHOT = "snapshot"
    LOCAL = "local"
    CLEARED = "cleared"


@dataclass(frozen=True)
class CollectionChange:
    """Event delivered to repository listeners after every state change."""
    items: tuple[Any, ...]
    reason: ChangeReason
    decode_failures: int = 0


# ---------------------------------------------------------------------------
# Session / authentication
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionState:
    user_id: Optional[str] = None

    @classmethod
    def signed_out(cls) -> SessionState:
        return cls(None)

    @classmethod
    def signed_in(cls, user_id: str) -> SessionState:
        return cls(user_id)

    @property
    def is_signed_in(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class AuthUser:
    """What the auth provider reports about a signed-in account."""
    uid: str
    email: str = ""
    display_name: str = ""
    email_verified: bool = True
    is_new_user: bool = False


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemCount:
    name: str
    quantity: int


@dataclass(frozen=True)
class SalesReport:
    """Aggregates over the current order collection."""
    revenue: float = 0.0
    pipeline: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0
    cakes: tuple[ItemCount, ...] = ()
    desserts: tuple[ItemCount, ...] = ()
    other: tuple[ItemCount, ...] = ()
    sources: tuple[ItemCount, ...] = ()
