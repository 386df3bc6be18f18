"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

The document store and the identity provider are the two outside systems.
Repositories and services are written against these protocols; the SQLite
store and the local auth provider satisfy them structurally, as do the
test fakes.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, Sequence, runtime_checkable

from domain.models import AuthUser, CollectionPath, RawDocument


# Called with (documents, None) on every snapshot, or (None, error).
SnapshotListener = Callable[
    [Optional[Sequence[RawDocument]], Optional[BaseException]], None
]

# Called with the new user id, or None on sign-out.
AuthStateListener = Callable[[Optional[str]], None]


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

@runtime_checkable
class ListenerRegistration(Protocol):
    """Handle returned by a subscription. remove() is immediate."""

    def remove(self) -> None: ...


@runtime_checkable
class CollectionGateway(Protocol):
    """Per-collection document store with push-based snapshots.

    subscribe() fires once with the full collection on attach and again on
    every change. Deleting a document that does not exist is not an error.
    """

    def subscribe(
        self, path: CollectionPath, listener: SnapshotListener,
    ) -> ListenerRegistration: ...
    async def create(self, path: CollectionPath, data: dict[str, Any]) -> str: ...
    async def set_document(
        self, path: CollectionPath, doc_id: str, data: dict[str, Any],
    ) -> None: ...
    async def update_fields(
        self, path: CollectionPath, doc_id: str, fields: dict[str, Any],
    ) -> None: ...
    async def delete(self, path: CollectionPath, doc_id: str) -> None: ...
    async def get_document(
        self, path: CollectionPath, doc_id: str,
    ) -> RawDocument | None: ...


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@runtime_checkable
class AuthProvider(Protocol):
    """Identity provider. Every failure raises AuthenticationError(code)."""

    def current_user_id(self) -> str | None: ...
    def on_auth_state_changed(
        self, listener: AuthStateListener,
    ) -> Callable[[], None]: ...
    async def sign_in(self, email: str, password: str) -> AuthUser: ...
    async def sign_up(
        self, email: str, password: str, display_name: str,
    ) -> AuthUser: ...
    async def send_password_reset(self, email: str) -> None: ...
    async def sign_in_with_federated_credential(
        self, provider: str, id_token: str,
    ) -> AuthUser: ...
    async def sign_out(self) -> None: ...
