"""
Shared fixtures: src/ on the path, an in-memory gateway with manual
snapshot delivery, and a scriptable auth provider.
"""
import os
import sys
from typing import Any, Optional

src_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if src_path not in sys.path:
    sys.path.insert(0, src_path)

import pytest

from domain.exceptions import AuthenticationError
from domain.models import AuthUser, CollectionPath, RawDocument


class FakeRegistration:
    def __init__(self, gateway: "FakeGateway", path: CollectionPath, listener):
        self.gateway = gateway
        self.path = path
        self.listener = listener
        self.removed = False

    def remove(self) -> None:
        self.removed = True


class FakeGateway:
    """Document store whose snapshots are delivered only by push()."""

    def __init__(self):
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.registrations: list[FakeRegistration] = []
        self.calls: list[tuple] = []
        self.failures: list[BaseException] = []
        self._ids = 0

    # -- test controls --------------------------------------------------

    def fail_next(self, exc: BaseException) -> None:
        self.failures.append(exc)

    def active(self, path: CollectionPath) -> list[FakeRegistration]:
        return [r for r in self.registrations if r.path == path and not r.removed]

    def push(self, path: CollectionPath, docs=None, error: Optional[BaseException] = None) -> None:
        """Deliver a snapshot (the stored documents unless `docs` is given)."""
        if docs is None and error is None:
            docs = [RawDocument(doc_id, dict(body))
                    for doc_id, body in self.documents.get(path.value, {}).items()]
        for registration in self.active(path):
            registration.listener(docs, error)

    def deliver_to(self, registration: FakeRegistration, docs) -> None:
        registration.listener(docs, None)

    def _maybe_fail(self) -> None:
        if self.failures:
            raise self.failures.pop(0)

    # -- CollectionGateway ----------------------------------------------

    def subscribe(self, path, listener):
        registration = FakeRegistration(self, path, listener)
        self.registrations.append(registration)
        return registration

    async def create(self, path, data):
        self.calls.append(("create", path.value, data))
        self._maybe_fail()
        self._ids += 1
        doc_id = f"doc-{self._ids}"
        self.documents.setdefault(path.value, {})[doc_id] = dict(data)
        return doc_id

    async def set_document(self, path, doc_id, data):
        self.calls.append(("set", path.value, doc_id, data))
        self._maybe_fail()
        self.documents.setdefault(path.value, {})[doc_id] = dict(data)

    async def update_fields(self, path, doc_id, fields):
        self.calls.append(("update", path.value, doc_id, fields))
        self._maybe_fail()
        self.documents.setdefault(path.value, {}).setdefault(doc_id, {}).update(fields)

    async def delete(self, path, doc_id):
        self.calls.append(("delete", path.value, doc_id))
        self._maybe_fail()
        self.documents.get(path.value, {}).pop(doc_id, None)

    async def get_document(self, path, doc_id):
        body = self.documents.get(path.value, {}).get(doc_id)
        return RawDocument(doc_id, dict(body)) if body is not None else None


class FakeAuthProvider:
    """Auth provider driven directly by tests via emit()."""

    def __init__(self, current: Optional[str] = None):
        self.current = current
        self.listeners: list = []
        self.error: Optional[AuthenticationError] = None
        self.new_user = False

    def current_user_id(self):
        return self.current

    def on_auth_state_changed(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def emit(self, uid: Optional[str]) -> None:
        self.current = uid
        for listener in list(self.listeners):
            listener(uid)

    def _result(self, email: str, name: str = "") -> AuthUser:
        if self.error is not None:
            raise self.error
        uid = "uid-" + email.split("@")[0]
        self.emit(uid)
        return AuthUser(uid=uid, email=email, display_name=name, is_new_user=self.new_user)

    async def sign_in(self, email, password):
        return self._result(email)

    async def sign_up(self, email, password, display_name):
        return self._result(email, display_name)

    async def send_password_reset(self, email):
        if self.error is not None:
            raise self.error

    async def sign_in_with_federated_credential(self, provider, id_token):
        return self._result(id_token, "Fed User")

    async def sign_out(self):
        self.emit(None)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def auth():
    return FakeAuthProvider()
