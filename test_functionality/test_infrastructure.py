"""
SQLite document store, local auth provider, configuration and the
factory wiring, against a throwaway database per test.
"""
import asyncio
import logging

import pytest
from jose import jwt

from application.dto import SignUpRequest
from domain.entities import Order
from domain.exceptions import AuthenticationError, DocumentNotFoundError, DuplicateAccountError
from domain.models import CollectionPath, SyncPolicy
from factory import ServiceFactory
from infrastructure.auth.local_provider import LocalAuthProvider
from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.document_store import SQLiteDocumentStore
from infrastructure.persistence.migrations import run_migrations

ORDERS = CollectionPath.for_user("u1", "orders")


@pytest.fixture
def connection(tmp_path):
    conn = AsyncSQLiteConnection(str(tmp_path / "db" / "test.db"))
    asyncio.run(run_migrations(conn))
    return conn


def make_provider(connection, **overrides):
    options = dict(jwt_secret="test-secret", federated_secret="fed-secret", max_failed_sign_ins=3)
    options.update(overrides)
    return LocalAuthProvider(connection, **options)


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

def test_store_pushes_snapshots_after_each_write(connection):
    store = SQLiteDocumentStore(connection)
    snapshots = []

    async def scenario():
        store.subscribe(ORDERS, lambda docs, error: snapshots.append(docs))
        await store.drain()
        doc_id = await store.create(ORDERS, {"itemName": "Puto", "status": "pending"})
        await store.drain()
        await store.update_fields(ORDERS, doc_id, {"status": "completed"})
        await store.drain()
        await store.delete(ORDERS, doc_id)
        await store.drain()
        return doc_id

    doc_id = asyncio.run(scenario())

    assert snapshots[0] == []
    assert [d.id for d in snapshots[1]] == [doc_id]
    assert snapshots[2][0].data == {"itemName": "Puto", "status": "completed"}
    assert snapshots[3] == []


def test_store_collections_are_isolated(connection):
    store = SQLiteDocumentStore(connection)
    other = CollectionPath.for_user("u2", "orders")
    seen = []

    async def scenario():
        store.subscribe(other, lambda docs, error: seen.append(docs))
        await store.drain()
        await store.create(ORDERS, {"itemName": "Puto"})
        await store.drain()

    asyncio.run(scenario())

    assert seen == [[]]


def test_store_removed_registration_gets_nothing(connection):
    store = SQLiteDocumentStore(connection)
    seen = []

    async def scenario():
        registration = store.subscribe(ORDERS, lambda docs, error: seen.append(docs))
        registration.remove()
        await store.create(ORDERS, {"itemName": "Puto"})
        await store.drain()

    asyncio.run(scenario())

    assert seen == []


def test_store_delete_missing_is_fine_update_missing_raises(connection):
    store = SQLiteDocumentStore(connection)

    async def scenario():
        await store.delete(ORDERS, "nope")
        with pytest.raises(DocumentNotFoundError):
            await store.update_fields(ORDERS, "nope", {"status": "completed"})

    asyncio.run(scenario())


def test_store_set_document_upserts(connection):
    store = SQLiteDocumentStore(connection)
    users = CollectionPath.users()

    async def scenario():
        await store.set_document(users, "u1", {"fullName": "Ann"})
        await store.set_document(users, "u1", {"fullName": "Ann B"})
        return await store.get_document(users, "u1"), await store.get_document(users, "u2")

    found, missing = asyncio.run(scenario())

    assert found.data == {"fullName": "Ann B"}
    assert missing is None


# ---------------------------------------------------------------------------
# Local auth provider
# ---------------------------------------------------------------------------

def test_sign_up_then_sign_in(connection):
    provider = make_provider(connection)
    events = []
    provider.on_auth_state_changed(events.append)

    async def scenario():
        created = await provider.sign_up("Ann@Example.com", "secret1", "Ann")
        await provider.sign_out()
        signed_in = await provider.sign_in("ann@example.com", "secret1")
        return created, signed_in

    created, signed_in = asyncio.run(scenario())

    assert created.is_new_user and not signed_in.is_new_user
    assert created.uid == signed_in.uid
    assert events == [created.uid, None, created.uid]
    assert provider.access_token


@pytest.mark.parametrize("email,password,code", [
    ("not-an-email", "secret1", "invalid-email"),
    ("ann@example.com", "123", "weak-password"),
])
def test_sign_up_validation(connection, email, password, code):
    provider = make_provider(connection)

    with pytest.raises(AuthenticationError) as info:
        asyncio.run(provider.sign_up(email, password, "Ann"))
    assert info.value.code == code


def test_duplicate_sign_up(connection):
    provider = make_provider(connection)

    async def scenario():
        await provider.sign_up("ann@example.com", "secret1", "Ann")
        await provider.sign_up("ANN@example.com", "secret2", "Ann Again")

    with pytest.raises(DuplicateAccountError):
        asyncio.run(scenario())


def test_lockout_after_repeated_failures(connection):
    provider = make_provider(connection)

    async def scenario():
        await provider.sign_up("ann@example.com", "secret1", "Ann")
        codes = []
        for _ in range(4):
            try:
                await provider.sign_in("ann@example.com", "wrong!")
            except AuthenticationError as exc:
                codes.append(exc.code)
        try:
            await provider.sign_in("ann@example.com", "secret1")
        except AuthenticationError as exc:
            codes.append(exc.code)
        return codes

    codes = asyncio.run(scenario())

    assert codes == ["invalid-credential"] * 3 + ["too-many-requests"] * 2


def test_password_reset_round_trip(connection, caplog):
    caplog.set_level(logging.INFO, logger="infrastructure.auth.local_provider")
    provider = make_provider(connection)

    async def scenario():
        await provider.sign_up("ann@example.com", "secret1", "Ann")
        await provider.send_password_reset("ann@example.com")
        [record] = [r for r in caplog.records if r.msg.startswith("Password reset token")]
        await provider.confirm_password_reset(record.args[1], "newpass1")
        return await provider.sign_in("ann@example.com", "newpass1")

    assert asyncio.run(scenario()).email == "ann@example.com"


def test_password_reset_for_unknown_email_is_silent(connection):
    provider = make_provider(connection)
    asyncio.run(provider.send_password_reset("ghost@example.com"))


def test_verification_required_blocks_sign_in_until_confirmed(connection):
    provider = make_provider(connection, require_email_verification=True)

    async def scenario():
        user = await provider.sign_up("ann@example.com", "secret1", "Ann")
        assert not user.email_verified
        with pytest.raises(AuthenticationError) as info:
            await provider.sign_in("ann@example.com", "secret1")
        assert info.value.code == "email-not-verified"
        await provider.confirm_email_verification(provider.send_email_verification(user))
        return await provider.sign_in("ann@example.com", "secret1")

    assert asyncio.run(scenario()).email_verified


def test_reset_token_cannot_verify_email(connection):
    provider = make_provider(connection)

    async def scenario():
        await provider.sign_up("ann@example.com", "secret1", "Ann")
        await provider.confirm_email_verification(provider.access_token)

    with pytest.raises(AuthenticationError):
        asyncio.run(scenario())


def test_federated_sign_in_creates_account_once(connection):
    provider = make_provider(connection)
    token = jwt.encode({"sub": "g-1", "email": "fed@example.com", "name": "Fed"},
                       "fed-secret", algorithm="HS256")

    async def scenario():
        first = await provider.sign_in_with_federated_credential("google", token)
        second = await provider.sign_in_with_federated_credential("google", token)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.is_new_user and not second.is_new_user
    assert first.uid == second.uid
    assert first.display_name == "Fed"


def test_federated_sign_in_rejects_bad_tokens(connection):
    forged = jwt.encode({"sub": "g-1", "email": "fed@example.com"}, "other", algorithm="HS256")

    with pytest.raises(AuthenticationError) as info:
        asyncio.run(make_provider(connection).sign_in_with_federated_credential("google", forged))
    assert info.value.code == "invalid-credential"

    with pytest.raises(AuthenticationError) as info:
        asyncio.run(make_provider(connection, federated_secret="")
                    .sign_in_with_federated_credential("google", forged))
    assert info.value.code == "operation-not-allowed"


def test_restore_session_token(connection):
    provider = make_provider(connection)
    asyncio.run(provider.sign_up("ann@example.com", "secret1", "Ann"))
    token, uid = provider.access_token, provider.current_user_id()

    fresh = make_provider(connection)
    assert fresh.restore("garbage") is None
    assert fresh.current_user_id() is None
    assert fresh.restore(token).uid == uid
    assert fresh.current_user_id() == uid


# ---------------------------------------------------------------------------
# Configuration and wiring
# ---------------------------------------------------------------------------

def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("SYNC_POLICY", "preserve_pending")
    monkeypatch.setenv("REQUIRE_EMAIL_VERIFICATION", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("MAX_FAILED_SIGN_INS", "2")

    settings = Settings.from_env(project_root=tmp_path)

    assert settings.db_path == str(tmp_path / "x.db")
    assert settings.sync_policy is SyncPolicy.PRESERVE_PENDING
    assert settings.require_email_verification is True
    assert settings.log_level == "DEBUG"
    assert settings.max_failed_sign_ins == 2
    assert settings.export_dir == tmp_path / "exports"


def test_factory_requires_initialize(tmp_path):
    factory = ServiceFactory(Settings(project_root=tmp_path, db_path=str(tmp_path / "f.db")))
    with pytest.raises(RuntimeError):
        factory.create_session_controller()


def test_register_add_order_and_see_it_synced(tmp_path):
    settings = Settings(project_root=tmp_path, db_path=str(tmp_path / "f.db"), jwt_secret="s")
    factory = ServiceFactory(settings)

    async def scenario():
        await factory.initialize()
        auth_service = factory.create_authentication_service()
        user = await auth_service.sign_up(SignUpRequest("bea@example.com", "secret1", "Bea"))

        controller = factory.create_session_controller()
        controller.start()
        await factory.store.drain()
        profile = controller.profile

        order = Order.create(item_name="Puto", customer_name="Dan", quantity=3, total=15.0,
                             pickup_date="2026-01-16", pickup_time="10:00")
        await controller.orders.add(order)
        await factory.store.drain()
        items = controller.orders.items

        transfer = factory.create_transfer_service(controller)
        exported = transfer.export_orders()
        controller.stop()
        return user, profile, items, exported

    user, profile, items, exported = asyncio.run(scenario())

    assert profile.full_name == "Bea"
    assert len(items) == 1 and items[0].id is not None
    assert "Friday, January 16, 2026\t10:00 AM\tPuto\t3\t$15.00\tDan\tPending" in exported


def test_session_started_before_sign_up_sees_new_profile(tmp_path):
    factory = ServiceFactory(Settings(project_root=tmp_path, db_path=str(tmp_path / "f.db"), jwt_secret="s"))

    async def scenario():
        await factory.initialize()
        controller = factory.create_session_controller()
        controller.start()
        assert not controller.state.is_signed_in

        auth_service = factory.create_authentication_service()
        user = await auth_service.sign_up(SignUpRequest("cy@example.com", "secret1", "Cy"))
        await factory.store.drain()
        state, profile = controller.state, controller.profile
        controller.stop()
        return user, state, profile

    user, state, profile = asyncio.run(scenario())

    assert state.user_id == user.uid
    assert profile is not None
    assert (profile.full_name, profile.email) == ("Cy", "cy@example.com")
