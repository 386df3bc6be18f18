"""
infrastructure.auth.local_provider - Self-hosted AuthProvider.

Email/password accounts in SQLite with bcrypt hashes, JWT session tokens
(python-jose), HS256-signed federated id tokens, and a per-account lockout
after repeated failed sign-ins. Verification and reset "emails" are JWTs
written to the log; the CLI accepts them back.

Every failure raises AuthenticationError with a provider error code.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

import bcrypt as _bcrypt
from jose import JWTError, jwt

from domain.exceptions import AuthenticationError, DuplicateAccountError
from domain.models import AuthUser
from domain.ports import AuthStateListener
from infrastructure.auth.account_repo import Account, SQLiteAccountRepository
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LocalAuthProvider:
    """AuthProvider backed by the local accounts table."""

    def __init__(
        self,
        connection: AsyncSQLiteConnection,
        jwt_secret: str,
        jwt_expiry_hours: int = 24,
        jwt_algorithm: str = "HS256",
        federated_secret: str = "",
        min_password_length: int = 6,
        max_failed_sign_ins: int = 5,
        require_email_verification: bool = False,
    ):
        self._accounts = SQLiteAccountRepository(connection)
        self._jwt_secret = jwt_secret
        self._jwt_expiry_hours = jwt_expiry_hours
        self._jwt_algorithm = jwt_algorithm
        self._federated_secret = federated_secret
        self._min_password_length = min_password_length
        self._max_failed_sign_ins = max_failed_sign_ins
        self._require_verification = require_email_verification
        self._current: Optional[AuthUser] = None
        self._access_token: Optional[str] = None
        self._listeners: list[AuthStateListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def current_user_id(self) -> Optional[str]:
        return self._current.uid if self._current else None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._current

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def restore(self, token: str) -> Optional[AuthUser]:
        """Adopt a stored session token without notifying listeners.

        Meant for process start, before anyone listens. Returns None (and
        stays signed out) when the token is invalid or expired.
        """
        try:
            claims = self._decode(token, "session")
        except AuthenticationError as exc:
            logger.info("Stored session rejected: %s", exc.message)
            return None
        self._current = AuthUser(
            uid=claims["sub"],
            email=claims.get("email", ""),
            display_name=claims.get("name", ""),
            email_verified=bool(claims.get("verified", True)),
        )
        self._access_token = token
        return self._current

    # ------------------------------------------------------------------
    # Email / password
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthUser:
        self._check_email(email)
        account = await self._call(self._accounts.get_by_email(email))
        if account is None:
            raise AuthenticationError(
                "invalid-credential", "The email or password is incorrect.",
            )
        if account.failed_attempts >= self._max_failed_sign_ins:
            raise AuthenticationError(
                "too-many-requests",
                "Too many failed sign-in attempts. Reset your password to "
                "restore access to this account.",
            )
        if not account.password_hash or not _bcrypt.checkpw(
            password.encode(), account.password_hash.encode(),
        ):
            attempts = await self._call(self._accounts.record_failure(account.uid))
            logger.info("Failed sign-in for %s (%d attempts)", account.uid, attempts)
            raise AuthenticationError(
                "invalid-credential", "The email or password is incorrect.",
            )
        if account.failed_attempts:
            await self._call(self._accounts.reset_failures(account.uid))
        if self._require_verification and not account.email_verified:
            raise AuthenticationError(
                "email-not-verified",
                "Please verify your email address before continuing.",
            )
        return self._set_current(self._to_user(account))

    async def sign_up(self, email: str, password: str, display_name: str) -> AuthUser:
        self._check_email(email)
        if len(password) < self._min_password_length:
            raise AuthenticationError(
                "weak-password",
                f"Password should be at least {self._min_password_length} characters.",
            )
        if await self._call(self._accounts.get_by_email(email)) is not None:
            raise DuplicateAccountError()

        account = Account(
            uid=uuid4().hex,
            email=email,
            password_hash=_bcrypt.hashpw(password.encode(), _bcrypt.gensalt()).decode(),
            display_name=display_name,
            email_verified=not self._require_verification,
        )
        try:
            await self._accounts.save(account)
        except sqlite3.IntegrityError as exc:
            raise DuplicateAccountError() from exc
        logger.info("Registered account %s", account.uid)

        user = AuthUser(
            uid=account.uid,
            email=account.email,
            display_name=display_name,
            email_verified=account.email_verified,
            is_new_user=True,
        )
        if not account.email_verified:
            self.send_email_verification(user)
        return self._set_current(user)

    async def send_password_reset(self, email: str) -> None:
        self._check_email(email)
        account = await self._call(self._accounts.get_by_email(email))
        if account is None:
            # Do not reveal which emails have accounts.
            logger.info("Password reset requested for unknown email")
            return
        token = self._issue(account.uid, "reset", timedelta(hours=1))
        logger.info("Password reset token for %s: %s", account.email, token)

    async def confirm_password_reset(self, token: str, new_password: str) -> None:
        claims = self._decode(token, "reset")
        if len(new_password) < self._min_password_length:
            raise AuthenticationError(
                "weak-password",
                f"Password should be at least {self._min_password_length} characters.",
            )
        hashed = _bcrypt.hashpw(new_password.encode(), _bcrypt.gensalt()).decode()
        await self._call(self._accounts.set_password_hash(claims["sub"], hashed))
        await self._call(self._accounts.reset_failures(claims["sub"]))
        logger.info("Password reset for %s", claims["sub"])

    def send_email_verification(self, user: AuthUser) -> str:
        token = self._issue(user.uid, "verify", timedelta(days=3))
        logger.info("Verification token for %s: %s", user.email, token)
        return token

    async def confirm_email_verification(self, token: str) -> None:
        claims = self._decode(token, "verify")
        await self._call(self._accounts.mark_verified(claims["sub"]))
        logger.info("Email verified for %s", claims["sub"])

    # ------------------------------------------------------------------
    # Federated
    # ------------------------------------------------------------------

    async def sign_in_with_federated_credential(self, provider: str, id_token: str) -> AuthUser:
        """Accept an HS256 id token signed with the federated secret.

        Required claims: sub, email. Optional: name.
        """
        if not self._federated_secret:
            raise AuthenticationError(
                "operation-not-allowed", "Federated sign-in is not configured.",
            )
        try:
            claims = jwt.decode(id_token, self._federated_secret, algorithms=["HS256"])
        except JWTError as exc:
            raise AuthenticationError(
                "invalid-credential", f"Invalid {provider} credential: {exc}",
            ) from exc
        email = claims.get("email")
        if not claims.get("sub") or not email:
            raise AuthenticationError(
                "invalid-credential", f"The {provider} credential is missing claims.",
            )

        account = await self._call(self._accounts.get_by_email(email))
        is_new = account is None
        if account is None:
            account = Account(
                uid=uuid4().hex,
                email=email,
                display_name=claims.get("name") or "User",
                provider=provider,
                email_verified=True,
            )
            await self._call(self._accounts.save(account))
            logger.info("Registered %s account %s", provider, account.uid)

        user = self._to_user(account)
        return self._set_current(AuthUser(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            email_verified=True,
            is_new_user=is_new,
        ))

    async def sign_out(self) -> None:
        if self._current is not None:
            logger.info("User %s signed out", self._current.uid)
        self._current = None
        self._access_token = None
        self._notify(None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _set_current(self, user: AuthUser) -> AuthUser:
        self._current = user
        self._access_token = self._issue(
            user.uid, "session", timedelta(hours=self._jwt_expiry_hours),
            email=user.email, name=user.display_name, verified=user.email_verified,
        )
        self._notify(user.uid)
        return user

    def _notify(self, uid: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(uid)

    def _issue(self, uid: str, purpose: str, lifetime: timedelta, **claims: Any) -> str:
        payload = {
            "sub": uid,
            "purpose": purpose,
            "exp": datetime.now(timezone.utc) + lifetime,
            **claims,
        }
        return jwt.encode(payload, self._jwt_secret, algorithm=self._jwt_algorithm)

    def _decode(self, token: str, purpose: str) -> dict[str, Any]:
        try:
            claims = jwt.decode(token, self._jwt_secret, algorithms=[self._jwt_algorithm])
        except JWTError as exc:
            raise AuthenticationError(
                "invalid-credential", f"Token verification failed: {exc}",
            ) from exc
        if claims.get("purpose") != purpose or not claims.get("sub"):
            raise AuthenticationError("invalid-credential", "Token is not valid here.")
        return claims

    def _check_email(self, email: str) -> None:
        if not _EMAIL.match(email or ""):
            raise AuthenticationError("invalid-email", "The email address is badly formatted.")

    @staticmethod
    def _to_user(account: Account) -> AuthUser:
        return AuthUser(
            uid=account.uid,
            email=account.email,
            display_name=account.display_name,
            email_verified=account.email_verified,
        )

    @staticmethod
    async def _call(awaitable):
        try:
            return await awaitable
        except sqlite3.Error as exc:
            raise AuthenticationError(
                "internal-error", f"Account store unavailable: {exc}",
            ) from exc
