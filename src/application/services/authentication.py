"""
application.services.authentication - Sign-in, registration and error messages.

Thin facade over the AuthProvider port. Provider failures propagate as
AuthenticationError; callers turn them into one of a few user-facing
message categories with categorize_auth_error(). The provider's error code
decides first; when the code is unknown the message text is matched
against a small pattern table.
"""

from __future__ import annotations

import logging
import re

from domain.exceptions import AuthenticationError
from domain.models import AuthMessageCategory, AuthUser
from domain.ports import AuthProvider
from application.dto import SignInRequest, SignUpRequest
from application.services.profile import ProfileService

logger = logging.getLogger(__name__)

_CODE_CATEGORIES: dict[str, AuthMessageCategory] = {
    "invalid-credential": AuthMessageCategory.INVALID_CREDENTIALS,
    "wrong-password": AuthMessageCategory.INVALID_CREDENTIALS,
    "user-not-found": AuthMessageCategory.INVALID_CREDENTIALS,
    "invalid-email": AuthMessageCategory.INVALID_EMAIL,
    "weak-password": AuthMessageCategory.WEAK_PASSWORD,
    "email-already-in-use": AuthMessageCategory.ACCOUNT_EXISTS,
    "credential-already-in-use": AuthMessageCategory.ACCOUNT_EXISTS,
    "too-many-requests": AuthMessageCategory.RATE_LIMITED,
    "network-request-failed": AuthMessageCategory.NETWORK,
    "email-not-verified": AuthMessageCategory.EMAIL_NOT_VERIFIED,
}

_MESSAGE_PATTERNS: list[tuple[re.Pattern[str], AuthMessageCategory]] = [
    (re.compile(r"verif", re.I), AuthMessageCategory.EMAIL_NOT_VERIFIED),
    (re.compile(r"too many|try again later|blocked", re.I), AuthMessageCategory.RATE_LIMITED),
    (re.compile(r"network|offline|timed? ?out|unreachable", re.I), AuthMessageCategory.NETWORK),
    (re.compile(r"already (in use|exists|registered)", re.I), AuthMessageCategory.ACCOUNT_EXISTS),
    (re.compile(r"badly formatted|invalid email|malformed email", re.I), AuthMessageCategory.INVALID_EMAIL),
    (re.compile(r"weak|at least \d+ characters", re.I), AuthMessageCategory.WEAK_PASSWORD),
    (re.compile(r"password|credential|no user", re.I), AuthMessageCategory.INVALID_CREDENTIALS),
]

CATEGORY_MESSAGES: dict[AuthMessageCategory, str] = {
    AuthMessageCategory.INVALID_CREDENTIALS: "Incorrect email or password.",
    AuthMessageCategory.INVALID_EMAIL: "That email address doesn't look right.",
    AuthMessageCategory.WEAK_PASSWORD: "Choose a stronger password.",
    AuthMessageCategory.ACCOUNT_EXISTS: "An account with this email already exists.",
    AuthMessageCategory.RATE_LIMITED: "Too many attempts. Please try again later.",
    AuthMessageCategory.NETWORK: "Network error. Check your connection and try again.",
    AuthMessageCategory.EMAIL_NOT_VERIFIED: "Please verify your email address before continuing.",
    AuthMessageCategory.UNKNOWN: "Something went wrong. Please try again.",
}


def categorize_auth_error(exc: BaseException) -> AuthMessageCategory:
    """Map a provider failure to a user-facing message category."""
    code = getattr(exc, "code", None)
    if code in _CODE_CATEGORIES:
        return _CODE_CATEGORIES[code]
    text = getattr(exc, "message", None) or str(exc)
    for pattern, category in _MESSAGE_PATTERNS:
        if pattern.search(text):
            return category
    return AuthMessageCategory.UNKNOWN


def auth_error_message(exc: BaseException) -> str:
    return CATEGORY_MESSAGES[categorize_auth_error(exc)]


class AuthenticationService:
    """Handles registration, sign-in and profile creation for new accounts."""

    def __init__(self, provider: AuthProvider, profiles: ProfileService):
        self._provider = provider
        self._profiles = profiles

    async def sign_in(self, request: SignInRequest) -> AuthUser:
        user = await self._provider.sign_in(request.email.strip(), request.password)
        logger.info("User %s signed in", user.uid)
        return user

    async def sign_up(self, request: SignUpRequest) -> AuthUser:
        """Create the account and its profile document.

        The returned user may be unverified; callers decide whether to
        prompt for verification.
        """
        email = request.email.strip()
        user = await self._provider.sign_up(email, request.password, request.full_name)
        await self._profiles.create(user.uid, request.full_name, email)
        logger.info("Registered user %s", user.uid)
        return user

    async def send_password_reset(self, email: str) -> None:
        await self._provider.send_password_reset(email.strip())
        logger.info("Password reset requested for %s", email)

    async def sign_in_with_federated_credential(
        self, provider: str, id_token: str,
    ) -> AuthUser:
        """Sign in with a third-party identity; first sign-in gets a profile."""
        user = await self._provider.sign_in_with_federated_credential(provider, id_token)
        if user.is_new_user:
            await self._profiles.create(user.uid, user.display_name or "User", user.email)
        logger.info("User %s signed in via %s", user.uid, provider)
        return user

    async def sign_out(self) -> None:
        await self._provider.sign_out()

    @staticmethod
    def describe(exc: AuthenticationError) -> tuple[AuthMessageCategory, str]:
        category = categorize_auth_error(exc)
        return category, CATEGORY_MESSAGES[category]
