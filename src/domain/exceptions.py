"""
domain.exceptions - Custom exception hierarchy for the order-taker core.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class RepositoryError(DomainError):
    """Raised when a document store operation fails."""


class DocumentNotFoundError(RepositoryError):
    """Raised when a partial update targets a document that does not exist."""


class RecordDecodeError(DomainError):
    """Raised when a stored record cannot be turned into an entity."""


class MissingIdentifierError(DomainError):
    """Raised when an operation needs a persisted entity but got a new one."""


class NotSubscribedError(DomainError):
    """Raised when a repository is mutated with no signed-in user."""


class InvalidStatusError(DomainError):
    """Raised when an order status outside pending/completed is requested."""


class ImportFormatError(DomainError):
    """Raised when an import file cannot be read as text at all."""


class ExportEmptyError(DomainError):
    """Raised when an export would contain only the header row."""


class AuthenticationError(DomainError):
    """Raised by the auth provider. `code` is the provider's error code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code


class DuplicateAccountError(AuthenticationError):
    """Raised when registering an email that already has an account."""

    def __init__(self, message: str = "The email address is already in use."):
        super().__init__("email-already-in-use", message)
