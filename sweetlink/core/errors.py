"""Error hierarchy for SweetLink.

Every failure a service can report is a ``SweetLinkError`` subclass carrying a
stable machine-readable ``code``, a ``category`` and the HTTP status the API
maps it to. Services raise them; ``core/error_handlers.py`` turns them into
JSON responses. ``retryable`` marks transient store failures the caller may
retry with backoff.
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    EXPIRED = "expired"
    TRANSIENT = "transient"
    INTERNAL = "internal"


class SweetLinkError(Exception):
    """Base exception for all SweetLink domain and store errors."""

    code: str = "internal_error"
    category: ErrorCategory = ErrorCategory.INTERNAL
    status_code: int = 500
    retryable: bool = False
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "retryable": self.retryable,
            }
        }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class ValidationError(SweetLinkError):
    code = "invalid_input"
    category = ErrorCategory.VALIDATION
    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(SweetLinkError):
    code = "unauthenticated"
    category = ErrorCategory.AUTHENTICATION
    status_code = 401
    default_message = "Authentication required"


class PermissionDeniedError(SweetLinkError):
    code = "forbidden"
    category = ErrorCategory.PERMISSION
    status_code = 403
    default_message = "Not allowed"


class NotFoundError(SweetLinkError):
    code = "not_found"
    category = ErrorCategory.NOT_FOUND
    status_code = 404
    default_message = "Not found"


class ConflictError(SweetLinkError):
    code = "conflict"
    category = ErrorCategory.CONFLICT
    status_code = 409
    default_message = "Conflict"


class ExpiredError(SweetLinkError):
    code = "expired"
    category = ErrorCategory.EXPIRED
    status_code = 410
    default_message = "Expired"


class TransientStoreError(SweetLinkError):
    code = "store_unavailable"
    category = ErrorCategory.TRANSIENT
    status_code = 503
    retryable = True
    default_message = "Store temporarily unavailable, retry later"


# ---------------------------------------------------------------------------
# Concrete errors
# ---------------------------------------------------------------------------

class InvalidInputError(ValidationError):
    pass


class BadCredentialsError(AuthenticationError):
    code = "bad_credentials"
    default_message = "Invalid email or password"


class InvalidTokenError(AuthenticationError):
    code = "invalid_token"
    default_message = "Could not validate credentials"


class AccountMismatchError(PermissionDeniedError):
    code = "account_mismatch"
    default_message = "account_id does not match the authenticated account"


class AccountNotFoundError(NotFoundError):
    code = "account_not_found"
    default_message = "Account not found"


class InviteNotFoundError(NotFoundError):
    code = "invite_not_found"
    default_message = "Invite code not found"


class DuplicateEmailError(ConflictError):
    code = "duplicate_email"
    default_message = "Email already registered"


class AlreadyHasActiveCodeError(ConflictError):
    code = "already_has_active_code"
    default_message = "Account already has an active invite code"


class AlreadyRedeemedError(ConflictError):
    code = "already_redeemed"
    default_message = "Invite code has already been redeemed"


class SelfRedemptionError(ConflictError):
    code = "self_redemption"
    default_message = "You cannot redeem your own invite code"


class InviteRevokedError(ConflictError):
    code = "invite_revoked"
    default_message = "Invite code has been revoked"


class InviteNotActiveError(ConflictError):
    code = "invite_not_active"
    default_message = "Invite code is no longer active"


class AccountAlreadyLinkedError(ConflictError):
    code = "account_already_linked"
    default_message = "Account is already in a relationship"


class RedeemerAlreadyLinkedError(AccountAlreadyLinkedError):
    code = "redeemer_already_linked"
    default_message = "You are already in a relationship"


class InviteExpiredError(ExpiredError):
    code = "invite_expired"
    default_message = "Invite code has expired"


class CodeGenerationError(TransientStoreError):
    code = "code_generation_failed"
    default_message = "Could not generate a unique invite code, retry later"


class StoreTimeoutError(TransientStoreError):
    code = "store_timeout"
    default_message = "Store operation timed out, retry later"
