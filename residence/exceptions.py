"""
Error taxonomy shared by the accessors, the session gate and the report layer
"""
from typing import Optional

PERMISSION_DENIED_MESSAGE = "Missing or insufficient permissions."


class StoreError(Exception):
    """Base class for persistence accessor failures"""

    kind = "unknown"

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.request_id = request_id


class NotFoundError(StoreError):
    kind = "not_found"


class PermissionDeniedError(StoreError):
    kind = "permission_denied"

    def __init__(self, request_id: Optional[str] = None):
        super().__init__(PERMISSION_DENIED_MESSAGE, request_id)


class TransientError(StoreError):
    """Backend temporarily unavailable (connection lost, database locked)"""
    kind = "transient"


class UnknownStoreError(StoreError):
    kind = "unknown"


class InvalidTransitionError(ValueError):
    """Raised when a status change is not in the transition table"""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move request from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class GuestSignOutError(ValueError):
    """Sleepover guest cannot be signed out (not a sleepover, not active, wrong code)"""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class SessionVerificationError(Exception):
    """Session cookie rejected by the identity service"""

    def __init__(self, reason: str, detail: str = ""):
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason
        self.detail = detail


class IdentityError(Exception):
    """Sign-in, sign-up or cookie creation failed"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class ReportConsistencyError(ValueError):
    """Report counts disagree with each other or with their items"""
