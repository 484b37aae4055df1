"""
Armory Exception Hierarchy

Exception Hierarchy:
    ArmoryBaseError
    ├── ResolverError
    │   └── RecoverableFetchError      (retried by RetryPolicy)
    │       ├── FetchError
    │       ├── FetchTimeoutError
    │       ├── ThrottledError
    │       └── CooldownActiveError
    └── StoreError
"""
from typing import Optional, Dict, Any


class ArmoryBaseError(Exception):
    """Carries a machine-readable code and a details dict for structured logs."""

    default_code: str = "ARMORY_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# ENCHANTMENT RESOLVER ERRORS
# =============================================================================

class ResolverError(ArmoryBaseError):
    """Base exception for enchantment resolution errors."""
    default_code = "RESOLVER_ERROR"


class RecoverableFetchError(ResolverError):
    """A fetch failed in a way that is worth retrying after backoff."""
    default_code = "FETCH_RECOVERABLE"

    def __init__(self, message: str, enchantment_id: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["enchantment_id"] = enchantment_id
        self.enchantment_id = enchantment_id
        super().__init__(message, details=details, **kwargs)


class FetchError(RecoverableFetchError):
    """Network failure or unexpected HTTP status from WotLKDB."""
    default_code = "FETCH_FAILED"

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details=details, **kwargs)


class FetchTimeoutError(RecoverableFetchError):
    """WotLKDB did not answer within the per-fetch timeout."""
    default_code = "FETCH_TIMEOUT"


class ThrottledError(RecoverableFetchError):
    """WotLKDB signalled rate limiting (429 or marker text)."""
    default_code = "FETCH_THROTTLED"


class CooldownActiveError(RecoverableFetchError):
    """Dispatch refused locally because the ban cooldown has not elapsed."""
    default_code = "COOLDOWN_ACTIVE"

    def __init__(self, message: str, remaining: float = 0.0, **kwargs):
        details = kwargs.pop("details", {})
        details["remaining_seconds"] = round(remaining, 1)
        self.remaining = remaining
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================

class StoreError(ArmoryBaseError):
    """Durable store read/write failure. Logged, never surfaced to callers."""
    default_code = "STORE_ERROR"
