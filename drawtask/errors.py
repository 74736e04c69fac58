"""
Drawtask Error Classes

Provides structured error handling with detailed context for:
- Caller input validation
- Missing accounts and tasks
- Provider request/response errors
- Persisted state read/write errors
"""

import json
from dataclasses import dataclass
from typing import Optional, Dict, List, Any


class DrawtaskError(Exception):
    """Base exception for all Drawtask errors"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        """Convert error to dictionary for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(DrawtaskError):
    """Validation errors with multiple issues"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        details = {"errors": self.errors} if self.errors else {}
        super().__init__(message, details)

    def __str__(self):
        if self.errors:
            return f"{self.message}: {', '.join(self.errors)}"
        return self.message


class NotFoundError(DrawtaskError):
    """Referenced account or task does not exist"""

    def __init__(self, message: str, resource: str = "", resource_id: str = ""):
        self.resource = resource
        self.resource_id = resource_id

        details = {}
        if resource:
            details["resource"] = resource
        if resource_id:
            details["id"] = resource_id

        super().__init__(message, details)


class StorageError(DrawtaskError):
    """Persisted state could not be read or written"""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message, {"path": path} if path else None)


@dataclass(eq=False)
class ProviderError(DrawtaskError):
    """
    Provider request/response errors with full context.

    Attributes:
        message: Vendor-reported or transport error description
        provider: Provider discriminator (volcengine, jimeng, ...)
        status_code: HTTP status code (0 if not HTTP error)
        response_body: Raw response body (truncated)
        request_url: The URL that was called
    """
    message: str = ""
    provider: str = "unknown"
    status_code: int = 0
    response_body: str = ""
    request_url: str = ""

    def __post_init__(self):
        # Truncate response body
        if len(self.response_body) > 500:
            self.response_body = self.response_body[:500] + "..."
        self.details = {}
        Exception.__init__(self, self.message)

    def __str__(self):
        if self.status_code:
            return f"[{self.provider}] HTTP {self.status_code}: {self.message}"
        return f"[{self.provider}] {self.message}"

    def to_dict(self) -> Dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "provider": self.provider,
            "status_code": self.status_code
        }


class UnsupportedProviderError(ProviderError):
    """Account references a provider with no registered adapter"""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Unsupported provider: {provider!r}",
            provider=provider or "unknown"
        )


def extract_vendor_message(response_body: str) -> Optional[str]:
    """
    Pull the vendor's own error message out of a JSON error body.

    Understands ``{"error": {"message": ...}}``, ``{"error": "..."}`` and
    ``{"message": ...}``. Returns None if nothing usable is found.
    """
    try:
        data: Any = json.loads(response_body)
    except (TypeError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if data.get("message"):
        return str(data["message"])
    return None


# Error factory for creating provider errors from HTTP responses
def create_provider_error(
    provider: str,
    status_code: int,
    response_body: str = "",
    url: str = ""
) -> ProviderError:
    """
    Build a ProviderError, preferring the vendor's reported message
    over the raw response body.
    """
    message = extract_vendor_message(response_body)
    if not message:
        message = response_body[:200] if response_body else f"HTTP {status_code}"

    return ProviderError(
        message=message,
        provider=provider,
        status_code=status_code,
        response_body=response_body,
        request_url=url
    )
