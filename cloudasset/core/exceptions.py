from __future__ import annotations

from typing import Any, Optional


class CloudAssetException(Exception):
    """Base exception for all cloudasset errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class AdapterError(CloudAssetException):
    """Raised when an external cloud adapter fails."""
    def __init__(self, message: str, code: str = "adapter_error", details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ConfigurationError(CloudAssetException):
    """Raised when collector configuration is invalid or missing."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)
