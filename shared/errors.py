"""
Shared error handling for the Field Condition service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class FieldConditionException(Exception):
    """Base exception for Field Condition services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationBuildError(FieldConditionException):
    """Programming errors while building a rule configuration.

    Raised for duplicate level registration within one resolution pass,
    resolving a level whose upstream levels are unset, and stored
    configurations that cannot be read back. These are never folded into a
    negative evaluation result.
    """

    def __init__(self, message: str = "Configuration build failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_BUILD_ERROR", message, details)


class ValidationError(FieldConditionException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class CatalogError(FieldConditionException):
    """Schema catalog loading errors."""

    def __init__(self, message: str = "Schema catalog error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CATALOG_ERROR", message, details)
