"""
Structured exception classes for the Deduplication Retention Simulator
Provides unified error handling with structured error responses
"""

from typing import Optional, Dict, Any, List
from pydantic import BaseModel


class ValidationError(BaseModel):
    """
    Structured validation error with detailed information

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable error message
        field: Parameter name causing the error (if applicable)
        suggestion: Optional suggestion for fixing the error
        context: Optional additional context information
    """

    code: str
    message: str
    field: Optional[str] = None
    suggestion: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.field:
            parts.append(f"Field: {self.field}")
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


class SimulationError(Exception):
    """
    Exception raised during simulation execution

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable error message
        details: Additional error details
    """

    def __init__(
        self, code: str, message: str, details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ParameterValidationError(SimulationError):
    """
    Raised before a simulation starts when its parameters are invalid

    Attributes:
        errors: Every validation error found, one per offending field rule
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = list(errors)
        fields = sorted({e.field for e in self.errors if e.field})
        super().__init__(
            code="invalid_parameters",
            message=f"Invalid simulation parameters: {', '.join(fields) or 'unknown'}",
            details={
                "fields": fields,
                "errors": [e.model_dump() for e in self.errors],
            },
        )

    @property
    def fields(self) -> List[str]:
        return self.details["fields"]
