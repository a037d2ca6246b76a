"""
Structural validation for workflow documents
"""
from workflow_canvas.validator.errors import (
    ValidationError,
    ValidationResult,
    ValidationSeverity,
    ValidationErrorType,
    ValidationException,
    StructuralValidationException,
    DocumentParseException
)

__all__ = [
    "ValidationError",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationErrorType",
    "ValidationException",
    "StructuralValidationException",
    "DocumentParseException"
]
