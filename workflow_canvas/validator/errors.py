"""
Validation Error Types
Structured error handling for workflow document compilation
"""
from typing import Optional, List, Dict, Any
from dataclasses import dataclass
from enum import Enum


# ============================================================================
# ERROR TYPES
# ============================================================================

class ValidationSeverity(str, Enum):
    """
    Validation error severity levels

    ERROR: Blocks compilation (no graph is produced)
    WARNING: Degraded rendering (graph is produced)
    """
    ERROR = "error"
    WARNING = "warning"


class ValidationErrorType(str, Enum):
    """Types of validation errors"""
    DUPLICATE_NAME = "duplicate_name"
    MISSING_NAME = "missing_name"
    RESERVED_NAME = "reserved_name"
    REFERENCE_ERROR = "reference_error"
    MISSING_NESTED_STEP = "missing_nested_step"
    DEGRADED = "degraded"


class ErrorCode:
    """Stable codes reported to API consumers"""
    DUPLICATE_NAME = "E1001"
    MISSING_NAME = "E1002"
    RESERVED_NAME = "E1003"
    UNKNOWN_REFERENCE = "E1004"
    MISSING_NESTED_STEP = "E1005"
    DEGRADED = "W1001"


# ============================================================================
# STRUCTURED VALIDATION ERROR
# ============================================================================

@dataclass
class ValidationError:
    """
    Structured validation error

    Unlike Exception, this is a data structure that can be collected and reported.
    """
    severity: ValidationSeverity
    error_type: ValidationErrorType
    location: str
    message: str
    code: str
    suggestion: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response"""
        return {
            "severity": self.severity.value,
            "error_type": self.error_type.value,
            "location": self.location,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "details": self.details
        }

    def is_blocking(self) -> bool:
        """Check if this error blocks compilation"""
        return self.severity == ValidationSeverity.ERROR


# ============================================================================
# VALIDATION RESULT
# ============================================================================

@dataclass
class ValidationResult:
    """
    Complete validation result for one compilation pass
    """
    valid: bool
    errors: List[ValidationError]
    warnings: List[ValidationError]

    def messages(self) -> List[str]:
        """Blocking error messages, in detection order"""
        return [e.message for e in self.errors]

    def summary(self) -> str:
        """One human readable line naming every offender"""
        return "; ".join(self.messages())

    @classmethod
    def from_errors(cls, errors: List[ValidationError]) -> "ValidationResult":
        """Split collected errors into blocking errors and warnings"""
        blocking_errors = [e for e in errors if e.is_blocking()]
        warnings = [e for e in errors if not e.is_blocking()]

        return cls(
            valid=len(blocking_errors) == 0,
            errors=blocking_errors,
            warnings=warnings
        )


# ============================================================================
# EXCEPTION TYPES (for critical failures)
# ============================================================================

class ValidationException(Exception):
    """
    Base exception for critical validation failures

    Use this where a caller wants compilation failures raised.
    For expected structural errors, use ValidationResult instead.
    """
    pass


class StructuralValidationException(ValidationException):
    """The document is structurally unusable"""

    def __init__(self, result: ValidationResult):
        super().__init__(result.summary())
        self.result = result


class DocumentParseException(ValidationException):
    """The document text could not be turned into a tree"""
    pass


# ============================================================================
# ERROR BUILDERS (convenience functions)
# ============================================================================

def duplicate_name_error(location: str, entity: str, name: str) -> ValidationError:
    """Build a duplicate name error"""
    return ValidationError(
        severity=ValidationSeverity.ERROR,
        error_type=ValidationErrorType.DUPLICATE_NAME,
        location=location,
        message=f"duplicate {entity} name: {name}",
        code=ErrorCode.DUPLICATE_NAME,
        suggestion=f"Each {entity} must have a unique name. Rename one of the '{name}' entries.",
        details={"name": name}
    )


def missing_name_error(location: str, entity: str) -> ValidationError:
    """Build a missing name error"""
    return ValidationError(
        severity=ValidationSeverity.ERROR,
        error_type=ValidationErrorType.MISSING_NAME,
        location=location,
        message=f"{entity} at {location} has no name",
        code=ErrorCode.MISSING_NAME,
        suggestion=f"Give the {entity} a non-empty 'name'."
    )


def reserved_name_error(location: str, entity: str, name: str) -> ValidationError:
    """Build a reserved name error"""
    return ValidationError(
        severity=ValidationSeverity.ERROR,
        error_type=ValidationErrorType.RESERVED_NAME,
        location=location,
        message=f"reserved {entity} name: {name}",
        code=ErrorCode.RESERVED_NAME,
        suggestion="Names starting with '_' such as _start and _end are used by the canvas.",
        details={"name": name}
    )


def reference_error(location: str, source: str, missing_ref: str, via: str) -> ValidationError:
    """Build a reference validation error"""
    return ValidationError(
        severity=ValidationSeverity.ERROR,
        error_type=ValidationErrorType.REFERENCE_ERROR,
        location=location,
        message=f"unknown {via} target in {source}: {missing_ref}",
        code=ErrorCode.UNKNOWN_REFERENCE,
        suggestion=f"Ensure '{missing_ref}' is defined in this workflow.",
        details={"missing_reference": missing_ref, "source": source, "via": via}
    )


def missing_nested_step_error(location: str, name: str) -> ValidationError:
    """Build a foreach-without-step error"""
    return ValidationError(
        severity=ValidationSeverity.ERROR,
        error_type=ValidationErrorType.MISSING_NESTED_STEP,
        location=location,
        message=f"foreach step has no nested step: {name}",
        code=ErrorCode.MISSING_NESTED_STEP,
        suggestion="Add a 'step' mapping describing what runs for each item.",
        details={"name": name}
    )


def degraded_warning(location: str, message: str) -> ValidationError:
    """Build a warning for something rendered in a reduced form"""
    return ValidationError(
        severity=ValidationSeverity.WARNING,
        error_type=ValidationErrorType.DEGRADED,
        location=location,
        message=message,
        code=ErrorCode.DEGRADED
    )
