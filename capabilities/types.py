"""
Capability Types
Shared data structures for capabilities, validation and execution results.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from models.tenant import SubscriptionTier


class ParameterType(str, Enum):
    STRING = "string"
    INT = "int"
    BOOL = "bool"
    DATE = "date"


@dataclass(frozen=True)
class CapabilityParameter:
    """Schema entry for one capability parameter"""
    name: str
    type: ParameterType
    description: str
    required: bool = False
    default: Any = None
    examples: tuple = ()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "required": self.required,
            "default": self.default,
            "examples": list(self.examples),
        }


@dataclass
class ValidationIssue:
    """A single validation error with a stable code"""
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass
class ValidationResult:
    """
    Outcome of validating parameters or a whole plan.
    Valid iff there are no errors; warnings never invalidate.
    """
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rejected_capabilities: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def failure(cls, code: str, message: str) -> "ValidationResult":
        return cls(errors=[ValidationIssue(code, message)])

    @classmethod
    def with_warnings(cls, *warnings: str) -> "ValidationResult":
        return cls(warnings=list(warnings))

    def add_error(self, code: str, message: str) -> None:
        self.errors.append(ValidationIssue(code, message))

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "rejected_capabilities": list(self.rejected_capabilities),
        }


@dataclass
class CapabilityResult:
    """Result of executing one capability call"""
    capability_name: str
    version: str
    success: bool
    data: Any = None
    error_code: str | None = None
    error_message: str | None = None
    execution_time_ms: int = 0
    data_source: str | None = None
    record_count: int | None = None

    @classmethod
    def ok(
        cls,
        capability_name: str,
        version: str,
        data: Any,
        execution_time_ms: int = 0,
        data_source: str | None = None,
        record_count: int | None = None,
    ) -> "CapabilityResult":
        return cls(
            capability_name=capability_name,
            version=version,
            success=True,
            data=data,
            execution_time_ms=execution_time_ms,
            data_source=data_source,
            record_count=record_count,
        )

    @classmethod
    def error(
        cls,
        capability_name: str,
        version: str,
        error_code: str,
        error_message: str,
        execution_time_ms: int = 0,
        data_source: str | None = None,
    ) -> "CapabilityResult":
        return cls(
            capability_name=capability_name,
            version=version,
            success=False,
            error_code=error_code,
            error_message=error_message,
            execution_time_ms=execution_time_ms,
            data_source=data_source,
        )

    def to_dict(self) -> dict:
        result = {
            "capability_name": self.capability_name,
            "version": self.version,
            "success": self.success,
            "execution_time_ms": self.execution_time_ms,
            "data_source": self.data_source,
        }
        if self.success:
            result["data"] = self.data
            if self.record_count is not None:
                result["record_count"] = self.record_count
        else:
            result["error_code"] = self.error_code
            result["error_message"] = self.error_message
        return result
