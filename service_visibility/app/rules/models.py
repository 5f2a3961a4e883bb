"""
Validation data models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field, AliasChoices


class BulkAction(str, Enum):
    """Bulk operation actions."""
    ENABLE = "enable"
    DISABLE = "disable"


class BulkOperation(BaseModel):
    """Enable or disable a whole category for several roles."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    role_ids: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("role_ids", "roleIds")
    )
    category_id: str = Field(..., validation_alias=AliasChoices("category_id", "categoryId"))
    action: BulkAction

    @property
    def enabling(self) -> bool:
        return self.action == BulkAction.ENABLE


@dataclass
class ValidationResult:
    """Outcome of a validation check."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    requires_confirmation: bool = False

    @classmethod
    def from_messages(cls, errors: List[str], warnings: List[str], requires_confirmation: bool = False) -> "ValidationResult":
        return cls(
            is_valid=not errors,
            errors=list(errors),
            warnings=list(warnings),
            requires_confirmation=requires_confirmation,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "requiresConfirmation": self.requires_confirmation,
        }


@dataclass
class CycleReport:
    """Result of cycle detection."""
    has_circular_dependencies: bool
    cycles: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasCircularDependencies": self.has_circular_dependencies,
            "cycles": [list(cycle) for cycle in self.cycles],
        }
