from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a validation pass.

    errors block the write; warnings are advisory and never flip is_valid.
    """
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def from_lists(cls, errors: List[str], warnings: List[str]) -> "ValidationResult":
        return cls(errors=list(errors), warnings=list(warnings))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
