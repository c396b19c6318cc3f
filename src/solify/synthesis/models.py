"""
Data models for synthesized test cases.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum


class CaseKind(Enum):
    """Kind of a synthesized test case."""
    POSITIVE = "positive"
    NEGATIVE_EMPTY = "negative_empty"
    NEGATIVE_TOO_LONG = "negative_too_long"
    NEGATIVE_ZERO = "negative_zero"
    NEGATIVE_NEGATIVE = "negative_negative"
    NEGATIVE_OVERFLOW = "negative_overflow"
    NEGATIVE_CONSTRAINT = "negative_constraint"

    @property
    def is_negative(self) -> bool:
        return self != CaseKind.POSITIVE


class OutcomeKind(Enum):
    """Expected result of a test case."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ExpectedOutcome:
    """
    What the downstream executor should observe.

    A failure matches when the program's error output contains `message`.
    `error_code` is the symbolic error name and `error_number` the declared
    numeric code, when the IDL declares one.
    """
    kind: OutcomeKind = OutcomeKind.SUCCESS
    message: Optional[str] = None
    error_code: Optional[str] = None
    error_number: Optional[int] = None

    @classmethod
    def success(cls) -> "ExpectedOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def failure(
        cls,
        message: str,
        error_code: Optional[str] = None,
        error_number: Optional[int] = None,
    ) -> "ExpectedOutcome":
        return cls(OutcomeKind.FAILURE, message, error_code, error_number)

    @property
    def is_failure(self) -> bool:
        return self.kind == OutcomeKind.FAILURE

    def to_dict(self) -> Dict:
        if not self.is_failure:
            return {"kind": self.kind.value}
        return {
            "kind": self.kind.value,
            "contains": self.message,
            "errorCode": self.error_code,
            "errorNumber": self.error_number,
        }


@dataclass(frozen=True)
class TestCase:
    """A single instruction call with concrete argument values."""
    __test__ = False

    kind: CaseKind
    instruction: str
    description: str
    argument_values: Dict[str, Any] = field(default_factory=dict)
    expected: ExpectedOutcome = field(default_factory=ExpectedOutcome.success)
    argument: Optional[str] = None  # Argument under test; None for positive/combined cases

    @property
    def is_negative(self) -> bool:
        return self.kind.is_negative

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "description": self.description,
            "argument": self.argument,
            "argumentValues": dict(self.argument_values),
            "expectedOutcome": self.expected.to_dict(),
        }
