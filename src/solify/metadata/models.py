"""
Test suite metadata: the flat record handed to renderers and persistence.
"""

import json
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from enum import Enum

from ..synthesis.models import TestCase


class SetupKind(Enum):
    """Kind of a setup step the generated suite runs before any test."""
    CREATE_KEYPAIR = "create_keypair"
    FUND_ACCOUNT = "fund_account"
    INITIALIZE_DERIVED_ADDRESS = "initialize_derived_address"


@dataclass(frozen=True)
class SetupStep:
    kind: SetupKind
    account: str
    description: str
    dependencies: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind.value,
            "account": self.account,
            "description": self.description,
            "dependencies": list(self.dependencies),
        }


@dataclass(frozen=True)
class DerivedAddressInit:
    """
    How one derived-address account is computed.

    `address` and `nonce` are set when every seed was bound by the positive
    sample values; otherwise `unbound` lists the missing names.
    """
    account: str
    instruction: str
    seeds: Tuple[str, ...]
    owning_program: Optional[str] = None
    address: Optional[str] = None
    nonce: Optional[int] = None
    unbound: Tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return self.address is not None

    def to_dict(self) -> Dict:
        return {
            "account": self.account,
            "instruction": self.instruction,
            "seeds": list(self.seeds),
            "owningProgram": self.owning_program,
            "address": self.address,
            "nonce": self.nonce,
            "unbound": list(self.unbound),
        }


@dataclass(frozen=True)
class InstructionMetadata:
    """One instruction's chunk of the suite."""
    name: str
    account_order: Tuple[str, ...]
    test_cases: Tuple[TestCase, ...]
    signers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "accountOrder": list(self.account_order),
            "signers": list(self.signers),
            "testCases": [case.to_dict() for case in self.test_cases],
        }


@dataclass(frozen=True)
class TestSuiteMetadata:
    """
    Everything a renderer needs to emit a runnable suite.

    Built once per (program, execution order, label) and never mutated;
    identical inputs give an identical `to_json()`.
    """
    __test__ = False

    program_id: Optional[str]
    program_name: str
    label: str
    execution_order: Tuple[str, ...]
    account_order: Tuple[str, ...]
    setup_steps: Tuple[SetupStep, ...]
    derived_addresses: Tuple[DerivedAddressInit, ...]
    per_instruction: Tuple[InstructionMetadata, ...]

    @property
    def total_cases(self) -> int:
        return sum(len(ix.test_cases) for ix in self.per_instruction)

    def get_instruction(self, name: str) -> Optional[InstructionMetadata]:
        for ix in self.per_instruction:
            if ix.name == name:
                return ix
        return None

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "programId": self.program_id,
            "programName": self.program_name,
            "label": self.label,
            "executionOrder": list(self.execution_order),
            "accountOrder": list(self.account_order),
            "setupSteps": [step.to_dict() for step in self.setup_steps],
            "derivedAddresses": [d.to_dict() for d in self.derived_addresses],
            "perInstruction": [ix.to_dict() for ix in self.per_instruction],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def summary(self) -> str:
        """Return a human-readable summary."""
        lines = [
            f"Program: {self.program_name} ({self.program_id or 'no program id'})",
            f"Label: {self.label}",
            f"Execution order: {' -> '.join(self.execution_order)}",
            f"Accounts: {len(self.account_order)}",
            f"Test cases: {self.total_cases}",
        ]
        unresolved = [d.account for d in self.derived_addresses if not d.is_resolved]
        if unresolved:
            lines.append(f"Unresolved derived addresses: {', '.join(unresolved)}")
        return "\n".join(lines)
