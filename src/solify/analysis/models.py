"""
Data models for the program interface.

These models are the normalized, immutable form of an Anchor IDL: the
instructions a program exposes, the accounts each one touches (including
program-derived addresses) and the typed arguments each one takes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum


class TypeKind(Enum):
    """Kind of an instruction argument type."""
    STRING = "string"
    UNSIGNED = "unsigned"
    SIGNED = "signed"
    BOOLEAN = "bool"
    PUBKEY = "pubkey"
    COMPOSITE = "composite"
    UNSUPPORTED = "unsupported"


class CompositeKind(Enum):
    """Shape of a composite type."""
    VEC = "vec"
    OPTION = "option"
    ARRAY = "array"
    BYTES = "bytes"
    DEFINED = "defined"


@dataclass(frozen=True)
class DataType:
    """Type of an instruction argument."""
    kind: TypeKind
    width: Optional[int] = None  # Bits, for integers
    composite: Optional[CompositeKind] = None
    inner: Optional["DataType"] = None
    length: Optional[int] = None  # Fixed array length
    defined: Optional[str] = None  # Name of a declared type
    raw: Optional[str] = None  # Original IDL spelling

    @classmethod
    def string(cls) -> "DataType":
        return cls(TypeKind.STRING, raw="string")

    @classmethod
    def unsigned(cls, width: int) -> "DataType":
        return cls(TypeKind.UNSIGNED, width=width, raw=f"u{width}")

    @classmethod
    def signed(cls, width: int) -> "DataType":
        return cls(TypeKind.SIGNED, width=width, raw=f"i{width}")

    @classmethod
    def boolean(cls) -> "DataType":
        return cls(TypeKind.BOOLEAN, raw="bool")

    @classmethod
    def pubkey(cls) -> "DataType":
        return cls(TypeKind.PUBKEY, raw="pubkey")

    @property
    def is_integer(self) -> bool:
        return self.kind in (TypeKind.UNSIGNED, TypeKind.SIGNED)

    @property
    def byte_width(self) -> Optional[int]:
        return self.width // 8 if self.width else None

    @property
    def min_value(self) -> Optional[int]:
        """Smallest representable value for integer types."""
        if self.kind == TypeKind.UNSIGNED:
            return 0
        if self.kind == TypeKind.SIGNED:
            return -(2 ** (self.width - 1))
        return None

    @property
    def max_value(self) -> Optional[int]:
        """Largest representable value for integer types."""
        if self.kind == TypeKind.UNSIGNED:
            return 2 ** self.width - 1
        if self.kind == TypeKind.SIGNED:
            return 2 ** (self.width - 1) - 1
        return None

    def describe(self) -> str:
        """Short human-readable spelling, e.g. u64 or Vec<string>."""
        if self.kind != TypeKind.COMPOSITE:
            return self.raw or self.kind.value
        if self.composite == CompositeKind.BYTES:
            return "bytes"
        if self.composite == CompositeKind.DEFINED:
            return self.defined or "defined"
        inner = self.inner.describe() if self.inner else "?"
        if self.composite == CompositeKind.ARRAY:
            return f"[{inner}; {self.length}]"
        return f"{self.composite.value.capitalize()}<{inner}>"


@dataclass(frozen=True)
class ArgumentConstraints:
    """Constraints declared for an argument."""
    min: Optional[int] = None
    max: Optional[int] = None
    nonzero: bool = False
    max_length: Optional[int] = None
    allowed: Optional[Tuple[Any, ...]] = None
    message: Optional[str] = None  # Declared failure text
    error: Optional[str] = None  # Name of a declared IDL error

    @property
    def is_empty(self) -> bool:
        return (
            self.min is None
            and self.max is None
            and not self.nonzero
            and self.max_length is None
            and self.allowed is None
        )

    @property
    def disallows_zero(self) -> bool:
        return self.nonzero or (self.min is not None and self.min >= 1)


@dataclass(frozen=True)
class ArgumentSpec:
    """Specification for an instruction argument."""
    name: str
    data_type: DataType
    constraints: ArgumentConstraints = field(default_factory=ArgumentConstraints)
    docs: Tuple[str, ...] = ()


class SeedKind(Enum):
    """Source of a derived-address seed."""
    LITERAL = "literal"
    ARGUMENT = "arg"
    ACCOUNT = "account"


@dataclass(frozen=True)
class SeedSource:
    """One seed of a derived address, in declaration order."""
    kind: SeedKind
    value: bytes = b""  # Raw bytes for literal seeds
    path: str = ""  # IDL path for argument/account seeds, e.g. "vault.mint"

    @classmethod
    def literal(cls, value: bytes) -> "SeedSource":
        return cls(SeedKind.LITERAL, value=bytes(value))

    @classmethod
    def argument(cls, path: str) -> "SeedSource":
        return cls(SeedKind.ARGUMENT, path=path)

    @classmethod
    def account(cls, path: str) -> "SeedSource":
        return cls(SeedKind.ACCOUNT, path=path)

    @property
    def name(self) -> str:
        """The referenced argument or account (first path segment)."""
        return self.path.split(".", 1)[0]

    def describe(self) -> str:
        if self.kind == SeedKind.LITERAL:
            try:
                return repr(self.value.decode("utf-8"))
            except UnicodeDecodeError:
                return "0x" + self.value.hex()
        return f"{self.kind.value}:{self.path}"


@dataclass(frozen=True)
class DerivedAddressSpec:
    """How a program-derived address is computed."""
    seeds: Tuple[SeedSource, ...] = ()
    owning_program: Optional[str] = None  # None means the program itself

    def argument_refs(self) -> List[str]:
        return [s.name for s in self.seeds if s.kind == SeedKind.ARGUMENT]

    def account_refs(self) -> List[str]:
        return [s.name for s in self.seeds if s.kind == SeedKind.ACCOUNT]


@dataclass(frozen=True)
class AccountUsage:
    """An account as used by one instruction."""
    name: str
    key: str = ""  # Canonical key shared across instructions
    is_mut: bool = False
    is_signer: bool = False
    is_optional: bool = False
    address: Optional[str] = None  # Fixed address, e.g. the system program
    docs: Tuple[str, ...] = ()
    derived: Optional[DerivedAddressSpec] = None
    relations: Tuple[str, ...] = ()  # has_one targets, by account name

    def __post_init__(self):
        if not self.key:
            object.__setattr__(self, "key", self.name)

    @property
    def is_derived(self) -> bool:
        return self.derived is not None


@dataclass(frozen=True)
class InstructionSpec:
    """Specification for a single instruction in the program."""
    name: str
    arguments: Tuple[ArgumentSpec, ...] = ()
    accounts: Tuple[AccountUsage, ...] = ()
    docs: Tuple[str, ...] = ()
    discriminator: Optional[bytes] = None

    def get_argument(self, name: str) -> Optional[ArgumentSpec]:
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None

    def get_account(self, name: str) -> Optional[AccountUsage]:
        for acc in self.accounts:
            if acc.name == name or acc.key == name:
                return acc
        return None

    def signers(self) -> List[AccountUsage]:
        return [a for a in self.accounts if a.is_signer]

    def funding_signers(self) -> List[AccountUsage]:
        """Signers that pay for accounts created by this instruction."""
        signers = [a for a in self.signers() if not a.is_derived]
        writable = [a for a in signers if a.is_mut]
        return writable or signers

    def derived_accounts(self) -> List[AccountUsage]:
        return [a for a in self.accounts if a.is_derived]


@dataclass(frozen=True)
class ErrorDef:
    """An error declared by the program."""
    code: int
    name: str
    message: str = ""


@dataclass(frozen=True)
class TypeDef:
    """A struct or enum declared by the program."""
    name: str
    kind: str  # "struct" or "enum"
    fields: Tuple[Tuple[str, DataType], ...] = ()
    variants: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InterfaceModel:
    """Complete interface of a Solana program."""
    name: str = "unknown"
    version: Optional[str] = None
    program_id: Optional[str] = None

    instructions: Tuple[InstructionSpec, ...] = ()
    account_types: Tuple[str, ...] = ()
    types: Tuple[TypeDef, ...] = ()
    errors: Tuple[ErrorDef, ...] = ()

    raw_idl: Optional[Dict] = field(default=None, compare=False, repr=False)

    def get_instruction(self, name: str) -> Optional[InstructionSpec]:
        """Get instruction by exact name."""
        for ix in self.instructions:
            if ix.name == name:
                return ix
        return None

    def get_type(self, name: str) -> Optional[TypeDef]:
        for t in self.types:
            if t.name == name:
                return t
        return None

    def get_error(self, name: str) -> Optional[ErrorDef]:
        for e in self.errors:
            if e.name == name:
                return e
        return None

    def instruction_names(self) -> List[str]:
        return [ix.name for ix in self.instructions]

    def summary(self) -> str:
        """Return a human-readable summary."""
        lines = [
            f"Program: {self.name}",
            f"Instructions: {len(self.instructions)}",
        ]
        for ix in self.instructions:
            pdas = len(ix.derived_accounts())
            flag_str = f"({pdas} PDA)" if pdas else ""
            lines.append(f"  • {ix.name} {flag_str}".rstrip())
        return "\n".join(lines)
