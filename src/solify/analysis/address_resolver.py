"""
Derived-address resolver.

Computes program-derived addresses the way the Solana runtime does:
sha256(seeds || nonce || program_id || "ProgramDerivedAddress"), searching
the nonce from 255 down until the result is off the ed25519 curve.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from solders.pubkey import Pubkey

from ..errors import AmbiguousSeed, ExhaustedNonceSearch, InvalidSeed
from .context import TestContext
from .models import (
    AccountUsage,
    CompositeKind,
    DataType,
    DerivedAddressSpec,
    InstructionSpec,
    SeedKind,
    SeedSource,
    TypeKind,
)

logger = logging.getLogger(__name__)


MAX_SEED_LEN = 32
MAX_SEEDS = 16  # Including the nonce
PDA_MARKER = b"ProgramDerivedAddress"


@dataclass(frozen=True)
class DerivedAddress:
    """A resolved derived address."""
    address: Pubkey
    nonce: int
    seeds: Tuple[bytes, ...]

    def to_dict(self) -> Dict:
        return {
            "address": str(self.address),
            "nonce": self.nonce,
            "seeds": [s.hex() for s in self.seeds],
        }


def check_seeds(seeds: Sequence[bytes]):
    """Enforce the runtime's seed count and seed length limits."""
    if len(seeds) + 1 > MAX_SEEDS:
        raise InvalidSeed(f"Too many seeds: {len(seeds)} (max {MAX_SEEDS - 1} plus nonce)")
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise InvalidSeed(f"Seed {i} is {len(seed)} bytes (max {MAX_SEED_LEN})")


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Optional[Pubkey]:
    """Hash seeds into an address; None if the result lies on the curve."""
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(PDA_MARKER)
    candidate = Pubkey(hasher.digest())
    if candidate.is_on_curve():
        return None
    return candidate


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """
    Find the canonical derived address and its nonce.

    Args:
        seeds: Seed bytes, in order, without the nonce
        program_id: Owning program

    Returns:
        (address, nonce) for the highest nonce giving an off-curve address

    Raises:
        InvalidSeed: seed limits exceeded
        ExhaustedNonceSearch: no nonce in 255..0 works
    """
    seeds = [bytes(s) for s in seeds]
    check_seeds(seeds)
    for nonce in range(255, -1, -1):
        address = create_program_address(seeds + [bytes([nonce])], program_id)
        if address is not None:
            return address, nonce
    raise ExhaustedNonceSearch()


def encode_seed_value(value: Any, data_type: Optional[DataType] = None) -> bytes:
    """
    Encode an argument or account value as seed bytes.

    Strings are UTF-8, integers little-endian at their declared width,
    booleans one byte and public keys their 32 raw bytes.
    """
    if data_type is not None and data_type.is_integer:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidSeed(f"Expected an integer seed value for {data_type.describe()}, got {value!r}")
        try:
            return value.to_bytes(
                data_type.byte_width, "little", signed=data_type.kind == TypeKind.SIGNED
            )
        except OverflowError as e:
            raise InvalidSeed(f"Seed value {value} does not fit {data_type.describe()}") from e

    if data_type is not None and data_type.kind == TypeKind.PUBKEY and isinstance(value, str):
        return bytes(Pubkey.from_string(value))

    if isinstance(value, Pubkey):
        return bytes(value)
    if isinstance(value, bool):
        return b"\x01" if value else b"\x00"
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list) and data_type is not None and data_type.composite in (
        CompositeKind.BYTES, CompositeKind.VEC, CompositeKind.ARRAY,
    ):
        return bytes(value)
    raise InvalidSeed(f"Cannot encode seed value {value!r}")


class DerivedAddressResolver:
    """
    Resolves DerivedAddressSpecs against a TestContext.

    Argument seeds read the context's bound argument values; account seeds
    read bound pubkeys, then previously derived addresses, then the fixed
    addresses declared on the instruction's accounts.
    """

    def __init__(self, program_id: Union[str, Pubkey, None] = None):
        if isinstance(program_id, str):
            program_id = Pubkey.from_string(program_id)
        self.program_id: Optional[Pubkey] = program_id

    def owning_program(self, spec: DerivedAddressSpec) -> Optional[Pubkey]:
        if spec.owning_program:
            return Pubkey.from_string(spec.owning_program)
        return self.program_id

    def unbound_seeds(
        self,
        spec: DerivedAddressSpec,
        context: Optional[TestContext] = None,
        accounts: Sequence[AccountUsage] = (),
    ) -> List[str]:
        """Names referenced by the seeds that are not bound yet; computes nothing."""
        missing = []
        for seed in spec.seeds:
            if seed.kind == SeedKind.LITERAL:
                continue
            if context is None:
                bound = False
            elif seed.kind == SeedKind.ARGUMENT:
                bound = self._argument_value(seed, context) is not None
            else:
                bound = self._account_pubkey(seed, context, accounts) is not None
            if not bound and seed.path not in missing:
                missing.append(seed.path)
        return missing

    def seed_bytes(
        self,
        spec: DerivedAddressSpec,
        context: TestContext,
        argument_types: Optional[Dict[str, DataType]] = None,
        accounts: Sequence[AccountUsage] = (),
        account: Optional[str] = None,
    ) -> List[bytes]:
        """Encode every seed in declaration order."""
        unbound = self.unbound_seeds(spec, context, accounts)
        if unbound:
            raise AmbiguousSeed(unbound, account)

        argument_types = argument_types or {}
        encoded = []
        for seed in spec.seeds:
            if seed.kind == SeedKind.LITERAL:
                encoded.append(seed.value)
            elif seed.kind == SeedKind.ARGUMENT:
                data_type = argument_types.get(seed.path) or (
                    argument_types.get(seed.name) if seed.path == seed.name else None
                )
                encoded.append(encode_seed_value(self._argument_value(seed, context), data_type))
            else:
                encoded.append(bytes(self._account_pubkey(seed, context, accounts)))
        return encoded

    def resolve(
        self,
        spec: DerivedAddressSpec,
        context: TestContext,
        argument_types: Optional[Dict[str, DataType]] = None,
        accounts: Sequence[AccountUsage] = (),
        account: Optional[str] = None,
    ) -> DerivedAddress:
        """
        Resolve a derived address.

        Args:
            spec: Seeds and owning program
            context: Bound argument values and account pubkeys
            argument_types: Declared types used to encode argument seeds
            accounts: Accounts of the instruction, for name aliases and fixed addresses
            account: Name of the account being derived, for error messages

        Returns:
            DerivedAddress with the address, nonce and encoded seeds
        """
        program_id = self.owning_program(spec)
        if program_id is None:
            raise AmbiguousSeed(["program_id"], account)

        seeds = self.seed_bytes(spec, context, argument_types, accounts, account)
        try:
            address, nonce = find_program_address(seeds, program_id)
        except ExhaustedNonceSearch as e:
            raise ExhaustedNonceSearch(account) from e

        logger.debug("Derived %s = %s (nonce %d)", account or "address", address, nonce)
        return DerivedAddress(address=address, nonce=nonce, seeds=tuple(seeds))

    def resolve_account(
        self,
        usage: AccountUsage,
        instruction: InstructionSpec,
        context: TestContext,
    ) -> DerivedAddress:
        """Resolve a PDA account of an instruction and record it in the context."""
        if usage.derived is None:
            raise ValueError(f"Account '{usage.name}' is not a derived address")

        argument_types = {arg.name: arg.data_type for arg in instruction.arguments}
        derived = self.resolve(
            usage.derived, context, argument_types, instruction.accounts, usage.name,
        )
        context.record_derived(usage.key, derived.address, derived.nonce)
        return derived

    def _argument_value(self, seed: SeedSource, context: TestContext) -> Any:
        if seed.path in context.arguments:
            return context.arguments[seed.path]
        value = context.arguments.get(seed.name)
        # Dotted paths walk into struct arguments
        for part in seed.path.split(".")[1:]:
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value

    def _account_pubkey(
        self,
        seed: SeedSource,
        context: TestContext,
        accounts: Sequence[AccountUsage],
    ) -> Optional[Pubkey]:
        candidates = [seed.path]
        if seed.path == seed.name:
            for acc in accounts:
                if acc.name == seed.name and acc.key not in candidates:
                    candidates.append(acc.key)

        for name in candidates:
            found = context.lookup_account(name)
            if found is not None:
                return found

        # Fields of an account ("vault.mint") are only known once bound
        if seed.path != seed.name:
            return None
        for acc in accounts:
            if acc.name == seed.name and acc.address:
                return Pubkey.from_string(acc.address)
        return None
