"""
Test context: the per-suite registry of signers, bound accounts and derived addresses.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey


@dataclass
class TestContext:
    """
    Registry of everything a generated suite binds by name.

    A context is owned by the caller and passed explicitly through
    resolution and synthesis; the label keeps keypairs of different suites
    apart while staying reproducible across runs.
    """
    __test__ = False

    label: str = "default"
    keypairs: Dict[str, Keypair] = field(default_factory=dict)
    accounts: Dict[str, Pubkey] = field(default_factory=dict)
    arguments: Dict[str, Any] = field(default_factory=dict)
    derived: Dict[str, Tuple[Pubkey, int]] = field(default_factory=dict)

    def derive_keypair(self, name: str) -> Keypair:
        """
        Deterministic keypair for a named signer.

        Args:
            name: Account or wallet name

        Returns:
            The same Keypair for the same (label, name) on every run
        """
        seed_bytes = hashlib.sha256(f"{self.label}:{name}".encode()).digest()
        return Keypair.from_seed(seed_bytes)

    def keypair(self, name: str) -> Keypair:
        """Get existing keypair or create the deterministic one."""
        if name not in self.keypairs:
            self.keypairs[name] = self.derive_keypair(name)
        return self.keypairs[name]

    def pubkey(self, name: str) -> Pubkey:
        """Bound or derived address for a name, else its signer pubkey."""
        found = self.lookup_account(name)
        if found is not None:
            return found
        return self.keypair(name).pubkey()

    def bind_account(self, name: str, pubkey: Union[str, Pubkey]):
        if isinstance(pubkey, str):
            pubkey = Pubkey.from_string(pubkey)
        self.accounts[name] = pubkey

    def bind_argument(self, name: str, value: Any):
        self.arguments[name] = value

    def record_derived(self, name: str, address: Pubkey, nonce: int):
        self.derived[name] = (address, nonce)

    def copy(self) -> "TestContext":
        """Independent copy; the registries are copied, keypairs are shared."""
        return TestContext(
            label=self.label,
            keypairs=dict(self.keypairs),
            accounts=dict(self.accounts),
            arguments=dict(self.arguments),
            derived=dict(self.derived),
        )

    def update(self, other: "TestContext"):
        """Take over every binding of `other`."""
        self.keypairs.update(other.keypairs)
        self.accounts.update(other.accounts)
        self.arguments.update(other.arguments)
        self.derived.update(other.derived)

    def lookup_account(self, name: str) -> Optional[Pubkey]:
        """Explicitly bound pubkey first, then a previously derived address."""
        if name in self.accounts:
            return self.accounts[name]
        if name in self.derived:
            return self.derived[name][0]
        return None
