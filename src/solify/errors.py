"""
Error taxonomy for solify.

Every error is terminal: it is raised to the caller with the offending
name(s) attached and nothing is retried inside the core.
"""

from typing import Iterable, List, Optional


class SolifyError(Exception):
    """Base class for all solify errors."""

    def __init__(self, message: str, names: Optional[Iterable[str]] = None):
        self.names: List[str] = list(names or [])
        super().__init__(message)


class ParseError(SolifyError):
    """The interface schema is malformed."""


class DependencyCycle(SolifyError):
    """No valid account initialization order exists."""

    def __init__(self, names: Iterable[str]):
        names = list(names)
        super().__init__(
            f"Circular account dependency between: {', '.join(names)}",
            names,
        )


class AmbiguousSeed(SolifyError):
    """A derived-address seed references a name that is not bound."""

    def __init__(self, names: Iterable[str], account: Optional[str] = None):
        names = list(names)
        self.account = account
        where = f" for '{account}'" if account else ""
        super().__init__(f"Unbound seed(s){where}: {', '.join(names)}", names)


class ExhaustedNonceSearch(SolifyError):
    """No nonce in 255..0 produced an off-curve address."""

    def __init__(self, account: Optional[str] = None):
        self.account = account
        super().__init__(
            f"Unable to find a viable derived address{' for ' + repr(account) if account else ''}",
            [account] if account else [],
        )


class InvalidSeed(SolifyError):
    """A seed breaks the runtime's seed length or seed count limits."""


class UnknownInstruction(SolifyError):
    """The execution order names an instruction absent from the schema."""

    def __init__(self, names: Iterable[str]):
        names = list(names)
        super().__init__(f"Unknown instruction(s): {', '.join(names)}", names)


class MissingAccountBinding(SolifyError):
    """A derived-address seed references an argument the instruction does not declare."""

    def __init__(self, instruction: str, account: str, argument: str):
        self.instruction = instruction
        self.account = account
        self.argument = argument
        super().__init__(
            f"Account '{account}' in '{instruction}' is seeded by undeclared argument '{argument}'",
            [instruction, account, argument],
        )


class UnsupportedType(SolifyError):
    """The synthesizer has no policy for a data type."""

    def __init__(self, type_name: str, argument: Optional[str] = None):
        self.type_name = type_name
        self.argument = argument
        where = f" (argument '{argument}')" if argument else ""
        super().__init__(f"Unsupported data type: {type_name}{where}", [type_name])


class ResourceExhausted(SolifyError):
    """A metadata chunk exceeds the persistence ceiling of a sink."""
