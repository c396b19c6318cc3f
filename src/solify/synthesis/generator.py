"""
Test Case Synthesizer: derives positive, boundary and negative inputs per argument.

Nothing here executes the target program; every case is a structured
expectation for a downstream executor.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..analysis.context import TestContext
from ..analysis.models import (
    ArgumentSpec,
    CompositeKind,
    DataType,
    InstructionSpec,
    InterfaceModel,
    TypeKind,
)
from ..config import SynthesisConfig
from ..errors import UnsupportedType
from .models import CaseKind, ExpectedOutcome, TestCase

logger = logging.getLogger(__name__)


# Default failure codes, used when an argument declares no message of its own
EMPTY_STRING = "EmptyString"
STRING_TOO_LONG = "StringTooLong"
CONSTRAINT_VIOLATION = "ConstraintViolation"
ZERO_AMOUNT = "ZeroAmount"
OVERFLOW = "Overflow"
INVALID_TYPE = "InvalidType"


class TestCaseSynthesizer:
    """
    Type-aware test case generator.

    For every instruction it emits one positive case with a sample value for
    each argument, then positive cases at the declared integer bounds, then
    the negative cases of each argument in declaration order. When two or
    more arguments have negative cases, one combined case sets all of them
    invalid at once.

    Each case carries the full argument mapping: the argument under test
    holds its probe value and every other argument its positive sample.
    """
    __test__ = False

    def __init__(
        self,
        model: Optional[InterfaceModel] = None,
        config: Optional[SynthesisConfig] = None,
    ):
        self.model = model
        self.config = config or SynthesisConfig()

    def synthesize(
        self,
        instruction: InstructionSpec,
        context: Optional[TestContext] = None,
        samples: Optional[Dict[str, Any]] = None,
    ) -> List[TestCase]:
        """
        Generate the test cases of one instruction.

        Args:
            instruction: Instruction to cover
            context: Registry supplying deterministic public keys
            samples: Positive values already chosen for the arguments

        Returns:
            Ordered list of TestCase

        Raises:
            UnsupportedType: an argument type has no synthesis policy
        """
        context = context or TestContext(label=self.config.default_label)
        if samples is None:
            samples = self.sample_values(instruction, context)

        cases = [
            TestCase(
                kind=CaseKind.POSITIVE,
                instruction=instruction.name,
                description=f"{instruction.name} - valid inputs",
                argument_values=dict(samples),
                expected=ExpectedOutcome.success(),
            )
        ]

        for arg in instruction.arguments:
            cases.extend(self.boundary_cases(instruction, arg, samples))

        first_probes: List[TestCase] = []
        for arg in instruction.arguments:
            arg_cases = self.argument_cases(instruction, arg, samples, context)
            if arg_cases:
                first_probes.append(arg_cases[0])
            cases.extend(arg_cases)

        if len(first_probes) > 1:
            cases.append(self._combined_case(instruction, samples, first_probes))

        logger.debug("Synthesized %d cases for '%s'", len(cases), instruction.name)
        return cases

    def sample_values(self, instruction: InstructionSpec, context: TestContext) -> Dict[str, Any]:
        """Positive sample value for every argument, in declaration order."""
        return {
            arg.name: self.sample_value(arg.data_type, arg.name, context, arg)
            for arg in instruction.arguments
        }

    def sample_value(
        self,
        data_type: DataType,
        name: str,
        context: TestContext,
        arg: Optional[ArgumentSpec] = None,
        _seen: Tuple[str, ...] = (),
    ) -> Any:
        """
        A value the program should accept for `data_type`.

        Declared constraints of `arg` (allowed values, bounds, max length)
        pull the sample into the valid range.
        """
        constraints = arg.constraints if arg is not None else None
        kind = data_type.kind
        if constraints is not None and constraints.allowed and kind != TypeKind.COMPOSITE:
            return constraints.allowed[0]

        if kind == TypeKind.STRING:
            sample = self.config.string_sample
            if constraints is not None and constraints.max_length is not None:
                sample = sample[:constraints.max_length]
            return sample
        if kind in (TypeKind.UNSIGNED, TypeKind.SIGNED):
            sample = self.config.unsigned_sample if kind == TypeKind.UNSIGNED else self.config.signed_sample
            return self._clamp_sample(sample, data_type, arg)
        if kind == TypeKind.BOOLEAN:
            return True
        if kind == TypeKind.PUBKEY:
            return str(context.pubkey(name))
        if kind == TypeKind.COMPOSITE:
            return self._composite_sample(data_type, name, context, constraints, _seen)

        raise UnsupportedType(data_type.describe(), arg.name if arg else name)

    def boundary_cases(
        self,
        instruction: InstructionSpec,
        arg: ArgumentSpec,
        samples: Dict[str, Any],
    ) -> List[TestCase]:
        """Positive cases at the declared min and max of an integer argument."""
        if arg.data_type.kind not in (TypeKind.UNSIGNED, TypeKind.SIGNED):
            return []

        constraints = arg.constraints
        cases = []
        seen = [samples[arg.name]]
        for bound, what in ((constraints.min, "minimum"), (constraints.max, "maximum")):
            if bound is None or bound in seen or not self._accepts(arg, bound):
                continue
            seen.append(bound)
            values = dict(samples)
            values[arg.name] = bound
            cases.append(TestCase(
                kind=CaseKind.POSITIVE,
                instruction=instruction.name,
                description=f"{instruction.name} - {arg.name} at {what} of {bound}",
                argument_values=values,
                expected=ExpectedOutcome.success(),
                argument=arg.name,
            ))
        return cases

    def argument_cases(
        self,
        instruction: InstructionSpec,
        arg: ArgumentSpec,
        samples: Dict[str, Any],
        context: TestContext,
    ) -> List[TestCase]:
        """Negative cases for one argument."""
        kind = arg.data_type.kind
        if kind == TypeKind.STRING:
            probes = self._string_probes(arg)
        elif kind == TypeKind.UNSIGNED:
            probes = self._integer_probes(arg) + self._unsigned_type_probes(arg)
        elif kind == TypeKind.SIGNED:
            probes = self._integer_probes(arg)
        elif kind == TypeKind.BOOLEAN:
            probes = self._allowed_probes(arg, [False, True])
        elif kind == TypeKind.PUBKEY:
            outsider = str(context.pubkey(f"{arg.name}_outsider"))
            probes = self._allowed_probes(arg, [outsider])
        elif kind == TypeKind.COMPOSITE:
            probes = self._composite_probes(arg, samples[arg.name])
        else:
            raise UnsupportedType(arg.data_type.describe(), arg.name)

        cases = []
        for case_kind, value, what, expected in probes:
            values = dict(samples)
            values[arg.name] = value
            cases.append(TestCase(
                kind=case_kind,
                instruction=instruction.name,
                description=f"{instruction.name} - {arg.name} {what}",
                argument_values=values,
                expected=expected,
                argument=arg.name,
            ))
        return cases

    # Probes are (kind, value, description, expected outcome) tuples

    def _string_probes(self, arg: ArgumentSpec) -> List[Tuple]:
        constraints = arg.constraints
        probes = [(
            CaseKind.NEGATIVE_EMPTY, "", "empty string",
            self._failure(arg, EMPTY_STRING, declared=False),
        )]

        if constraints.max_length is not None:
            too_long = self.config.string_probe_char * (constraints.max_length + 1)
            expected = self._failure(arg, STRING_TOO_LONG)
        else:
            too_long = self.config.string_probe_char * self.config.string_probe_length
            expected = self._failure(arg, STRING_TOO_LONG, declared=False)
        probes.append((CaseKind.NEGATIVE_TOO_LONG, too_long, "too long", expected))

        if constraints.allowed:
            outsider = self.config.string_sample
            while outsider in constraints.allowed:
                outsider += "_invalid"
            probes.append((
                CaseKind.NEGATIVE_CONSTRAINT, outsider, "not an allowed value",
                self._failure(arg, CONSTRAINT_VIOLATION),
            ))
        return probes

    def _integer_probes(self, arg: ArgumentSpec) -> List[Tuple]:
        """Probes driven by declared min, max, nonzero and allowed constraints."""
        constraints = arg.constraints
        data_type = arg.data_type
        probes = []

        if constraints.min is not None and constraints.min > data_type.min_value:
            below = constraints.min - 1
            if below == 0 and constraints.disallows_zero:
                # Zero gets its own probe below
                below = -1
            probes.append((
                CaseKind.NEGATIVE_CONSTRAINT, below, f"below minimum of {constraints.min}",
                self._failure(arg, CONSTRAINT_VIOLATION),
            ))

        if constraints.max is not None and constraints.max < data_type.max_value:
            probes.append((
                CaseKind.NEGATIVE_CONSTRAINT, constraints.max + 1, f"above maximum of {constraints.max}",
                self._failure(arg, CONSTRAINT_VIOLATION),
            ))

        if constraints.disallows_zero:
            probes.append((
                CaseKind.NEGATIVE_ZERO, 0, "is zero",
                self._failure(arg, ZERO_AMOUNT),
            ))

        if constraints.allowed:
            outsider = self._outside_allowed(constraints.allowed, data_type.min_value, data_type.max_value)
            if outsider is not None:
                probes.append((
                    CaseKind.NEGATIVE_CONSTRAINT, outsider, "not an allowed value",
                    self._failure(arg, CONSTRAINT_VIOLATION),
                ))
        return probes

    def _unsigned_type_probes(self, arg: ArgumentSpec) -> List[Tuple]:
        """Type-level probes every unsigned argument gets."""
        return [
            (
                CaseKind.NEGATIVE_OVERFLOW, arg.data_type.max_value, "overflow",
                self._failure(arg, OVERFLOW, declared=False),
            ),
            (
                CaseKind.NEGATIVE_NEGATIVE, -1, "negative value",
                self._failure(arg, INVALID_TYPE, declared=False),
            ),
        ]

    def _allowed_probes(self, arg: ArgumentSpec, candidates: List[Any]) -> List[Tuple]:
        allowed = arg.constraints.allowed
        if not allowed:
            return []
        for candidate in candidates:
            if candidate not in allowed:
                return [(
                    CaseKind.NEGATIVE_CONSTRAINT, candidate, "not an allowed value",
                    self._failure(arg, CONSTRAINT_VIOLATION),
                )]
        return []

    def _composite_probes(self, arg: ArgumentSpec, sample: Any) -> List[Tuple]:
        """Length bounds for sequences, allowed variants for enums."""
        constraints = arg.constraints
        data_type = arg.data_type
        probes = []

        if data_type.composite in (CompositeKind.VEC, CompositeKind.BYTES):
            element = sample[0] if sample else 0
            if constraints.min is not None and constraints.min >= 1:
                probes.append((
                    CaseKind.NEGATIVE_CONSTRAINT, [element] * (constraints.min - 1),
                    f"fewer than {constraints.min} elements",
                    self._failure(arg, CONSTRAINT_VIOLATION),
                ))
            longest = constraints.max_length if constraints.max_length is not None else constraints.max
            if longest is not None:
                probes.append((
                    CaseKind.NEGATIVE_TOO_LONG, [element] * (longest + 1),
                    f"more than {longest} elements",
                    self._failure(arg, CONSTRAINT_VIOLATION),
                ))

        if data_type.composite == CompositeKind.DEFINED and constraints.allowed:
            type_def = self._type_def(data_type, arg.name)
            for variant in type_def.variants:
                if variant not in constraints.allowed:
                    probes.append((
                        CaseKind.NEGATIVE_CONSTRAINT, {variant: {}}, "not an allowed variant",
                        self._failure(arg, CONSTRAINT_VIOLATION),
                    ))
                    break
        return probes

    def _combined_case(
        self,
        instruction: InstructionSpec,
        samples: Dict[str, Any],
        first_probes: List[TestCase],
    ) -> TestCase:
        """Every probed argument at its first invalid value at once."""
        values = dict(samples)
        for probe in first_probes:
            values[probe.argument] = probe.argument_values[probe.argument]

        # The program rejects the first invalid argument it checks
        first = first_probes[0].expected
        return TestCase(
            kind=CaseKind.NEGATIVE_CONSTRAINT,
            instruction=instruction.name,
            description=f"{instruction.name} - all arguments invalid",
            argument_values=values,
            expected=first,
        )

    def _failure(self, arg: ArgumentSpec, default_code: str, declared: bool = True) -> ExpectedOutcome:
        """
        Expected failure for a probe.

        Constraint probes prefer the argument's declared message, then the
        message of the declared IDL error it names. Type-level probes
        (declared=False) always use the default code.
        """
        constraints = arg.constraints
        if declared and constraints.message:
            error = self._error(constraints.error)
            return ExpectedOutcome.failure(
                constraints.message,
                constraints.error or default_code,
                error.code if error else None,
            )
        if declared and constraints.error:
            error = self._error(constraints.error)
            if error is not None:
                return ExpectedOutcome.failure(error.message or error.name, error.name, error.code)
            return ExpectedOutcome.failure(constraints.error, constraints.error)

        error = self._error(default_code)
        return ExpectedOutcome.failure(default_code, default_code, error.code if error else None)

    def _error(self, name: Optional[str]):
        if name is None or self.model is None:
            return None
        return self.model.get_error(name)

    def _type_def(self, data_type: DataType, argument: str):
        type_def = self.model.get_type(data_type.defined) if self.model else None
        if type_def is None:
            raise UnsupportedType(data_type.defined or "defined", argument)
        return type_def

    def _clamp_sample(self, sample: int, data_type: DataType, arg: Optional[ArgumentSpec]) -> int:
        if not data_type.min_value <= sample <= data_type.max_value:
            sample = data_type.max_value // 2
        if arg is not None:
            constraints = arg.constraints
            if constraints.min is not None and sample < constraints.min:
                sample = constraints.min
            if constraints.max is not None and sample > constraints.max:
                sample = constraints.max
        return sample

    def _accepts(self, arg: ArgumentSpec, value: int) -> bool:
        constraints = arg.constraints
        if not arg.data_type.min_value <= value <= arg.data_type.max_value:
            return False
        if value == 0 and constraints.nonzero:
            return False
        return not constraints.allowed or value in constraints.allowed

    def _outside_allowed(self, allowed: Tuple[Any, ...], low: int, high: int) -> Optional[int]:
        numbers = [v for v in allowed if isinstance(v, int) and not isinstance(v, bool)]
        if not numbers:
            return None
        if max(numbers) < high:
            return max(numbers) + 1
        if min(numbers) > low:
            return min(numbers) - 1
        return None

    def _composite_sample(
        self,
        data_type: DataType,
        name: str,
        context: TestContext,
        constraints,
        seen: Tuple[str, ...],
    ) -> Any:
        composite = data_type.composite
        if composite == CompositeKind.BYTES:
            return list(self.config.string_sample.encode("utf-8"))
        if composite == CompositeKind.OPTION:
            return self.sample_value(data_type.inner, name, context, _seen=seen)
        if composite == CompositeKind.VEC:
            count = 1
            if constraints is not None and constraints.min is not None:
                count = max(count, constraints.min)
            return [self.sample_value(data_type.inner, name, context, _seen=seen)] * count
        if composite == CompositeKind.ARRAY:
            return [self.sample_value(data_type.inner, name, context, _seen=seen)] * data_type.length

        type_def = self._type_def(data_type, name)
        if type_def.name in seen:
            raise UnsupportedType(f"recursive type {type_def.name}", name)
        seen = seen + (type_def.name,)

        if type_def.kind == "enum":
            if not type_def.variants:
                raise UnsupportedType(f"empty enum {type_def.name}", name)
            if constraints is not None and constraints.allowed:
                return {constraints.allowed[0]: {}}
            return {type_def.variants[0]: {}}
        if type_def.kind == "alias":
            return self.sample_value(type_def.fields[0][1], name, context, _seen=seen)
        return {
            field_name: self.sample_value(field_type, field_name, context, _seen=seen)
            for field_name, field_type in type_def.fields
        }
