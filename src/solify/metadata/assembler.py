"""
Metadata Assembler: merges account order, setup steps and test cases into one artifact.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..analysis.address_resolver import DerivedAddressResolver
from ..analysis.context import TestContext
from ..analysis.dependency_graph import DependencyGraph, DependencyGraphBuilder
from ..analysis.models import AccountUsage, InstructionSpec, InterfaceModel, SeedKind
from ..config import SynthesisConfig
from ..errors import MissingAccountBinding, UnknownInstruction
from ..synthesis.generator import TestCaseSynthesizer
from .models import (
    DerivedAddressInit,
    InstructionMetadata,
    SetupKind,
    SetupStep,
    TestSuiteMetadata,
)

logger = logging.getLogger(__name__)


class MetadataAssembler:
    """
    Builds TestSuiteMetadata for a program.

    Assembly is all-or-nothing: work happens on a copy of the caller's
    context, which only takes the new bindings once every step succeeded.
    No randomness or clock value enters the artifact.
    """

    def __init__(
        self,
        config: Optional[SynthesisConfig] = None,
        graph_builder: Optional[DependencyGraphBuilder] = None,
    ):
        self.config = config or SynthesisConfig()
        self.graph_builder = graph_builder or DependencyGraphBuilder()

    def assemble(
        self,
        model: InterfaceModel,
        execution_order: Optional[Sequence[str]] = None,
        label: Optional[str] = None,
        context: Optional[TestContext] = None,
    ) -> TestSuiteMetadata:
        """
        Assemble the full suite.

        Args:
            model: Parsed interface
            execution_order: Instruction names to exercise; schema order if empty
            label: Disambiguating label; defaults to the context's or the config's
            context: Caller-owned registry; receives the derived bindings on success

        Returns:
            TestSuiteMetadata

        Raises:
            UnknownInstruction: the order names an instruction the model lacks
            MissingAccountBinding: a seed names an argument its instruction lacks
            DependencyCycle, AmbiguousSeed, ExhaustedNonceSearch, UnsupportedType
        """
        label = self._label(label, context)
        order = self.resolve_execution_order(model, execution_order)
        instructions = self._unique_instructions(model, order)
        self.check_seed_bindings(instructions)

        work = context.copy() if context is not None else TestContext(label=label)
        graph = self.graph_builder.build(model.instructions)
        account_order = self._restricted(graph.topological_order(), self._used_keys(instructions))
        self.bind_accounts(instructions, account_order, work)

        synthesizer = TestCaseSynthesizer(model, self.config)
        samples = self._samples(instructions, synthesizer, work)
        per_instruction = tuple(
            self._instruction_metadata(ix, account_order, synthesizer, work, samples[ix.name])
            for ix in instructions
        )
        setup_steps = tuple(self.setup_steps(graph, account_order))
        derived = tuple(self.derived_address_inits(model, instructions, account_order, samples, work))

        metadata = TestSuiteMetadata(
            program_id=model.program_id,
            program_name=model.name,
            label=label,
            execution_order=tuple(order),
            account_order=tuple(account_order),
            setup_steps=setup_steps,
            derived_addresses=derived,
            per_instruction=per_instruction,
        )

        if context is not None:
            context.update(work)
        logger.info(
            "Assembled '%s' [%s]: %d instructions, %d accounts, %d cases",
            model.name, label, len(per_instruction), len(account_order), metadata.total_cases,
        )
        return metadata

    def assemble_instruction(
        self,
        model: InterfaceModel,
        name: str,
        label: Optional[str] = None,
        context: Optional[TestContext] = None,
    ) -> InstructionMetadata:
        """
        Assemble one instruction's chunk.

        Lets callers with a size ceiling build and hand off the artifact one
        instruction at a time. The account order is the global order
        restricted to this instruction's accounts.
        """
        label = self._label(label, context)
        self.resolve_execution_order(model, [name])
        instruction = model.get_instruction(name)
        self.check_seed_bindings([instruction])

        work = context.copy() if context is not None else TestContext(label=label)
        graph = self.graph_builder.build(model.instructions)
        account_order = self._restricted(graph.topological_order(), self._used_keys([instruction]))
        self.bind_accounts([instruction], account_order, work)

        synthesizer = TestCaseSynthesizer(model, self.config)
        samples = self._samples([instruction], synthesizer, work)
        chunk = self._instruction_metadata(instruction, account_order, synthesizer, work, samples[name])

        if context is not None:
            context.update(work)
        return chunk

    def resolve_execution_order(
        self,
        model: InterfaceModel,
        execution_order: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """The requested order, or schema order when none is given."""
        if not execution_order:
            return model.instruction_names()

        order = list(execution_order)
        unknown = []
        for name in order:
            if model.get_instruction(name) is None and name not in unknown:
                unknown.append(name)
        if unknown:
            raise UnknownInstruction(unknown)
        return order

    def check_seed_bindings(self, instructions: Iterable[InstructionSpec]):
        """Every argument seed must name an argument of its own instruction."""
        for ix in instructions:
            for acc in ix.derived_accounts():
                for seed in acc.derived.seeds:
                    if seed.kind == SeedKind.ARGUMENT and ix.get_argument(seed.name) is None:
                        raise MissingAccountBinding(ix.name, acc.name, seed.name)

    def setup_steps(self, graph: DependencyGraph, account_order: Sequence[str]) -> List[SetupStep]:
        """
        Keypairs and funding for plain signers, then derived-address inits.

        Derived addresses come in account order, so each follows the
        accounts its seeds and funding depend on.
        """
        signers = [
            key for key in account_order
            if graph.nodes[key].is_signer and not graph.nodes[key].is_derived
        ]

        steps = [
            SetupStep(SetupKind.CREATE_KEYPAIR, key, f"Create keypair for {key}")
            for key in signers
        ]
        steps.extend(
            SetupStep(SetupKind.FUND_ACCOUNT, key, f"Fund {key} with SOL for transactions", (key,))
            for key in signers
        )

        for key in account_order:
            if not graph.nodes[key].is_derived:
                continue
            dependencies = self._restricted(account_order, graph.dependencies_of(key))
            steps.append(SetupStep(
                SetupKind.INITIALIZE_DERIVED_ADDRESS, key, f"Initialize {key} PDA", tuple(dependencies),
            ))
        return steps

    def bind_accounts(
        self,
        instructions: Sequence[InstructionSpec],
        account_order: Sequence[str],
        context: TestContext,
    ):
        """Bind every plain account to its fixed address or the context's deterministic keypair."""
        derived_in = self._derived_in(instructions)
        for key in account_order:
            if key in derived_in or context.lookup_account(key) is not None:
                continue
            usage = self._first_usage(instructions, key)
            if usage.address:
                context.bind_account(key, usage.address)
            else:
                context.bind_account(key, context.keypair(key).pubkey())

    def derived_address_inits(
        self,
        model: InterfaceModel,
        instructions: Sequence[InstructionSpec],
        account_order: Sequence[str],
        samples: Dict[str, Dict[str, Any]],
        context: TestContext,
    ) -> List[DerivedAddressInit]:
        """
        Seeds and, where computable, the concrete address of each PDA.

        Plain accounts must already be bound. Argument seeds take the
        positive values (`samples`, by instruction name) of the first
        instruction that uses the PDA, so every address matches the
        positive case of that instruction.
        """
        resolver = DerivedAddressResolver(model.program_id)
        derived_in = self._derived_in(instructions)

        inits = []
        for key in account_order:
            if key not in derived_in:
                continue
            ix = derived_in[key]
            usage = self._derived_usage(ix, key)
            spec = usage.derived

            scope = context.copy()
            scope.arguments.update(samples[ix.name])

            owner = resolver.owning_program(spec)
            unbound = resolver.unbound_seeds(spec, scope, ix.accounts)
            if owner is None:
                unbound.append("program_id")

            init = DerivedAddressInit(
                account=key,
                instruction=ix.name,
                seeds=tuple(seed.describe() for seed in spec.seeds),
                owning_program=str(owner) if owner else None,
            )
            if unbound:
                logger.info("PDA '%s' left unresolved, unbound: %s", key, ", ".join(unbound))
                inits.append(replace(init, unbound=tuple(unbound)))
                continue

            argument_types = {arg.name: arg.data_type for arg in ix.arguments}
            derived = resolver.resolve(spec, scope, argument_types, ix.accounts, usage.name)
            context.record_derived(key, derived.address, derived.nonce)
            inits.append(replace(init, address=str(derived.address), nonce=derived.nonce))
        return inits

    def _instruction_metadata(
        self,
        instruction: InstructionSpec,
        account_order: Sequence[str],
        synthesizer: TestCaseSynthesizer,
        context: TestContext,
        samples: Dict[str, Any],
    ) -> InstructionMetadata:
        keys = [acc.key for acc in instruction.accounts]
        return InstructionMetadata(
            name=instruction.name,
            account_order=tuple(self._restricted(account_order, keys)),
            test_cases=tuple(synthesizer.synthesize(instruction, context, samples)),
            signers=tuple(acc.key for acc in instruction.signers()),
        )

    def _samples(
        self,
        instructions: Sequence[InstructionSpec],
        synthesizer: TestCaseSynthesizer,
        context: TestContext,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Positive argument values per instruction, shared by test cases and PDA seeds.

        Addresses this suite derives are hidden while sampling, so a context
        reused across runs yields the same values every time.
        """
        scope = context.copy()
        for key in self._derived_in(instructions):
            scope.derived.pop(key, None)
        samples = {ix.name: synthesizer.sample_values(ix, scope) for ix in instructions}
        context.keypairs.update(scope.keypairs)
        return samples

    def _derived_in(self, instructions: Sequence[InstructionSpec]) -> Dict[str, InstructionSpec]:
        """First instruction deriving each PDA."""
        derived_in: Dict[str, InstructionSpec] = {}
        for ix in instructions:
            for acc in ix.derived_accounts():
                derived_in.setdefault(acc.key, ix)
        return derived_in

    def _label(self, label: Optional[str], context: Optional[TestContext]) -> str:
        if context is not None:
            if label is not None and label != context.label:
                raise ValueError(f"Label '{label}' does not match context label '{context.label}'")
            return context.label
        return label or self.config.default_label

    def _unique_instructions(self, model: InterfaceModel, order: Sequence[str]) -> List[InstructionSpec]:
        seen: Dict[str, InstructionSpec] = {}
        for name in order:
            if name not in seen:
                seen[name] = model.get_instruction(name)
        return list(seen.values())

    def _used_keys(self, instructions: Iterable[InstructionSpec]) -> List[str]:
        keys = []
        for ix in instructions:
            for acc in ix.accounts:
                if acc.key not in keys:
                    keys.append(acc.key)
        return keys

    def _restricted(self, order: Sequence[str], keys: Iterable[str]) -> List[str]:
        wanted = set(keys)
        return [key for key in order if key in wanted]

    def _first_usage(self, instructions: Sequence[InstructionSpec], key: str) -> AccountUsage:
        for ix in instructions:
            for acc in ix.accounts:
                if acc.key == key:
                    return acc
        raise KeyError(key)

    def _derived_usage(self, instruction: InstructionSpec, key: str) -> Optional[AccountUsage]:
        for acc in instruction.accounts:
            if acc.key == key and acc.is_derived:
                return acc
        return None
