"""
Account Dependency Graph: orders account initialization across instructions.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import AmbiguousSeed, DependencyCycle
from .models import AccountUsage, InstructionSpec, SeedKind

logger = logging.getLogger(__name__)


@dataclass
class AccountNode:
    """An account merged across every instruction that uses it."""
    key: str
    is_mut: bool = False
    is_signer: bool = False
    is_derived: bool = False
    docs: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)

    def merge(self, usage: AccountUsage, instruction: str):
        self.is_mut = self.is_mut or usage.is_mut
        self.is_signer = self.is_signer or usage.is_signer
        self.is_derived = self.is_derived or usage.is_derived
        for doc in usage.docs:
            if doc not in self.docs:
                self.docs.append(doc)
        if instruction not in self.instructions:
            self.instructions.append(instruction)


@dataclass
class DependencyEdge:
    """`source` must be initialized before `target`."""
    source: str
    target: str
    reasons: List[str] = field(default_factory=list)  # "seed", "funding" or "has_one"
    instructions: List[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    """
    Requires-before graph over canonical account keys.

    Nodes keep first-seen insertion order; that order is the tie-break for
    the topological sort, so the result never depends on key spelling.
    """
    nodes: Dict[str, AccountNode] = field(default_factory=dict)
    edges: Dict[Tuple[str, str], DependencyEdge] = field(default_factory=dict)

    def add_node(self, usage: AccountUsage, instruction: str) -> AccountNode:
        """Add an account usage, merging it into an existing node with the same key."""
        node = self.nodes.get(usage.key)
        if node is None:
            node = AccountNode(key=usage.key)
            self.nodes[usage.key] = node
        node.merge(usage, instruction)
        return node

    def add_edge(self, source: str, target: str, reason: str, instruction: str):
        """Add a requires-before edge."""
        edge = self.edges.get((source, target))
        if edge is None:
            edge = DependencyEdge(source=source, target=target)
            self.edges[(source, target)] = edge
        if reason not in edge.reasons:
            edge.reasons.append(reason)
        if instruction not in edge.instructions:
            edge.instructions.append(instruction)

    def dependencies_of(self, key: str) -> List[str]:
        """Accounts that must exist before `key`."""
        return [source for (source, target) in self.edges if target == key]

    def dependents_of(self, key: str) -> List[str]:
        """Accounts that require `key` to exist first."""
        return [target for (source, target) in self.edges if source == key]

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm with first-seen tie-break.

        Returns:
            Every node key, each after all of its dependencies

        Raises:
            DependencyCycle: naming the accounts that lie on a cycle
        """
        in_degree = {key: 0 for key in self.nodes}
        for (_, target) in self.edges:
            in_degree[target] += 1

        remaining = list(self.nodes)
        order = []
        while remaining:
            ready = next((key for key in remaining if in_degree[key] == 0), None)
            if ready is None:
                raise DependencyCycle(self._cycle_members(remaining))
            remaining.remove(ready)
            order.append(ready)
            for dependent in self.dependents_of(ready):
                in_degree[dependent] -= 1

        return order

    def _cycle_members(self, remaining: List[str]) -> List[str]:
        """Keys of `remaining` that can reach themselves."""
        pending = set(remaining)
        members = []
        for key in remaining:
            stack = [t for t in self.dependents_of(key) if t in pending]
            seen = set()
            while stack:
                current = stack.pop()
                if current == key:
                    members.append(key)
                    break
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(t for t in self.dependents_of(current) if t in pending)
        return members

    def restricted_order(self, keys: Iterable[str]) -> List[str]:
        """Global order filtered to the given keys."""
        wanted = set(keys)
        return [key for key in self.topological_order() if key in wanted]

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "nodes": {
                key: {
                    "mut": node.is_mut,
                    "signer": node.is_signer,
                    "derived": node.is_derived,
                    "instructions": node.instructions,
                }
                for key, node in self.nodes.items()
            },
            "edges": [
                {
                    "from": edge.source,
                    "to": edge.target,
                    "reasons": edge.reasons,
                    "instructions": edge.instructions,
                }
                for edge in self.edges.values()
            ],
        }

    def to_mermaid(self) -> str:
        """Generate Mermaid diagram syntax."""
        lines = ["graph TD"]

        for key, node in self.nodes.items():
            if node.is_derived:
                lines.append(f"    {key}[[{key}]]")
            elif node.is_signer:
                lines.append(f"    {key}(({key}))")
            else:
                lines.append(f"    {key}[{key}]")

        for edge in self.edges.values():
            lines.append(f"    {edge.source} -->|{'/'.join(edge.reasons)}| {edge.target}")

        return "\n".join(lines)


class DependencyGraphBuilder:
    """
    Builds the account dependency graph for a set of instructions.

    Three kinds of edges are added:
    - an account referenced by a PDA seed precedes the PDA
    - the funding signer of an instruction precedes every PDA it creates
    - an account named by a `has_one` relation precedes the account holding it
    """

    def build(self, instructions: Iterable[InstructionSpec]) -> DependencyGraph:
        """
        Build the dependency graph.

        Args:
            instructions: Instructions in schema order

        Returns:
            DependencyGraph with merged nodes and requires-before edges
        """
        instructions = list(instructions)
        graph = DependencyGraph()

        # All nodes first so seed references can see accounts of later instructions
        for ix in instructions:
            for acc in ix.accounts:
                graph.add_node(acc, ix.name)

        for ix in instructions:
            funders = [a.key for a in ix.funding_signers()]
            for acc in ix.derived_accounts():
                for seed in acc.derived.seeds:
                    if seed.kind != SeedKind.ACCOUNT:
                        continue
                    source = self.resolve_account_ref(seed.name, ix, graph, acc.name)
                    graph.add_edge(source, acc.key, "seed", ix.name)
                for funder in funders:
                    if funder != acc.key:
                        graph.add_edge(funder, acc.key, "funding", ix.name)
            for acc in ix.accounts:
                for relation in acc.relations:
                    source = self._relation_key(relation, ix, graph)
                    if source is None:
                        logger.warning(
                            "has_one target '%s' of '%s' in '%s' is not a known account",
                            relation, acc.name, ix.name,
                        )
                    elif source != acc.key:
                        graph.add_edge(source, acc.key, "has_one", ix.name)

        logger.debug("Dependency graph: %d nodes, %d edges", len(graph.nodes), len(graph.edges))
        return graph

    def initialization_order(self, instructions: Iterable[InstructionSpec]) -> List[str]:
        """Global initialization order over all accounts of the given instructions."""
        return self.build(instructions).topological_order()

    def resolve_account_ref(
        self,
        name: str,
        instruction: InstructionSpec,
        graph: DependencyGraph,
        account: Optional[str] = None,
    ) -> str:
        """
        Map an account seed reference to a canonical key.

        Exact matches (account name or key in the instruction, then any key
        in the graph) are always preferred. Substring matching over known
        keys and account docs is a last resort and is logged.

        Raises:
            AmbiguousSeed: if nothing matches
        """
        usage = instruction.get_account(name)
        if usage is not None:
            return usage.key
        if name in graph.nodes:
            return name

        # The account being derived never satisfies its own seed
        own = instruction.get_account(account) if account else None
        needle = name.lower()
        for key, node in graph.nodes.items():
            if own is not None and key == own.key:
                continue
            lowered = key.lower()
            if needle in lowered or lowered in needle or any(needle in d.lower() for d in node.docs):
                logger.warning(
                    "Seed account '%s' of '%s' in '%s' matched '%s' by name heuristic; "
                    "declare a canonical key to avoid this",
                    name, account or "?", instruction.name, key,
                )
                return key

        raise AmbiguousSeed([name], account)

    def _relation_key(self, name: str, instruction: InstructionSpec, graph: DependencyGraph) -> Optional[str]:
        usage = instruction.get_account(name)
        if usage is not None:
            return usage.key
        return name if name in graph.nodes else None
