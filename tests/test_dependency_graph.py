"""Tests for account dependency ordering."""

import logging

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from solify.analysis import (
    AccountUsage,
    DependencyGraphBuilder,
    DerivedAddressSpec,
    InstructionSpec,
    SeedSource,
)
from solify.errors import AmbiguousSeed, DependencyCycle


def pda(name, *accounts, args=()):
    seeds = [SeedSource.literal(name.encode())]
    seeds += [SeedSource.argument(a) for a in args]
    seeds += [SeedSource.account(a) for a in accounts]
    return AccountUsage(name=name, is_mut=True, derived=DerivedAddressSpec(seeds=tuple(seeds)))


def signer(name, mut=True):
    return AccountUsage(name=name, is_mut=mut, is_signer=True)


def test_signer_precedes_pda(journal):
    order = DependencyGraphBuilder().initialization_order(journal.instructions)
    assert order == ["owner", "entry", "system_program"]


def test_nodes_merged_across_instructions(journal):
    graph = DependencyGraphBuilder().build(journal.instructions)
    assert list(graph.nodes) == ["entry", "owner", "system_program"]
    assert graph.nodes["entry"].instructions == ["create_entry", "update_entry", "delete_entry"]

    edge = graph.edges[("owner", "entry")]
    assert edge.reasons == ["seed", "funding"]


def test_shared_seed_dependencies():
    """Two PDAs seeded by the same argument and account depend on the same accounts."""
    first = InstructionSpec(
        name="create_entry",
        accounts=(pda("entry", "owner", args=("title",)), signer("owner")),
    )
    second = InstructionSpec(
        name="archive_entry",
        accounts=(pda("archive", "owner", args=("title",)), signer("owner")),
    )
    graph = DependencyGraphBuilder().build([first, second])
    order = graph.topological_order()

    assert order.index("owner") < order.index("entry")
    assert order.index("owner") < order.index("archive")
    assert graph.dependencies_of("entry") == graph.dependencies_of("archive") == ["owner"]


def test_pda_seeded_by_pda():
    ix = InstructionSpec(
        name="open_position",
        accounts=(
            pda("position", "pool", "user"),
            pda("pool", "mint"),
            signer("user"),
            AccountUsage(name="mint"),
        ),
    )
    order = DependencyGraphBuilder().initialization_order([ix])

    assert order.index("mint") < order.index("pool") < order.index("position")
    assert order.index("user") < order.index("pool")


def test_first_seen_tie_break():
    ix = InstructionSpec(
        name="touch",
        accounts=(AccountUsage(name="zeta"), AccountUsage(name="alpha"), AccountUsage(name="mid")),
    )
    assert DependencyGraphBuilder().initialization_order([ix]) == ["zeta", "alpha", "mid"]


def test_cycle_detected():
    ix = InstructionSpec(
        name="tangle",
        accounts=(pda("left", "right"), pda("right", "left")),
    )
    with pytest.raises(DependencyCycle) as exc:
        DependencyGraphBuilder().initialization_order([ix])
    assert set(exc.value.names) == {"left", "right"}


def test_seed_ref_to_account_of_other_instruction():
    first = InstructionSpec(name="init_config", accounts=(signer("admin"), pda("config", "admin")))
    second = InstructionSpec(name="register", accounts=(pda("member", "config"), signer("payer")))
    order = DependencyGraphBuilder().initialization_order([first, second])
    assert order.index("config") < order.index("member")


def test_heuristic_match_is_logged(caplog):
    vault = AccountUsage(
        name="vault",
        is_mut=True,
        derived=DerivedAddressSpec(seeds=(SeedSource.literal(b"vault"), SeedSource.account("authority"))),
    )
    ix = InstructionSpec(name="open_vault", accounts=(vault, signer("fund_authority")))

    with caplog.at_level(logging.WARNING, logger="solify.analysis.dependency_graph"):
        graph = DependencyGraphBuilder().build([ix])

    assert graph.dependencies_of("vault") == ["fund_authority"]
    assert any("heuristic" in record.getMessage() for record in caplog.records)


def test_exact_match_not_logged(caplog, journal):
    with caplog.at_level(logging.WARNING):
        DependencyGraphBuilder().build(journal.instructions)
    assert not caplog.records


def test_unmatched_seed_account():
    ix = InstructionSpec(name="open_vault", accounts=(pda("vault", "ghost"), signer("payer")))
    with pytest.raises(AmbiguousSeed) as exc:
        DependencyGraphBuilder().build([ix])
    assert exc.value.names == ["ghost"]


def test_restricted_order(journal):
    graph = DependencyGraphBuilder().build(journal.instructions)
    assert graph.restricted_order(["system_program", "entry"]) == ["entry", "system_program"]


def test_to_mermaid(journal):
    graph = DependencyGraphBuilder().build(journal.instructions)
    mermaid = graph.to_mermaid()
    assert mermaid.startswith("graph TD")
    assert "entry[[entry]]" in mermaid
    assert "owner((owner))" in mermaid
    assert "owner -->|seed/funding| entry" in mermaid


def test_to_dict(journal):
    data = DependencyGraphBuilder().build(journal.instructions).to_dict()
    assert data["nodes"]["entry"]["derived"] is True
    assert (data["edges"][0]["from"], data["edges"][0]["to"]) == ("owner", "entry")


def test_cycle_names_only_its_members():
    ix = InstructionSpec(
        name="tangle",
        accounts=(pda("left", "right"), pda("right", "left"), pda("downstream", "left")),
    )
    with pytest.raises(DependencyCycle) as exc:
        DependencyGraphBuilder().initialization_order([ix])
    assert exc.value.names == ["left", "right"]


def test_heuristic_skips_account_being_derived():
    ix = InstructionSpec(name="open_vault", accounts=(pda("user_vault", "vault"), signer("payer")))
    with pytest.raises(AmbiguousSeed) as exc:
        DependencyGraphBuilder().build([ix])
    assert exc.value.names == ["vault"]


def test_has_one_precedes_holder():
    config = AccountUsage(name="config", is_mut=True, relations=("admin",))
    ix = InstructionSpec(name="update_config", accounts=(config, AccountUsage(name="admin")))
    graph = DependencyGraphBuilder().build([ix])

    assert graph.topological_order() == ["admin", "config"]
    assert graph.edges[("admin", "config")].reasons == ["has_one"]


def test_unknown_has_one_target_is_logged(caplog):
    config = AccountUsage(name="config", is_mut=True, relations=("ghost",))
    ix = InstructionSpec(name="update_config", accounts=(config,))

    with caplog.at_level(logging.WARNING, logger="solify.analysis.dependency_graph"):
        graph = DependencyGraphBuilder().build([ix])

    assert graph.edges == {}
    assert any("ghost" in record.getMessage() for record in caplog.records)


@st.composite
def acyclic_instructions(draw):
    """Random instructions whose PDAs only seed from earlier accounts."""
    count = draw(st.integers(min_value=1, max_value=8))
    names = [f"acct_{i}" for i in range(count)]
    accounts = []
    for i, name in enumerate(names):
        refs = draw(st.lists(st.sampled_from(names[:i]), max_size=3, unique=True)) if i else []
        if refs:
            accounts.append(pda(name, *refs))
        else:
            accounts.append(AccountUsage(name=name, is_signer=draw(st.booleans()), is_mut=True))

    split = draw(st.integers(min_value=0, max_value=count))
    shuffled = draw(st.permutations(accounts))
    return [
        InstructionSpec(name="first", accounts=tuple(shuffled[:split])),
        InstructionSpec(name="second", accounts=tuple(shuffled[split:])),
    ]


@settings(max_examples=75)
@given(acyclic_instructions())
def test_order_is_valid_and_deterministic(instructions):
    builder = DependencyGraphBuilder()
    graph = builder.build(instructions)
    order = graph.topological_order()

    assert sorted(order) == sorted(graph.nodes)
    for (source, target) in graph.edges:
        assert order.index(source) < order.index(target)
    assert builder.initialization_order(instructions) == order
