"""
CLI entry point for solify.

Usage:
    solify inspect target/idl/journal.json
    solify order target/idl/journal.json --mermaid
    solify derive target/idl/journal.json create_entry entry --arg title=hello
    solify generate target/idl/journal.json --order initialize,create_entry -o suite.json
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from solify.config import SynthesisConfig, load_env
from solify.errors import SolifyError

console = Console()


def setup_logging(verbose: bool = False):
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def parse_bindings(items: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated NAME=VALUE options."""
    bindings = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Expected NAME=VALUE, got '{item}'")
        name, value = item.split("=", 1)
        bindings[name.strip()] = value.strip()
    return bindings


def run_inspect(args: argparse.Namespace) -> int:
    """Show the parsed interface."""
    from solify.analysis import IDLParser

    try:
        model = IDLParser().parse_file(args.idl)
    except (SolifyError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print()
    console.print(Panel(
        f"[bold cyan]{model.name}[/bold cyan] {model.version or ''}\n\n"
        f"[dim]Program ID: {model.program_id or 'Not specified'}[/dim]",
        title="[bold]Interface[/bold]",
    ))

    table = Table(title="Instructions")
    table.add_column("Name", style="cyan")
    table.add_column("Args", style="dim")
    table.add_column("Accounts", style="dim")
    table.add_column("PDAs", style="yellow")

    for ix in model.instructions:
        table.add_row(
            ix.name,
            ", ".join(f"{a.name}: {a.data_type.describe()}" for a in ix.arguments) or "-",
            ", ".join(
                f"{a.name}{' (signer)' if a.is_signer else ''}{' (mut)' if a.is_mut else ''}"
                for a in ix.accounts
            ) or "-",
            ", ".join(a.name for a in ix.derived_accounts()) or "-",
        )
    console.print(table)

    if model.errors:
        console.print(f"\n[bold]Declared errors[/bold]: {len(model.errors)}")
        for error in model.errors:
            console.print(f"  [dim]{error.code}[/dim] {error.name}: {error.message}")
    return 0


def run_order(args: argparse.Namespace) -> int:
    """Print the account initialization order."""
    from solify.analysis import DependencyGraphBuilder, IDLParser

    try:
        model = IDLParser().parse_file(args.idl)
        graph = DependencyGraphBuilder().build(model.instructions)
        order = graph.topological_order()
    except (SolifyError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print("[bold]Initialization order[/bold]")
    for position, key in enumerate(order, 1):
        node = graph.nodes[key]
        flags = []
        if node.is_signer:
            flags.append("signer")
        if node.is_derived:
            flags.append("pda")
        if node.is_mut:
            flags.append("mut")
        depends = graph.dependencies_of(key)
        suffix = f" [dim]after {', '.join(depends)}[/dim]" if depends else ""
        console.print(f"  {position:>2}. [cyan]{key}[/cyan] {' '.join(flags)}{suffix}")

    if args.mermaid:
        console.print("\n[bold]Dependency Graph (Mermaid)[/bold]")
        console.print("```mermaid")
        console.print(graph.to_mermaid())
        console.print("```")
    return 0


def run_derive(args: argparse.Namespace) -> int:
    """Compute the address of one PDA account."""
    from solify.analysis import DerivedAddressResolver, IDLParser, TestContext

    try:
        model = IDLParser().parse_file(args.idl)
        ix = model.get_instruction(args.instruction)
        if ix is None:
            console.print(f"[red]Error: unknown instruction '{args.instruction}'[/red]")
            return 1
        usage = ix.get_account(args.account)
        if usage is None or not usage.is_derived:
            console.print(f"[red]Error: '{args.account}' is not a PDA of '{ix.name}'[/red]")
            return 1

        context = TestContext(label=args.label or SynthesisConfig.from_env().default_label)
        for name, value in parse_bindings(args.arg).items():
            arg = ix.get_argument(name)
            if arg is not None and arg.data_type.is_integer:
                value = int(value, 0)
            context.bind_argument(name, value)
        for name, value in parse_bindings(args.account_binding).items():
            context.bind_account(name, value)

        resolver = DerivedAddressResolver(args.program_id or model.program_id)
        unbound = resolver.unbound_seeds(usage.derived, context, ix.accounts)
        if unbound:
            console.print(f"[yellow]Unbound seeds: {', '.join(unbound)}[/yellow]")
            console.print("[dim]Bind them with --arg NAME=VALUE or --account NAME=PUBKEY[/dim]")
            return 1

        derived = resolver.resolve_account(usage, ix, context)
    except (SolifyError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(f"[green]✓[/green] {usage.name} = [bold]{derived.address}[/bold]")
    console.print(f"  [dim]bump {derived.nonce}[/dim]")
    for seed, raw in zip(usage.derived.seeds, derived.seeds):
        console.print(f"  [dim]{seed.describe()} -> {raw.hex()}[/dim]")
    return 0


def run_generate(args: argparse.Namespace) -> int:
    """Assemble test suite metadata and write it out."""
    from solify.analysis import IDLParser
    from solify.metadata import ChunkedJsonSink, JsonFileSink, MetadataAssembler

    order = [name.strip() for name in args.order.split(",") if name.strip()] if args.order else None

    try:
        config = SynthesisConfig.from_env()
        model = IDLParser().parse_file(args.idl)
        metadata = MetadataAssembler(config).assemble(model, order, args.label)

        written = []
        if args.chunk_dir:
            written += ChunkedJsonSink(args.chunk_dir, args.max_cases).emit(metadata)
        if args.output:
            written += JsonFileSink(args.output).emit(metadata)
    except (SolifyError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(Panel(metadata.summary(), title="[bold]Test Suite Metadata[/bold]"))

    table = Table()
    table.add_column("Instruction", style="cyan")
    table.add_column("Accounts", style="dim")
    table.add_column("Positive", justify="right", style="green")
    table.add_column("Negative", justify="right", style="red")
    for ix in metadata.per_instruction:
        negative = sum(1 for case in ix.test_cases if case.is_negative)
        table.add_row(
            ix.name,
            " -> ".join(ix.account_order) or "-",
            str(len(ix.test_cases) - negative),
            str(negative),
        )
    console.print(table)

    for path in written:
        console.print(f"[dim]Wrote {path}[/dim]")
    if not written:
        console.print(metadata.to_json())
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="solify",
        description="Generate test suite metadata for Anchor programs from their IDL",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    inspect_parser = subparsers.add_parser("inspect", help="Show instructions, accounts and PDAs")
    inspect_parser.add_argument("idl", type=str, help="Path to Anchor IDL JSON file")

    order_parser = subparsers.add_parser("order", help="Show the account initialization order")
    order_parser.add_argument("idl", type=str, help="Path to Anchor IDL JSON file")
    order_parser.add_argument(
        "--mermaid", "-m",
        action="store_true",
        help="Output dependency graph as Mermaid diagram"
    )

    derive_parser = subparsers.add_parser("derive", help="Compute a PDA address")
    derive_parser.add_argument("idl", type=str, help="Path to Anchor IDL JSON file")
    derive_parser.add_argument("instruction", type=str, help="Instruction using the PDA")
    derive_parser.add_argument("account", type=str, help="PDA account name")
    derive_parser.add_argument(
        "--arg",
        action="append",
        metavar="NAME=VALUE",
        help="Bind an argument seed (repeatable)"
    )
    derive_parser.add_argument(
        "--account",
        dest="account_binding",
        action="append",
        metavar="NAME=PUBKEY",
        help="Bind an account seed (repeatable)"
    )
    derive_parser.add_argument("--program-id", type=str, help="Override the IDL program address")
    derive_parser.add_argument("--label", "-l", type=str, help="Label for deterministic signer keys")

    generate_parser = subparsers.add_parser("generate", help="Generate test suite metadata")
    generate_parser.add_argument("idl", type=str, help="Path to Anchor IDL JSON file")
    generate_parser.add_argument(
        "--order",
        type=str,
        help="Comma-separated execution order (default: IDL order)"
    )
    generate_parser.add_argument("--label", "-l", type=str, help="Disambiguating suite label")
    generate_parser.add_argument("--output", "-o", type=str, help="Output file for JSON metadata")
    generate_parser.add_argument("--chunk-dir", type=str, help="Write one JSON file per instruction here")
    generate_parser.add_argument(
        "--max-cases",
        type=int,
        default=64,
        help="Ceiling on cases per chunk (default: 64)"
    )

    return parser


def main() -> int:
    """Main entry point."""
    load_env()
    parser = create_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.command == "inspect":
        return run_inspect(args)
    elif args.command == "order":
        return run_order(args)
    elif args.command == "derive":
        return run_derive(args)
    elif args.command == "generate":
        return run_generate(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
