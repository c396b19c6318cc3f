"""Tests for the command-line front end."""

import json

import pytest
from solders.pubkey import Pubkey

from solify.analysis import TestContext
from solify.cli import create_parser, parse_bindings, run_derive, run_generate, run_inspect, run_order

from conftest import PROGRAM_ID


def parse(*argv):
    return create_parser().parse_args(list(argv))


def test_parse_bindings():
    assert parse_bindings(["title=hello", "n = 3"]) == {"title": "hello", "n": "3"}
    assert parse_bindings(None) == {}
    with pytest.raises(ValueError):
        parse_bindings(["title"])


def test_inspect(journal_file):
    assert run_inspect(parse("inspect", str(journal_file))) == 0


def test_inspect_missing_file(tmp_path):
    assert run_inspect(parse("inspect", str(tmp_path / "missing.json"))) == 1


def test_order(journal_file):
    assert run_order(parse("order", str(journal_file), "--mermaid")) == 0


def test_generate_to_file(journal_file, tmp_path):
    output = tmp_path / "suite.json"
    args = parse("generate", str(journal_file), "--order", "create_entry,delete_entry", "-l", "cli", "-o", str(output))

    assert run_generate(args) == 0
    record = json.loads(output.read_text())
    assert record["label"] == "cli"
    assert record["executionOrder"] == ["create_entry", "delete_entry"]


def test_generate_chunked_over_ceiling(journal_file, tmp_path):
    args = parse("generate", str(journal_file), "--chunk-dir", str(tmp_path / "chunks"), "--max-cases", "2")
    assert run_generate(args) == 1
    assert not (tmp_path / "chunks").exists()


def test_generate_unknown_instruction(journal_file):
    assert run_generate(parse("generate", str(journal_file), "--order", "publish")) == 1


def test_derive(journal_file, capsys):
    owner = str(TestContext(label="x").keypair("owner").pubkey())
    args = parse(
        "derive", str(journal_file), "create_entry", "entry",
        "--arg", "title=hello", "--account", f"owner={owner}",
    )
    assert run_derive(args) == 0

    expected, _ = Pubkey.find_program_address(
        [b"hello", bytes(Pubkey.from_string(owner))], Pubkey.from_string(PROGRAM_ID)
    )
    assert str(expected) in capsys.readouterr().out


def test_derive_reports_unbound(journal_file, capsys):
    args = parse("derive", str(journal_file), "create_entry", "entry", "--arg", "title=hello")
    assert run_derive(args) == 1
    assert "owner" in capsys.readouterr().out


def test_derive_not_a_pda(journal_file):
    assert run_derive(parse("derive", str(journal_file), "create_entry", "owner")) == 1


def test_generate_bad_env_config(journal_file, monkeypatch, capsys):
    monkeypatch.setenv("SOLIFY_STRING_PROBE_LENGTH", "lots")
    assert run_generate(parse("generate", str(journal_file))) == 1
    assert "SOLIFY_STRING_PROBE_LENGTH" in capsys.readouterr().out
