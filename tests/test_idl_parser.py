"""Tests for IDL parsing into the interface model."""

import hashlib
import json

import pytest

from solify.analysis import CompositeKind, SeedKind, TypeKind
from solify.analysis.idl_parser import compute_discriminator, to_snake_case
from solify.errors import ParseError

from conftest import PROGRAM_ID, SYSTEM_PROGRAM


def test_parse_new_format(journal):
    assert journal.name == "journal"
    assert journal.version == "0.1.0"
    assert journal.program_id == PROGRAM_ID
    assert journal.instruction_names() == ["create_entry", "update_entry", "delete_entry"]

    ix = journal.get_instruction("create_entry")
    assert [a.name for a in ix.arguments] == ["title", "message"]
    assert ix.get_argument("title").data_type.kind == TypeKind.STRING
    assert ix.docs == ("Create a journal entry owned by the signer",)

    owner = ix.get_account("owner")
    assert owner.is_signer and owner.is_mut and not owner.is_derived
    assert ix.get_account("system_program").address == SYSTEM_PROGRAM


def test_parse_pda_seeds(journal):
    entry = journal.get_instruction("create_entry").get_account("entry")
    assert entry.is_derived
    seeds = entry.derived.seeds
    assert [s.kind for s in seeds] == [SeedKind.ARGUMENT, SeedKind.ACCOUNT]
    assert entry.derived.argument_refs() == ["title"]
    assert entry.derived.account_refs() == ["owner"]
    assert entry.derived.owning_program is None


def test_const_seed_bytes(counter):
    counter_account = counter.get_instruction("initialize").get_account("counter")
    literal = counter_account.derived.seeds[0]
    assert literal.kind == SeedKind.LITERAL
    assert literal.value == b"counter"
    assert literal.describe() == "'counter'"


def test_parse_legacy_format(parser, legacy_idl):
    model = parser.parse(legacy_idl)

    assert model.name == "vault"
    assert model.program_id == PROGRAM_ID
    ix = model.get_instruction("deposit")

    # Nested account groups are flattened
    assert [a.name for a in ix.accounts] == ["vault", "user", "mint", "userToken"]
    assert ix.get_account("userToken").is_optional
    assert ix.get_account("user").is_signer

    vault = ix.get_account("vault")
    assert vault.derived.seeds[0].value == b"vault"
    assert vault.derived.seeds[1].path == "user"

    assert ix.get_argument("recipient").data_type.kind == TypeKind.PUBKEY
    memo = ix.get_argument("memo").data_type
    assert memo.composite == CompositeKind.OPTION
    assert memo.inner.kind == TypeKind.STRING
    assert memo.describe() == "Option<string>"

    assert model.get_type("Side").variants == ("Bid", "Ask")


def test_doc_annotations(parser, legacy_idl):
    model = parser.parse(legacy_idl)
    amount = model.get_instruction("deposit").get_argument("amount")

    assert amount.constraints.min == 1
    assert amount.constraints.error == "ZeroAmount"
    assert amount.constraints.disallows_zero


def test_explicit_constraints(parser, journal_idl):
    journal_idl["instructions"][0]["args"][0]["constraints"] = {
        "maxLength": 32,
        "message": "Title too long",
    }
    model = parser.parse(journal_idl)
    title = model.get_instruction("create_entry").get_argument("title")

    assert title.constraints.max_length == 32
    assert title.constraints.message == "Title too long"


def test_allowed_values_coerced(parser, counter_idl):
    counter_idl["instructions"][1]["args"][0] = {
        "name": "value",
        "type": "u8",
        "docs": ["@allowed 1, 2, 0x10"],
    }
    model = parser.parse(counter_idl)
    value = model.get_instruction("set").get_argument("value")
    assert value.constraints.allowed == (1, 2, 16)


def test_integer_widths(parser, counter_idl):
    counter_idl["instructions"][1]["args"] = [
        {"name": "a", "type": "u8"},
        {"name": "b", "type": "i128"},
        {"name": "c", "type": {"array": ["u16", 4]}},
        {"name": "d", "type": "f64"},
    ]
    ix = parser.parse(counter_idl).get_instruction("set")

    a, b, c, d = (arg.data_type for arg in ix.arguments)
    assert (a.kind, a.width, a.max_value) == (TypeKind.UNSIGNED, 8, 255)
    assert (b.kind, b.min_value) == (TypeKind.SIGNED, -(2 ** 127))
    assert c.composite == CompositeKind.ARRAY and c.length == 4
    assert d.kind == TypeKind.UNSUPPORTED


def test_errors_parsed(counter):
    assert counter.get_error("ZeroAmount").code == 6000
    assert counter.get_error("Overflow").message == "Arithmetic overflow"
    assert counter.get_error("Missing") is None


def test_discriminator():
    expected = hashlib.sha256(b"global:create_entry").digest()[:8]
    assert compute_discriminator("createEntry") == expected
    assert to_snake_case("createEntry") == "create_entry"


def test_discriminator_from_idl(parser, journal_idl):
    journal_idl["instructions"][0]["discriminator"] = [1, 2, 3, 4, 5, 6, 7, 8]
    model = parser.parse(journal_idl)
    assert model.get_instruction("create_entry").discriminator == bytes([1, 2, 3, 4, 5, 6, 7, 8])
    assert model.get_instruction("update_entry").discriminator == compute_discriminator("update_entry")


def test_canonical_key(parser, journal_idl):
    journal_idl["instructions"][0]["accounts"][1]["canonicalKey"] = "journal_owner"
    model = parser.parse(journal_idl)
    owner = model.get_instruction("create_entry").get_account("owner")
    assert owner.key == "journal_owner"
    assert model.get_instruction("update_entry").get_account("owner").key == "owner"


def test_account_relations(parser, counter_idl):
    accounts = counter_idl["instructions"][1]["accounts"]
    accounts[0]["relations"] = ["authority"]
    accounts.append({"name": "audit_log", "docs": ['constraint: has_one = "counter"']})
    ix = parser.parse(counter_idl).get_instruction("set")

    assert ix.get_account("counter").relations == ("authority",)
    assert ix.get_account("audit_log").relations == ("counter",)
    assert ix.get_account("authority").relations == ()


def test_malformed_relations(parser, counter_idl):
    counter_idl["instructions"][1]["accounts"][0]["relations"] = "authority"
    with pytest.raises(ParseError):
        parser.parse(counter_idl)


def test_parse_file(parser, journal_file):
    model = parser.parse_file(journal_file)
    assert model.name == "journal"


def test_parse_file_missing(parser, tmp_path):
    with pytest.raises(FileNotFoundError):
        parser.parse_file(tmp_path / "missing.json")


@pytest.mark.parametrize("text", ["{not json", "[]", "{}", json.dumps({"instructions": []})])
def test_malformed_idl(parser, text):
    with pytest.raises(ParseError):
        parser.parse_json(text)


def test_unknown_seed_kind(parser, journal_idl):
    journal_idl["instructions"][0]["accounts"][0]["pda"]["seeds"].append({"kind": "magic"})
    with pytest.raises(ParseError) as exc:
        parser.parse(journal_idl)
    assert "create_entry" in exc.value.names
    assert "entry" in exc.value.names


def test_duplicate_instruction(parser, journal_idl):
    journal_idl["instructions"].append(journal_idl["instructions"][0])
    with pytest.raises(ParseError) as exc:
        parser.parse(journal_idl)
    assert exc.value.names == ["create_entry"]


def test_missing_argument_type(parser, journal_idl):
    del journal_idl["instructions"][0]["args"][0]["type"]
    with pytest.raises(ParseError):
        parser.parse(journal_idl)


def test_invalid_program_address(parser, journal_idl):
    journal_idl["address"] = "not-a-key"
    with pytest.raises(ParseError):
        parser.parse(journal_idl)


def test_min_greater_than_max(parser, counter_idl):
    counter_idl["instructions"][1]["args"][0]["constraints"] = {"min": 10, "max": 5}
    with pytest.raises(ParseError):
        parser.parse(counter_idl)


def test_summary(journal):
    summary = journal.summary()
    assert "Program: journal" in summary
    assert "create_entry (1 PDA)" in summary
