"""Shared IDL fixtures."""

import copy
import json

import pytest

from solify.analysis import IDLParser

PROGRAM_ID = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"
SYSTEM_PROGRAM = "11111111111111111111111111111111"

JOURNAL_IDL = {
    "address": PROGRAM_ID,
    "metadata": {"name": "journal", "version": "0.1.0", "spec": "0.1.0"},
    "instructions": [
        {
            "name": "create_entry",
            "docs": ["Create a journal entry owned by the signer"],
            "accounts": [
                {
                    "name": "entry",
                    "writable": True,
                    "pda": {"seeds": [{"kind": "arg", "path": "title"}, {"kind": "account", "path": "owner"}]},
                },
                {"name": "owner", "writable": True, "signer": True},
                {"name": "system_program", "address": SYSTEM_PROGRAM},
            ],
            "args": [
                {"name": "title", "type": "string"},
                {"name": "message", "type": "string"},
            ],
        },
        {
            "name": "update_entry",
            "accounts": [
                {
                    "name": "entry",
                    "writable": True,
                    "pda": {"seeds": [{"kind": "arg", "path": "title"}, {"kind": "account", "path": "owner"}]},
                },
                {"name": "owner", "writable": True, "signer": True},
                {"name": "system_program", "address": SYSTEM_PROGRAM},
            ],
            "args": [
                {"name": "title", "type": "string"},
                {"name": "message", "type": "string"},
            ],
        },
        {
            "name": "delete_entry",
            "accounts": [
                {
                    "name": "entry",
                    "writable": True,
                    "pda": {"seeds": [{"kind": "arg", "path": "title"}, {"kind": "account", "path": "owner"}]},
                },
                {"name": "owner", "writable": True, "signer": True},
                {"name": "system_program", "address": SYSTEM_PROGRAM},
            ],
            "args": [{"name": "title", "type": "string"}],
        },
    ],
    "errors": [
        {"code": 6000, "name": "EmptyString", "msg": "String cannot be empty"},
    ],
}

COUNTER_IDL = {
    "address": PROGRAM_ID,
    "metadata": {"name": "counter", "version": "0.1.0"},
    "instructions": [
        {
            "name": "initialize",
            "accounts": [
                {
                    "name": "counter",
                    "writable": True,
                    "pda": {
                        "seeds": [
                            {"kind": "const", "value": list(b"counter")},
                            {"kind": "account", "path": "authority"},
                        ]
                    },
                },
                {"name": "authority", "writable": True, "signer": True},
                {"name": "system_program", "address": SYSTEM_PROGRAM},
            ],
            "args": [],
        },
        {
            "name": "set",
            "accounts": [
                {
                    "name": "counter",
                    "writable": True,
                    "pda": {
                        "seeds": [
                            {"kind": "const", "value": list(b"counter")},
                            {"kind": "account", "path": "authority"},
                        ]
                    },
                },
                {"name": "authority", "signer": True},
            ],
            "args": [{"name": "value", "type": "u64", "constraints": {"min": 1}}],
        },
    ],
    "errors": [
        {"code": 6000, "name": "ZeroAmount", "msg": "Amount cannot be zero"},
        {"code": 6001, "name": "Overflow", "msg": "Arithmetic overflow"},
    ],
}

LEGACY_IDL = {
    "version": "0.1.0",
    "name": "vault",
    "metadata": {"address": PROGRAM_ID},
    "instructions": [
        {
            "name": "deposit",
            "accounts": [
                {
                    "name": "vault",
                    "isMut": True,
                    "isSigner": False,
                    "pda": {
                        "seeds": [
                            {"kind": "const", "type": "string", "value": "vault"},
                            {"kind": "account", "type": "publicKey", "path": "user"},
                        ]
                    },
                },
                {"name": "user", "isMut": True, "isSigner": True},
                {
                    "name": "tokenAccounts",
                    "accounts": [
                        {"name": "mint", "isMut": False, "isSigner": False},
                        {"name": "userToken", "isMut": True, "isSigner": False, "isOptional": True},
                    ],
                },
            ],
            "args": [
                {"name": "amount", "type": "u64", "docs": ["Lamports to deposit @min 1 @error ZeroAmount"]},
                {"name": "recipient", "type": "publicKey"},
                {"name": "memo", "type": {"option": "string"}},
            ],
        }
    ],
    "types": [
        {"name": "Side", "type": {"kind": "enum", "variants": [{"name": "Bid"}, {"name": "Ask"}]}},
    ],
    "errors": [
        {"code": 6000, "name": "ZeroAmount", "msg": "Deposit amount must be positive"},
    ],
}


@pytest.fixture
def parser():
    return IDLParser()


@pytest.fixture
def journal_idl():
    return copy.deepcopy(JOURNAL_IDL)


@pytest.fixture
def counter_idl():
    return copy.deepcopy(COUNTER_IDL)


@pytest.fixture
def legacy_idl():
    return copy.deepcopy(LEGACY_IDL)


@pytest.fixture
def journal(parser, journal_idl):
    return parser.parse(journal_idl)


@pytest.fixture
def counter(parser, counter_idl):
    return parser.parse(counter_idl)


@pytest.fixture
def journal_file(tmp_path, journal_idl):
    path = tmp_path / "journal.json"
    path.write_text(json.dumps(journal_idl))
    return path
