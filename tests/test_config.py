"""Tests for configuration loading."""

import os

import pytest

from solify.config import SynthesisConfig, load_env


def test_defaults():
    config = SynthesisConfig()
    assert config.string_sample == "test_value"
    assert config.string_probe_length == 1000
    assert config.unsigned_sample == 1000
    assert config.default_label == "default"


def test_from_env():
    config = SynthesisConfig.from_env({
        "SOLIFY_STRING_PROBE_LENGTH": "2048",
        "SOLIFY_DEFAULT_LABEL": "ci",
        "UNRELATED": "x",
    })
    assert config.string_probe_length == 2048
    assert config.default_label == "ci"
    assert config.string_sample == "test_value"


def test_from_env_rejects_non_integer():
    with pytest.raises(ValueError, match="SOLIFY_STRING_PROBE_LENGTH"):
        SynthesisConfig.from_env({"SOLIFY_STRING_PROBE_LENGTH": "lots"})


def test_load_env_from_parent(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("# comment\nSOLIFY_DEFAULT_LABEL = nightly\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.delenv("SOLIFY_DEFAULT_LABEL", raising=False)

    load_env(nested)

    assert os.environ["SOLIFY_DEFAULT_LABEL"] == "nightly"
    assert SynthesisConfig.from_env().default_label == "nightly"


def test_load_env_keeps_existing(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("SOLIFY_DEFAULT_LABEL=from_file\n")
    monkeypatch.setenv("SOLIFY_DEFAULT_LABEL", "from_shell")

    load_env(tmp_path)

    assert os.environ["SOLIFY_DEFAULT_LABEL"] == "from_shell"
