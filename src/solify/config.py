"""
Configuration for test synthesis and metadata assembly.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional


ENV_PREFIX = "SOLIFY_"


def load_env(start: Optional[Path] = None) -> None:
    """Load .env file from the working directory or its parents."""
    current = start or Path.cwd()
    for _ in range(5):  # Check up to 5 parent dirs
        env_file = current / ".env"
        if env_file.exists():
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        os.environ.setdefault(key.strip(), value.strip())
            break
        current = current.parent


@dataclass(frozen=True)
class SynthesisConfig:
    """Sample values and probe sizes used by the synthesizer."""
    string_sample: str = "test_value"
    string_probe_length: int = 1000
    string_probe_char: str = "a"
    unsigned_sample: int = 1000
    signed_sample: int = 500
    default_label: str = "default"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "SynthesisConfig":
        """
        Build a config from SOLIFY_* variables.

        e.g. SOLIFY_STRING_PROBE_LENGTH=2048 or SOLIFY_DEFAULT_LABEL=ci.
        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            variable = ENV_PREFIX + f.name.upper()
            raw = environ.get(variable)
            if raw is None:
                continue
            if f.type in (int, "int"):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    raise ValueError(f"{variable} must be an integer, got {raw!r}") from None
            else:
                values[f.name] = raw
        return cls(**values)
