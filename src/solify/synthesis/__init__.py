"""
Synthesis module for type-aware test case generation.
"""

from .models import CaseKind, OutcomeKind, ExpectedOutcome, TestCase
from .generator import TestCaseSynthesizer

__all__ = [
    "CaseKind",
    "OutcomeKind",
    "ExpectedOutcome",
    "TestCase",
    "TestCaseSynthesizer",
]
