"""
Metadata module: assembles test suites and hands them to sinks.
"""

from .models import (
    SetupKind,
    SetupStep,
    DerivedAddressInit,
    InstructionMetadata,
    TestSuiteMetadata,
)
from .assembler import MetadataAssembler
from .sinks import MetadataSink, JsonFileSink, ChunkedJsonSink

__all__ = [
    "SetupKind",
    "SetupStep",
    "DerivedAddressInit",
    "InstructionMetadata",
    "TestSuiteMetadata",
    "MetadataAssembler",
    "MetadataSink",
    "JsonFileSink",
    "ChunkedJsonSink",
]
