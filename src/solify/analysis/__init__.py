"""
Analysis module for parsing program interfaces and ordering their accounts.
"""

from .models import (
    InterfaceModel,
    InstructionSpec,
    AccountUsage,
    ArgumentSpec,
    ArgumentConstraints,
    DataType,
    TypeKind,
    CompositeKind,
    DerivedAddressSpec,
    SeedSource,
    SeedKind,
    ErrorDef,
    TypeDef,
)
from .idl_parser import IDLParser
from .dependency_graph import DependencyGraph, DependencyGraphBuilder, AccountNode, DependencyEdge
from .address_resolver import DerivedAddress, DerivedAddressResolver, find_program_address
from .context import TestContext

__all__ = [
    "InterfaceModel",
    "InstructionSpec",
    "AccountUsage",
    "ArgumentSpec",
    "ArgumentConstraints",
    "DataType",
    "TypeKind",
    "CompositeKind",
    "DerivedAddressSpec",
    "SeedSource",
    "SeedKind",
    "ErrorDef",
    "TypeDef",
    "IDLParser",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "AccountNode",
    "DependencyEdge",
    "DerivedAddress",
    "DerivedAddressResolver",
    "find_program_address",
    "TestContext",
]
