"""
solify: test suite metadata for Anchor programs, generated from their IDL.
"""

__version__ = "0.1.0"
