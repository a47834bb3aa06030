"""Symbolic normal ordering and CAS reference reduction of fermionic operator strings."""

__version__ = "0.1.0"

__all__ = ["demo", "exact", "fixtures", "operators", "reference", "rewrite"]