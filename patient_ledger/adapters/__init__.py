"""Adapters for Patient Ledger.

Concrete implementations of the domain ports.
"""
