"""Patient Ledger: observable patient-record state over a key-value store."""

__version__ = "1.0.0"
