"""Infrastructure layer for Patient Ledger: configuration and logging."""
