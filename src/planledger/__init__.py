"""Plan finalization, decision ledger and signature workflow for special-education plans."""

__version__ = "0.1.0"
