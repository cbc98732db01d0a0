"""Token casino: provably-priced games settled against a token ledger."""

__version__ = "0.1.0"
