"""Per-group reserve / pending ledger."""

__version__ = '0.1.0'
