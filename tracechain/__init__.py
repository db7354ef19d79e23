"""Supply-chain custody ledger with information-gain certificates."""

__version__ = "0.1.0"
