"""Holdings Ledger - quarterly 13F holdings history and QoQ analytics."""

__version__ = "0.1.0"
