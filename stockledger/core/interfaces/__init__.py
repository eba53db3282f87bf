"""Core interfaces (ports) implemented by infrastructure."""

from stockledger.core.interfaces.ledger_store import ILedgerSession, ILedgerStore

__all__ = ["ILedgerSession", "ILedgerStore"]
