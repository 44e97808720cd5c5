"""Ledger - immutable chain-of-custody records."""

from examcustody.ledger.ledger import DEFAULT_HISTORY_LIMIT, CustodyLedger

__all__ = ["DEFAULT_HISTORY_LIMIT", "CustodyLedger"]
