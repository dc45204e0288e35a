"""
History Layer - Step Outcome Ledger
"""

from troubleshooting_workflow.history.ledger import HistoryLedger, PersistentHistoryLedger

__all__ = [
    "HistoryLedger",
    "PersistentHistoryLedger",
]
