"""Inventory ledger factory.

Provides get_ledger() / set_ledger() to swap implementations:
- MemoryLedger for development and testing (default)
- SqlLedger when LEDGER_DATABASE_URI is configured
"""

from inventory.ledger.memory_adapter import MemoryLedger
from inventory.ledger.port import InventoryLedger

_current_ledger: InventoryLedger | None = None


def get_ledger() -> InventoryLedger:
    """Return the active ledger, building it from settings on first use."""
    global _current_ledger
    if _current_ledger is None:
        from ordering.config import get_settings

        uri = get_settings().ledger_database_uri
        if uri:
            from inventory.ledger.sql_adapter import SqlLedger

            _current_ledger = SqlLedger(uri)
        else:
            _current_ledger = MemoryLedger()
    return _current_ledger


def set_ledger(ledger: InventoryLedger) -> None:
    """Override the active ledger (useful for tests)."""
    global _current_ledger
    _current_ledger = ledger


def reset_ledger() -> None:
    """Reset to the default ledger."""
    global _current_ledger
    _current_ledger = None
