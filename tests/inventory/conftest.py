import pytest
from inventory.ledger.memory_adapter import MemoryLedger
from inventory.ledger.sql_adapter import SqlLedger


@pytest.fixture()
def memory_ledger():
    return MemoryLedger({"prod-001": 10, "prod-002": 1})


@pytest.fixture()
def sql_ledger(tmp_path):
    ledger = SqlLedger(f"sqlite:///{tmp_path / 'ledger.db'}")
    ledger.create_tables()
    ledger.set_stock("prod-001", 10)
    ledger.set_stock("prod-002", 1)
    yield ledger
    ledger.drop_tables()
    ledger.engine.dispose()
