"""SQL inventory ledger backed by SQLAlchemy Core.

Reservations are a single conditional UPDATE:

    UPDATE inventory_ledger
       SET stock_count = stock_count - :quantity
     WHERE product_id = :product_id AND stock_count >= :quantity

and succeed only when exactly one row was affected, so the database decides
every race. Seeding and releases are upserts (``INSERT ... ON CONFLICT``) on
PostgreSQL and SQLite.
"""

import structlog
from sqlalchemy import (
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from inventory.ledger.port import InventoryLedger, ReservationResult

logger = structlog.get_logger(__name__)

metadata = MetaData()

ledger_table = Table(
    "inventory_ledger",
    metadata,
    Column("product_id", String(255), primary_key=True),
    Column("stock_count", Integer, nullable=False, default=0),
    CheckConstraint("stock_count >= 0", name="ck_inventory_ledger_non_negative"),
)


def _insert_for(engine: Engine):
    if engine.dialect.name == "postgresql":
        return postgresql.insert
    if engine.dialect.name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upserts are not supported on {engine.dialect.name}")


class SqlLedger(InventoryLedger):
    def __init__(self, database_uri: str | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if database_uri is None:
                raise ValueError("SqlLedger needs a database URI or an engine")
            engine = create_engine(database_uri)
        self.engine = engine
        self._insert = _insert_for(engine)

    def create_tables(self) -> None:
        metadata.create_all(self.engine, tables=[ledger_table])

    def drop_tables(self) -> None:
        metadata.drop_all(self.engine, tables=[ledger_table])

    def reserve(self, product_id: str, quantity: int) -> ReservationResult:
        if quantity < 1:
            raise ValueError("Reservation quantity must be at least 1")

        statement = (
            update(ledger_table)
            .where(ledger_table.c.product_id == str(product_id))
            .where(ledger_table.c.stock_count >= quantity)
            .values(stock_count=ledger_table.c.stock_count - quantity)
        )
        with self.engine.begin() as conn:
            result = conn.execute(statement)
            remaining = conn.execute(
                select(ledger_table.c.stock_count).where(ledger_table.c.product_id == str(product_id))
            ).scalar_one_or_none()

        ok = result.rowcount == 1
        if ok:
            logger.debug("Stock reserved", product_id=str(product_id), quantity=quantity, remaining=remaining)
        return ReservationResult(str(product_id), quantity, ok=ok, remaining=remaining or 0)

    def release(self, product_id: str, quantity: int) -> int:
        if quantity < 1:
            raise ValueError("Release quantity must be at least 1")

        insert = self._insert(ledger_table).values(product_id=str(product_id), stock_count=quantity)
        statement = insert.on_conflict_do_update(
            index_elements=[ledger_table.c.product_id],
            set_={"stock_count": ledger_table.c.stock_count + insert.excluded.stock_count},
        )
        with self.engine.begin() as conn:
            conn.execute(statement)
            current = conn.execute(
                select(ledger_table.c.stock_count).where(ledger_table.c.product_id == str(product_id))
            ).scalar_one()

        logger.debug("Stock released", product_id=str(product_id), quantity=quantity, stock=current)
        return current

    def stock_of(self, product_id: str) -> int | None:
        with self.engine.connect() as conn:
            return conn.execute(
                select(ledger_table.c.stock_count).where(ledger_table.c.product_id == str(product_id))
            ).scalar_one_or_none()

    def set_stock(self, product_id: str, quantity: int) -> None:
        if quantity < 0:
            raise ValueError("Stock cannot be negative")

        insert = self._insert(ledger_table).values(product_id=str(product_id), stock_count=quantity)
        statement = insert.on_conflict_do_update(
            index_elements=[ledger_table.c.product_id],
            set_={"stock_count": insert.excluded.stock_count},
        )
        with self.engine.begin() as conn:
            conn.execute(statement)
