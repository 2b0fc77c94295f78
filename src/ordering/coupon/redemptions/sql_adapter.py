"""SQL coupon redemption counters (SQLAlchemy Core).

A claim runs in one transaction: seed the counter rows, then two conditional
increments (``... SET used_count = used_count + 1 WHERE used_count < :limit``).
Either increment touching no row rolls the whole claim back.
"""

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine

from ordering.coupon.redemptions.port import CouponRedemptions

metadata = MetaData()

totals_table = Table(
    "coupon_redemption_totals",
    metadata,
    Column("code", String(50), primary_key=True),
    Column("used_count", Integer, nullable=False, default=0),
)

per_user_table = Table(
    "coupon_redemption_users",
    metadata,
    Column("code", String(50), primary_key=True),
    Column("user_id", String(255), primary_key=True),
    Column("used_count", Integer, nullable=False, default=0),
)


class SqlRedemptions(CouponRedemptions):
    def __init__(self, database_uri: str | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if database_uri is None:
                raise ValueError("SqlRedemptions needs a database URI or an engine")
            engine = create_engine(database_uri)
        self.engine = engine
        self._insert = postgresql.insert if engine.dialect.name == "postgresql" else sqlite.insert

    def create_tables(self) -> None:
        metadata.create_all(self.engine, tables=[totals_table, per_user_table])

    def drop_tables(self) -> None:
        metadata.drop_all(self.engine, tables=[totals_table, per_user_table])

    def _seed(self, conn: Connection, table: Table, keys: dict, baseline: int) -> None:
        conn.execute(self._insert(table).values(**keys, used_count=baseline).on_conflict_do_nothing())
        statement = update(table).where(table.c.used_count < baseline).values(used_count=baseline)
        for column, value in keys.items():
            statement = statement.where(table.c[column] == value)
        conn.execute(statement)

    def _increment(self, conn: Connection, table: Table, keys: dict, limit: int) -> bool:
        statement = update(table).values(used_count=table.c.used_count + 1)
        for column, value in keys.items():
            statement = statement.where(table.c[column] == value)
        if limit:
            statement = statement.where(table.c.used_count < limit)
        return conn.execute(statement).rowcount == 1

    def claim(self, code, user_id, usage_limit, per_user_limit, used=0, user_used=0) -> bool:
        total_keys = {"code": code}
        user_keys = {"code": code, "user_id": str(user_id)}

        with self.engine.connect() as conn:
            transaction = conn.begin()
            self._seed(conn, totals_table, total_keys, used)
            self._seed(conn, per_user_table, user_keys, user_used)

            if not self._increment(conn, totals_table, total_keys, usage_limit):
                transaction.rollback()
                return False
            if not self._increment(conn, per_user_table, user_keys, per_user_limit):
                transaction.rollback()
                return False

            transaction.commit()
            return True

    def revoke(self, code, user_id) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                update(totals_table)
                .where(totals_table.c.code == code)
                .where(totals_table.c.used_count > 0)
                .values(used_count=totals_table.c.used_count - 1)
            )
            conn.execute(
                update(per_user_table)
                .where(per_user_table.c.code == code)
                .where(per_user_table.c.user_id == str(user_id))
                .where(per_user_table.c.used_count > 0)
                .values(used_count=per_user_table.c.used_count - 1)
            )

    def usage(self, code, user_id=None) -> tuple[int, int]:
        with self.engine.connect() as conn:
            total = conn.execute(
                select(totals_table.c.used_count).where(totals_table.c.code == code)
            ).scalar_one_or_none()
            mine = None
            if user_id:
                mine = conn.execute(
                    select(per_user_table.c.used_count)
                    .where(per_user_table.c.code == code)
                    .where(per_user_table.c.user_id == str(user_id))
                ).scalar_one_or_none()
        return total or 0, mine or 0
