from protean.domain import Domain
from sqlalchemy import create_engine

from ordering.config import get_settings


def _sql_adapters(database_uri: str):
    from inventory.ledger.sql_adapter import SqlLedger
    from ordering.coupon.redemptions.sql_adapter import SqlRedemptions

    return SqlLedger(database_uri), SqlRedemptions(database_uri)


def setup_db(domain: Domain):
    """Create aggregate tables and, when configured, the ledger tables."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                # Accessing _dao registers each aggregate's model with SQLAlchemy
                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.entities.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                provider._metadata.create_all(engine)

    uri = get_settings().ledger_database_uri
    if uri:
        for adapter in _sql_adapters(uri):
            adapter.create_tables()


def drop_db(domain: Domain):
    """Drop aggregate tables and, when configured, the ledger tables."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])
                provider._metadata.drop_all(engine)

    uri = get_settings().ledger_database_uri
    if uri:
        for adapter in _sql_adapters(uri):
            adapter.drop_tables()
