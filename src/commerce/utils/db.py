"""SQL schema management for providers backed by a relational database.

The memory provider used in development and tests needs no schema; these
helpers only act on sqlite and postgresql providers.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    return [provider for provider in domain.providers.values() if provider.conn_info["provider"] in _SQL_PROVIDERS]


def _register_models(domain: Domain, provider) -> None:
    # Touching ``_dao`` makes protean build and register the SQLAlchemy model
    records = [
        *domain.registry.aggregates.values(),
        *domain.registry.entities.values(),
        *domain.registry.projections.values(),
    ]
    for record in records:
        # Event-sourced aggregates live in the event store, not in tables
        if getattr(record.cls.meta_, "is_event_sourced", False):
            continue
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every SQL provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.create_all(engine)
            touched.append(provider.name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop tables for every SQL provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            touched.append(provider.name)
    return touched
