"""
Alembic environment for the ticketing schema.

Targets `ticketing.db.base.Base.metadata` with every ticketing model loaded:
users, events, bookings (embedded ticket payloads), the check-in log and the
activity log. Migrations run over the synchronous psycopg2 URL derived from
the application settings, online or as an offline SQL script.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from ticketing.core.config import get_settings
from ticketing.db.base import Base
from ticketing.models import ActivityLog, Booking, CheckIn, Event, User  # noqa: F401

config = context.config
settings = get_settings()

# alembic.ini carries no URL; DATABASE_URL_SYNC is the source of truth
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL_SYNC)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the ticketing DDL as SQL without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations to the configured ticketing database."""
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
