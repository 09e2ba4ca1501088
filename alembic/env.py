import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from tourism.core.config import settings
from tourism.db.session import Base

# Import all models so Alembic sees them in metadata
from tourism.models.user import User  # noqa: F401
from tourism.models.destination import Destination  # noqa: F401
from tourism.models.product import Product  # noqa: F401
from tourism.models.booking import Booking, BookingMessage, TimelineEntry  # noqa: F401
from tourism.models.cancellation import Cancellation  # noqa: F401
from tourism.models.audit_log import AuditLog  # noqa: F401
from tourism.models.email_log import EmailLog  # noqa: F401

config = context.config

# Force sqlalchemy.url from the runtime DATABASE_URL
db_url = settings.DATABASE_URL or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / tourism.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
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
    # engine_from_config would not expand env vars in alembic.ini, so build the engine from the resolved url
    connectable = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
