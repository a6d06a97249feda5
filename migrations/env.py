"""Alembic env for the tree_ratings schema. The database URL comes from Tree Rater settings, not alembic.ini."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

from src.core.config import get_config
from src.models.entities import TreeRatingRecord  # noqa: F401 - registers tree_ratings on the metadata

target_metadata = SQLModel.metadata

config = context.config
if config.config_file_name is not None:
    # Keep application loggers (src.*) alive when migrations run in-process (CLI, tests).
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def run_migrations_offline() -> None:
    """Emit SQL for the configured database without connecting."""
    context.configure(
        url=get_config().database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a short-lived connection (no pooling)."""
    engine = create_engine(get_config().database_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
