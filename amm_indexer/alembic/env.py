from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from amm_indexer.app.config import get_settings
from amm_indexer.app.infrastructure.db.db_base import BaseDB
from amm_indexer.app.infrastructure.db.models.domain.amm_entities import AmmEntitiesDB  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().sync_database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = BaseDB.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        include_schemas=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
