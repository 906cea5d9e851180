import os
from logging.config import fileConfig
from sqlalchemy import create_engine, pool
from alembic import context
from dotenv import load_dotenv

# .env sits next to server.py
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env'))

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name)

# Every table must be imported before target_metadata is read
from database.config import DATABASE_URL
from database.models import Base
from database import marketplace_models, commerce_models  # noqa: F401 - register tables

target_metadata = Base.metadata


def _database_url() -> str:
    # DATABASE_URL wins over alembic.ini; ConfigParser would choke on '%' in passwords
    return os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url") or DATABASE_URL


def run_migrations_offline():
    """
    Emit the migration SQL without a database connection.
    """
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """
    Run migrations against the configured database.
    """
    url = _database_url()
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite can only ALTER through table copies
            render_as_batch=url.startswith("sqlite"),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
