import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Inject application settings for DB URL
from siren.core.config import settings  # type: ignore

mysql_user = os.getenv("MYSQL_USER", settings.mysql_user)
mysql_password = os.getenv("MYSQL_PASSWORD", settings.mysql_password)
mysql_host = os.getenv("MYSQL_HOST", settings.mysql_host)
mysql_port = os.getenv("MYSQL_PORT", str(settings.mysql_port))
mysql_db = os.getenv("MYSQL_DB", settings.mysql_db)

# Use 127.0.0.1 to force TCP/IP instead of the Unix socket
if mysql_host == "localhost":
    mysql_host = "127.0.0.1"

if settings.database_url:
    sqlalchemy_url = settings.database_url
else:
    sqlalchemy_url = (
        f"mysql+pymysql://{mysql_user}:{mysql_password}"
        f"@{mysql_host}:{mysql_port}/{mysql_db}?charset=utf8mb4"
    )

print(f"[Alembic] Migrating {mysql_user}@{mysql_host}:{mysql_port}/{mysql_db}", file=sys.stderr)

config.set_main_option("sqlalchemy.url", sqlalchemy_url)

from siren.db.base import Base
from siren.db.models import *  # noqa: F401,F403

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine, so no
    DBAPI needs to be available. Calls to context.execute() emit the given
    string to the script output.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    try:
        connectable = engine_from_config(
            config.get_section(config.config_ini_section, {}),
            prefix="sqlalchemy.",
            poolclass=pool.NullPool,
        )

        with connectable.connect() as connection:
            context.configure(connection=connection, target_metadata=target_metadata)

            with context.begin_transaction():
                context.run_migrations()
    except Exception as e:
        print("\n[ERROR] Database connection failed:", file=sys.stderr)
        print(f"  Host: {mysql_host}", file=sys.stderr)
        print(f"  Port: {mysql_port}", file=sys.stderr)
        print(f"  User: {mysql_user}", file=sys.stderr)
        print(f"  Database: {mysql_db}", file=sys.stderr)
        print(f"\n  Error: {str(e)}", file=sys.stderr)
        print("\n  Override with env vars: MYSQL_HOST, MYSQL_USER, MYSQL_PASSWORD or DATABASE_URL", file=sys.stderr)
        raise


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
