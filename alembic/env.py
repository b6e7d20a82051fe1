"""
Alembic environment for the studyhub schema

The target database is chosen in this order:
    alembic -x url=<database url> upgrade head
    DATABASE_URL from studyhub settings (.env or environment)
    sqlalchemy.url in alembic.ini
"""
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

from studyhub.config import get_settings
from studyhub.database import Base
import studyhub.models  # noqa: F401  registers every table on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def database_url() -> str:
    url = context.get_x_argument(as_dictionary=True).get("url") or get_settings().DATABASE_URL
    if url:
        # the ini parser interpolates %, so escape it in passwords
        config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config.get_main_option("sqlalchemy.url")


def migration_options(dialect_name: str) -> dict:
    # SQLite cannot ALTER most constraints in place, so tables are rebuilt
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations() -> None:
    url = database_url()

    if context.is_offline_mode():
        context.configure(
            url=url,
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
            **migration_options(make_url(url).get_backend_name()),
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **migration_options(connection.dialect.name))
        with context.begin_transaction():
            context.run_migrations()


run_migrations()
