from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from mentormatch.config import settings
from mentormatch.database import Base
from mentormatch import models  # noqa: F401 - populates Base.metadata

alembic_config = context.config
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

database_url = settings.DATABASE_URL
if not database_url:
    raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

# ConfigParser interpolates %, so percent-encoded passwords need doubling.
alembic_config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))

target_metadata = Base.metadata
# SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
use_batch = database_url.startswith("sqlite")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=use_batch,
        **kwargs,
    )


if context.is_offline_mode():
    _configure(
        url=alembic_config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = engine_from_config(
        alembic_config.get_section(alembic_config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()
