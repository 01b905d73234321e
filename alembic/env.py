import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import src.appointment.models  # noqa: F401
import src.notification.models  # noqa: F401
import src.plan.models  # noqa: F401
import src.scheduling.models  # noqa: F401
import src.user.models  # noqa: F401
import src.vehicle.models  # noqa: F401
from src.base.config import DATABASE_URI
from src.base.models import BaseDbModel

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = BaseDbModel.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=DATABASE_URI,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(DATABASE_URI)
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
