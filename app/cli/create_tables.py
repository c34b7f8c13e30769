# app/cli/create_tables.py
import asyncio
import click
from sqlalchemy.ext.asyncio import create_async_engine
from app.database import Base

# Import all models to ensure they're registered with the Base
from app import models  # noqa: F401


@click.command()
@click.option('--echo', is_flag=True, help='Echo the generated SQL')
def create_tables(echo):
    """Create all database tables directly using SQLAlchemy"""
    from app.core.config import get_settings
    settings = get_settings()

    async def _create_tables():
        engine = create_async_engine(settings.DATABASE_URL, echo=echo)
        async with engine.begin() as conn:
            # This will create all tables defined in models that inherit from Base
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


if __name__ == "__main__":
    create_tables()
