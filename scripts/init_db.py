"""
Create the monitored_accounts table in the configured database.
"""
import asyncio
from shared.database import engine
from agents.health_monitor.services.store import create_tables


async def init_database():
    if engine is None:
        print("ERROR: DATABASE_URL not configured. Set it in .env")
        return

    print("Connecting to database...")
    await create_tables(engine)
    await engine.dispose()
    print("Database initialization complete.")


if __name__ == "__main__":
    asyncio.run(init_database())
