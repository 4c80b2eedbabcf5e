"""
Create the Pilot tables without running migrations.

    python -m app.db.init_db            # create missing tables
    python -m app.db.init_db --reset    # drop everything first
"""

import argparse
import asyncio

from app.config import settings
from app.db.database import drop_db, engine, init_db


async def main(reset: bool = False):
    print(f"Using database: {settings.database_url}")
    if reset:
        print("Dropping all tables...")
        await drop_db()
    print("Creating database tables...")
    await init_db()
    await engine.dispose()
    print("Database initialized successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the dashboard tables")
    parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()
    asyncio.run(main(reset=args.reset))
