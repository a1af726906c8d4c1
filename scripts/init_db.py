"""
Database initialization script - SessionTab ledger collections

Run once to create indexes and print collection stats:
    python scripts/init_db.py

Pass --seed-rates <group_id> <price> to give every priced role the same
starting rate for a group.
"""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

from motor.motor_asyncio import AsyncIOMotorClient
import logging

from sessiontab.db.indexes import create_indexes
from sessiontab.db.mongo_repository import MongoRepository
from sessiontab.models.membership import PRICED_ROLES

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = ["persons", "groups", "memberships", "rates", "attendance_batches"]

MONGODB_URL = os.getenv("MONGODB_URL")
MONGODB_DB_NAME = os.getenv("MONGODB_DB_NAME")

if not MONGODB_URL or not MONGODB_DB_NAME:
    raise ValueError("MONGODB_URL and MONGODB_DB_NAME must be set in .env file")


async def seed_rates(repository: MongoRepository, group_id: int, price: float):
    for role in PRICED_ROLES:
        await repository.set_rate(group_id, role, price)
        logger.info(f"  Rate for {role.value} in group {group_id} set to {price}")


async def main(argv):
    logger.info("=" * 60)
    logger.info("  SessionTab Database Setup")
    logger.info("=" * 60)

    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[MONGODB_DB_NAME]

    try:
        await client.admin.command('ping')
        logger.info(f"Connected to {MONGODB_DB_NAME}")

        await create_indexes(db)

        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            logger.info(f"  {name}: {', '.join(i for i in indexes if i != '_id_') or 'no extra indexes'}")

        if len(argv) == 3 and argv[0] == "--seed-rates":
            await seed_rates(MongoRepository(client, db), int(argv[1]), float(argv[2]))

        for name in COLLECTIONS:
            logger.info(f"  {name}: {await db[name].count_documents({})} document(s)")

        logger.info("Database initialization complete!")

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
