"""
sessiontab/db/indexes.py

Purpose: Database index management

- Unique indexes backing the ledger invariants
  (one person per external ID, one membership per person+group,
  one rate per group+role)
- Lookup indexes for handle search and "latest active batch"
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from sessiontab.core.logging import get_logger

logger = get_logger(__name__)

HANDLE_COLLATION = {"locale": "en", "strength": 2}


async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        persons = database["persons"]
        groups = database["groups"]
        memberships = database["memberships"]
        rates = database["rates"]
        batches = database["attendance_batches"]

        logger.info("Creating database indexes...")

        # ==============================================
        # PERSONS
        # ==============================================

        await persons.create_index("external_id", unique=True, name="person_external_id_unique")
        logger.debug("Created unique index on persons.external_id")

        # Case-insensitive handle lookups for /attendance @handle
        await persons.create_index(
            "handle",
            name="person_handle_idx",
            collation=HANDLE_COLLATION,
        )
        logger.debug("Created index on persons.handle")

        # ==============================================
        # GROUPS
        # ==============================================

        await groups.create_index("external_id", unique=True, name="group_external_id_unique")
        logger.debug("Created unique index on groups.external_id")

        # ==============================================
        # MEMBERSHIPS
        # ==============================================

        await memberships.create_index(
            [("person_id", ASCENDING), ("group_id", ASCENDING)],
            unique=True,
            name="membership_person_group_unique"
        )
        logger.debug("Created unique index on memberships.person_id + group_id")

        # Report and settle listings are per group, ordered by name
        await memberships.create_index(
            [("group_id", ASCENDING), ("name", ASCENDING)],
            name="membership_group_name_idx"
        )
        logger.debug("Created index on memberships.group_id + name")

        # ==============================================
        # RATES
        # ==============================================

        await rates.create_index(
            [("group_id", ASCENDING), ("role", ASCENDING)],
            unique=True,
            name="rate_group_role_unique"
        )
        logger.debug("Created unique index on rates.group_id + role")

        # ==============================================
        # ATTENDANCE BATCHES
        # ==============================================

        await batches.create_index(
            [("group_id", ASCENDING), ("is_reverted", ASCENDING), ("created_at", DESCENDING)],
            name="batch_latest_active_idx"
        )
        logger.debug("Created index on attendance_batches.group_id + is_reverted + created_at")

        logger.info("All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from sessiontab.db.mongo import connect_to_mongo, close_mongo_connection, get_database

    async def main():
        await connect_to_mongo()
        await create_indexes(get_database())
        await close_mongo_connection()

    asyncio.run(main())
