"""
desire/db/indexes.py

Purpose: Database index management

- Unique key per pantry item within an identity
- Fast per-identity pantry listing
"""

from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from desire.db.mongo import get_pantry_collection
from desire.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        pantry = get_pantry_collection()

        logger.info("Creating database indexes...")

        # One document per normalized name per identity
        await pantry.create_index(
            [("identity_id", ASCENDING), ("name", ASCENDING)],
            unique=True,
            name="identity_item_unique"
        )
        logger.debug("Created unique index on pantry_items.identity_id + name")

        # Profiles and device flags are keyed by _id; no extra index needed

        logger.info("All database indexes created successfully")

    except PyMongoError as e:
        logger.error(f"Error creating indexes: {str(e)}", exc_info=True)
        raise


async def list_indexes() -> dict:
    """
    Lists the indexes on the pantry collection.

    Returns:
        Dict mapping index name to its key spec
    """
    pantry = get_pantry_collection()
    info = await pantry.index_information()
    return {name: spec.get("key") for name, spec in info.items()}
