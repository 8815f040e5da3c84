"""
Database initialization script - pantry indexes and a document count

Run once per environment to create indexes:
    python scripts/init_db.py

Pass --check to only list the existing indexes.
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are built
load_dotenv()

import logging

from desire.core.config import settings
from desire.db.indexes import create_indexes, list_indexes
from desire.db.mongo import (
    close_mongo_connection,
    connect_to_mongo,
    get_device_flags_collection,
    get_pantry_collection,
    get_profiles_collection,
)

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


async def show_indexes():
    indexes = await list_indexes()
    logger.info("pantry_items indexes:")
    for name, key in indexes.items():
        if name != "_id_":
            logger.info(f"  {name}: {key}")


async def show_stats():
    stats = {
        "profiles": await get_profiles_collection().count_documents({}),
        "pantry_items": await get_pantry_collection().count_documents({}),
        "device_flags": await get_device_flags_collection().count_documents({}),
    }
    logger.info("Current documents:")
    for name, count in stats.items():
        logger.info(f"  {name}: {count}")


async def main(check_only: bool = False):
    """Main initialization"""
    logger.info("=" * 60)
    logger.info(f"  Desire Database Setup ({settings.MONGODB_DB_NAME})")
    logger.info("=" * 60)

    await connect_to_mongo()
    try:
        if not check_only:
            await create_indexes()
        await show_indexes()
        await show_stats()
    except Exception as e:
        logger.error(f"Error: {e}")
        raise
    finally:
        await close_mongo_connection()

    logger.info("=" * 60)


if __name__ == "__main__":
    asyncio.run(main(check_only="--check" in sys.argv[1:]))
