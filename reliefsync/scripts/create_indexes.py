#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create MongoDB indexes for the ReliefSync collections.
"""

import asyncio
import sys
import logging

from reliefsync.config import EngineConfig
from reliefsync.services.mongodb import MongoDocumentStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


async def create_indexes(config: EngineConfig) -> int:
    """Create indexes, returning a process exit code."""
    store = MongoDocumentStore(
        connection_string=config.mongodb_uri,
        database_name=config.mongodb_database,
        collection_prefix=config.app_id
    )
    try:
        health = await store.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB - Database: {health['database']}")
        await store.create_indexes()
        logger.info("MongoDB indexes created successfully!")
        return 0
    finally:
        await store.close()


def main():
    """Create MongoDB indexes."""
    logger.info("Starting MongoDB index creation...")
    sys.exit(asyncio.run(create_indexes(EngineConfig.from_env())))


if __name__ == "__main__":
    main()
