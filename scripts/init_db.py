#!/usr/bin/env python3
"""
Initialize database with all tables
"""
import asyncio

from sprint_planner.database import init_models
from sprint_planner.models.base import Base
from sprint_planner.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def init_database():
    """Create all tables"""
    await init_models()
    logger.info("Created tables: %s", ", ".join(t.name for t in Base.metadata.sorted_tables))


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
