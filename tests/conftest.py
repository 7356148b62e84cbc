"""
Shared fixtures: a temporary SQLite database seeded with a small changelog.
"""

import os

# Set before boards.config is imported: no log files, default page size
os.environ["LOG_DIR"] = ""
os.environ["CHANGELOG_DEFAULT_LIMIT"] = "200"

from datetime import datetime

import pytest_asyncio

from boards.database import Database
from boards.database.models import Changelog, Chapter, Map, User

SP_CHAPTER, COOP_CHAPTER = 1, 2
PORTAL_GUN, SMOOTH_JAZZ, DOORS = "47458", "47455", "52642"
ZYPEH, ZYNTAX, ALPHA = "76561198000000001", "76561198000000002", "76561198000000003"


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'boards.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def seeded_database(database):
    """
    Five entries: three demoed single player runs (ids 1-3) and two coop runs
    (ids 4-5), one of which has no timestamp.
    """
    async with database.get_session() as session:
        session.add_all([
            Chapter(id=SP_CHAPTER, name="The Courtesy Call", is_multiplayer=False),
            Chapter(id=COOP_CHAPTER, name="Team Building", is_multiplayer=True),
        ])
        session.add_all([
            Map(steam_id=PORTAL_GUN, name="Portal Gun", chapter_id=SP_CHAPTER),
            Map(steam_id=SMOOTH_JAZZ, name="Smooth Jazz", chapter_id=SP_CHAPTER),
            Map(steam_id=DOORS, name="Doors", chapter_id=COOP_CHAPTER),
        ])
        session.add_all([
            User(profile_number=ZYPEH, board_name="Zypeh", steam_name="zyp", avatar="zypeh.png"),
            User(profile_number=ZYNTAX, board_name=None, steam_name="Zyntax"),
            # board_name overrides steam_name for display and lookup
            User(profile_number=ALPHA, board_name="Alpha", steam_name="ZZZ"),
        ])
        await session.flush()
        session.add_all([
            Changelog(id=1, timestamp=datetime(2024, 1, 1), profile_number=ZYPEH, score=1200,
                      map_id=PORTAL_GUN, demo_id=10, post_rank=1, pre_rank=3, category_id=1),
            Changelog(id=2, timestamp=datetime(2024, 1, 3), profile_number=ZYNTAX, score=1250,
                      map_id=PORTAL_GUN, demo_id=11, youtube_id="abc", post_rank=2, category_id=1),
            Changelog(id=3, timestamp=datetime(2024, 1, 2), profile_number=ALPHA, score=900,
                      map_id=SMOOTH_JAZZ, demo_id=12, post_rank=5, category_id=1),
            Changelog(id=4, timestamp=datetime(2024, 1, 4), profile_number=ZYPEH, score=1500,
                      map_id=DOORS, youtube_id="xyz", post_rank=1, category_id=2),
            Changelog(id=5, timestamp=None, profile_number=ZYNTAX, score=1600,
                      map_id=DOORS, demo_id=13, post_rank=4, category_id=2),
        ])
        await session.commit()
    return database
