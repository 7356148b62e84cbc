"""
Services package for the boards core.
"""

from .base import BaseService
from .changelog import ChangelogService, ChangelogQuery, ChangelogPage
from .users import UserLookupService
from .leaderboard_cache import LeaderboardCache, canonicalize_snapshot, strip_volatile_field
from .snapshot_store import FileSnapshotStore, RedisSnapshotStore, create_snapshot_store

__all__ = [
    'BaseService', 'ChangelogService', 'ChangelogQuery', 'ChangelogPage',
    'UserLookupService', 'LeaderboardCache', 'canonicalize_snapshot', 'strip_volatile_field',
    'FileSnapshotStore', 'RedisSnapshotStore', 'create_snapshot_store',
]
