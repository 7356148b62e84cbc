"""
Change detection for periodically re-fetched leaderboard snapshots.

The ingestion job re-downloads every leaderboard on a timer. Most fetches only
differ in the total entry count, which moves on every fetch, so that field is
stripped before the snapshot is compared with (and written over) the cached copy.
"""

import asyncio
import re
from collections import defaultdict
from typing import Dict, Optional, Tuple, Union

from boards.config import Config
from boards.services.snapshot_store import SnapshotStore
from boards.utils.logger import setup_logger

logger = setup_logger(__name__)

_SEPARATORS = ",;&"

# A count, optionally quoted, with optional thousands grouping ("1,234")
_NUMBER = r'"?-?(?:\d{1,3}(?:,\d{3})+(?!\d)|\d+)(?:\.\d+)?"?'


def _element_pattern(field: str) -> "re.Pattern":
    name = re.escape(field)
    return re.compile(rf"<{name}>.*?</{name}>", re.DOTALL)


def _key_value_pattern(field: str) -> "re.Pattern":
    name = re.escape(field)
    other_value = rf'[^{_SEPARATORS}\n}}]*'
    return re.compile(rf'(?<!\w)"?{name}"?\s*[=:]\s*(?:{_NUMBER}|{other_value})')


def strip_volatile_field(text: str, field: str = None) -> Tuple[str, bool]:
    """
    Strip the volatile field and its value from a snapshot.

    Only the first occurrence is removed. Two layouts are recognised:

    - element form, ``<field>value</field>``: the whole element is removed.
    - key/value form, ``field=value`` or ``"field": value``: a numeric value
      (thousands separators allowed) is removed whole; any other value runs
      up to the next ``,`` ``;`` ``&``, newline or closing brace. One adjacent
      separator goes with it (the preceding one if any, else the following one).

    Returns:
        (text, found): the stripped text, or the input unchanged with
        found=False when the snapshot has no such field
    """
    field = field or Config.VOLATILE_FIELD

    match = _element_pattern(field).search(text)
    if match:
        return text[:match.start()] + text[match.end():], True

    match = _key_value_pattern(field).search(text)
    if not match:
        return text, False

    start, end = match.start(), match.end()
    before = text[:start].rstrip()
    if before and before[-1] in _SEPARATORS:
        start = len(before) - 1
    else:
        after = text[end:]
        stripped = after.lstrip(" \t")
        if stripped and stripped[0] in _SEPARATORS:
            end += len(after) - len(stripped) + 1
            end += len(text[end:]) - len(text[end:].lstrip(" \t"))
    return text[:start] + text[end:], True


def canonicalize_snapshot(text: str, field: str = None) -> str:
    """Canonical form of a snapshot; text without the field is already canonical."""
    return strip_volatile_field(text, field)[0]


class LeaderboardCache:
    """Per-leaderboard canonical snapshot cache with change detection."""

    def __init__(self, store: SnapshotStore, volatile_field: Optional[str] = None):
        self.store = store
        self.volatile_field = volatile_field or Config.VOLATILE_FIELD
        # One lock per leaderboard id; different ids never contend.
        # Never pruned: the key set is the bounded set of tracked maps.
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def update(self, board_id: Union[int, str], text: str) -> bool:
        """
        Record a freshly fetched snapshot.

        Args:
            board_id: Leaderboard identifier used as the cache key
            text: Full snapshot text as fetched

        Returns:
            True when the canonical snapshot is new or differs from the cached
            one (the new text is stored before returning), False otherwise

        Raises:
            StoreError: Reading or writing the snapshot store failed
        """
        key = str(board_id)
        canonical, found = strip_volatile_field(text, self.volatile_field)
        if not found:
            logger.warning(
                f"Snapshot for leaderboard {key} has no '{self.volatile_field}' field; comparing raw text"
            )

        async with self._locks[key]:
            cached = await self.store.get(key)
            if cached is not None and cached == canonical:
                logger.debug(f"Content not updated for leaderboard {key}")
                return False
            await self.store.put(key, canonical)

        if cached is None:
            logger.info(f"Cached first snapshot for leaderboard {key}")
        else:
            logger.debug(f"Snapshot changed for leaderboard {key}")
        return True

    async def get(self, board_id: Union[int, str]) -> Optional[str]:
        """Return the cached canonical snapshot, or None if never seen."""
        key = str(board_id)
        async with self._locks[key]:
            return await self.store.get(key)
