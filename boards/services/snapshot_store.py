"""
Durable key -> text stores for leaderboard snapshots.

Both backends report I/O failures as StoreError tagged with the operation.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from redis.exceptions import RedisError

from boards.config import Config
from boards.utils.exceptions import StoreError
from boards.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, text: str) -> None:
        ...


class FileSnapshotStore:
    """One `<key>.cache` file per leaderboard under a cache directory."""

    def __init__(self, cache_dir: str):
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: str) -> Path:
        name = str(key)
        if not name or os.sep in name or name in (".", ".."):
            raise ValueError(f"Invalid snapshot key: {key!r}")
        return self.cache_dir / f"{name}.cache"

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, path: Path, text: str):
        # Write to a sibling temp file then rename so readers never see partial text
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(text)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    async def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as e:
            logger.error(f"Failed reading snapshot cache {path}: {e}")
            raise StoreError("snapshot_get", str(e)) from e

    async def put(self, key: str, text: str) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write, path, text)
        except OSError as e:
            logger.error(f"Failed writing snapshot cache {path}: {e}")
            raise StoreError("snapshot_put", str(e)) from e


class RedisSnapshotStore:
    """Snapshots stored as plain string values under a key prefix."""

    def __init__(self, client, prefix: str = "boards:snapshot:"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.client.get(self._key(key))
        except RedisError as e:
            logger.error(f"Failed reading snapshot {key} from Redis: {e}")
            raise StoreError("snapshot_get", str(e)) from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def put(self, key: str, text: str) -> None:
        try:
            await self.client.set(self._key(key), text)
        except RedisError as e:
            logger.error(f"Failed writing snapshot {key} to Redis: {e}")
            raise StoreError("snapshot_put", str(e)) from e


def create_snapshot_store() -> SnapshotStore:
    """Build the snapshot store selected by Config.SNAPSHOT_BACKEND."""
    Config.validate()
    if Config.SNAPSHOT_BACKEND == "redis":
        logger.info("Using Redis snapshot store")
        return RedisSnapshotStore(RedisUtils.create_redis_client(), Config.SNAPSHOT_KEY_PREFIX)
    logger.info(f"Using file snapshot store at {Config.CACHE_DIR}")
    return FileSnapshotStore(Config.CACHE_DIR)
