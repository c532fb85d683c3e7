"""TTL cache of raw generation responses.

Entries are keyed by the prompt cache key. Expired entries are evicted
lazily when read; there is no background sweep. When a path is configured
the cache is loaded on construction and persisted after every mutation.
"""

import asyncio
import base64
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError, field_serializer, field_validator

DEFAULT_TTL_SECONDS = 900

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class CacheEntry(BaseModel):
    payload: bytes
    created_at: datetime
    expires_at: datetime

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, value: Any) -> Any:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("payload", when_used="json")
    def _encode_payload(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class ResponseCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        path: Path | str | None = None,
        clock: Clock = utc_now,
    ):
        self.ttl_seconds = ttl_seconds
        self._path = Path(path) if path else None
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        if self._path is not None:
            self._entries = self._load(self._path)

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("response_cache: Expired entry evicted", cache_key=key[:12])
                await self._persist()
                return None
            logger.debug("response_cache: Cache hit", cache_key=key[:12])
            return entry.payload

    async def put(self, key: str, payload: bytes, ttl_seconds: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self._clock()
        async with self._lock:
            self._entries[key] = CacheEntry(
                payload=payload,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl),
            )
            logger.debug("response_cache: Entry stored", cache_key=key[:12], ttl_seconds=ttl)
            await self._persist()

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            await self._persist()

    async def _persist(self) -> None:
        if self._path is None:
            return
        snapshot = {key: entry.model_dump(mode="json") for key, entry in self._entries.items()}
        await asyncio.to_thread(self._write, self._path, snapshot)

    @staticmethod
    def _write(path: Path, snapshot: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(snapshot), encoding="utf-8")
        tmp_path.replace(path)

    @staticmethod
    def _load(path: Path) -> dict[str, CacheEntry]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("response_cache: Could not read cache file, starting empty", path=str(path), error=str(e))
            return {}

        entries: dict[str, CacheEntry] = {}
        for key, value in raw.items() if isinstance(raw, dict) else []:
            try:
                entries[key] = CacheEntry.model_validate(value)
            except ValidationError as e:
                logger.warning("response_cache: Skipping corrupt entry", cache_key=key[:12], errors=e.error_count())
        logger.debug("response_cache: Loaded entries", path=str(path), count=len(entries))
        return entries
