"""Per-user daily quota for remote generation.

Buckets by calendar date, not by a rolling 24h window: one use today blocks
further use until the date changes, regardless of elapsed hours.
"""

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

DEFAULT_DAILY_LIMIT = 1


class UsageRecord(BaseModel):
    day: date
    count: int = 0


class UsageLimiter:
    def __init__(self, daily_limit: int = DEFAULT_DAILY_LIMIT, path: Path | str | None = None):
        self.daily_limit = daily_limit
        self._path = Path(path) if path else None
        self._records: dict[str, UsageRecord] = {}
        self._lock = asyncio.Lock()
        if self._path is not None:
            self._records = self._load(self._path)

    async def can_use(self, user_id: str, on: date) -> bool:
        async with self._lock:
            record = self._records.get(user_id)
            if record is None or record.day != on:
                return True
            return record.count < self.daily_limit

    async def register_usage(self, user_id: str, on: date) -> UsageRecord:
        async with self._lock:
            record = self._records.get(user_id)
            if record is None or record.day != on:
                record = UsageRecord(day=on, count=1)
            else:
                record = UsageRecord(day=on, count=record.count + 1)
            self._records[user_id] = record
            logger.info(
                "usage_limiter: Usage registered",
                user_id=user_id,
                day=on.isoformat(),
                count=record.count,
                daily_limit=self.daily_limit,
            )
            await self._persist()
            return record

    async def record_for(self, user_id: str) -> UsageRecord | None:
        async with self._lock:
            return self._records.get(user_id)

    async def _persist(self) -> None:
        if self._path is None:
            return
        snapshot = {user_id: record.model_dump(mode="json") for user_id, record in self._records.items()}
        await asyncio.to_thread(self._write, self._path, snapshot)

    @staticmethod
    def _write(path: Path, snapshot: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
        tmp_path.replace(path)

    @staticmethod
    def _load(path: Path) -> dict[str, UsageRecord]:
        if not path.exists():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("usage_limiter: Could not read usage file, starting empty", path=str(path), error=str(e))
            return {}

        records: dict[str, UsageRecord] = {}
        for user_id, value in raw.items() if isinstance(raw, dict) else []:
            try:
                records[user_id] = UsageRecord.model_validate(value)
            except ValidationError as e:
                logger.warning("usage_limiter: Skipping corrupt record", user_id=user_id, errors=e.error_count())
        return records
