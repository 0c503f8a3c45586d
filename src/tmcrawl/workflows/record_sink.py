"""Structured-record sink: ClickHouse over HTTP plus an optional local copy.

Every save runs the insert and the local write concurrently. Neither path
raises into the crawl; failures are logged with the row body and counted in
:attr:`RecordSink.stats`. The local files double as the replay source for
rows whose insert failed (see :meth:`RecordSink.replay`).
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

import aiohttp

from ..core.ids import MalformedIdError, date_partition
from ..core.keys import T_COVERAGE, T_MARK, T_NAVIGATION
from .crawl_config import CrawlSettings
from .navigation import Navigation
from .records import Coverage, Mark

logger = logging.getLogger(__name__)

FALLBACK_PARTITION = "00000000"

INSERT_QUERY = (
    "INSERT INTO `{table}` SETTINGS async_insert=1, "
    "date_time_input_format='best_effort', "
    "input_format_import_nested_json=1 "
    "FORMAT JSONEachRow"
)


def insert_query(table: str) -> str:
    return INSERT_QUERY.format(table=table)


def partition_for(identifier: str) -> str:
    try:
        return date_partition(identifier)
    except MalformedIdError as exc:
        logger.error("Cannot derive date partition for id=%s: %s", identifier, exc)
        return FALLBACK_PARTITION


def local_record_path(base_dir: Union[str, Path], type_name: str, identifier: str, name: str = "") -> Path:
    """``{base}/{yyyyMMdd}/{id}_{name}_{type}.json`` for one record."""

    filename = "_".join([identifier, name, type_name]) + ".json"
    return Path(base_dir) / partition_for(identifier) / filename


def _write_json(path: Path, row: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(row, indent=2, ensure_ascii=False, default=str), encoding="utf-8")


def _init_stats() -> Dict[str, int]:
    return {
        "attempted": 0,
        "inserted": 0,
        "failed": 0,
        "skipped": 0,
        "local_written": 0,
        "local_failed": 0,
    }


class RecordSink:
    def __init__(self, settings: CrawlSettings) -> None:
        self.settings = settings
        self.stats: Dict[str, int] = _init_stats()
        if settings.clickhouse_enabled:
            logger.info(
                "ClickHouse record sink ready url=%s db=%s user=%s",
                settings.clickhouse_url,
                settings.clickhouse_db,
                settings.clickhouse_user,
            )
        else:
            logger.warning("CLICKHOUSE_URL is not set; records will only be written locally")

    def _bump(self, key: str) -> None:
        self.stats[key] = int(self.stats.get(key, 0)) + 1

    async def _post(self, params: Dict[str, str], headers: Dict[str, str], body: str) -> Tuple[int, str]:
        timeout = aiohttp.ClientTimeout(total=self.settings.clickhouse_timeout_secs)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(
                f"{self.settings.clickhouse_url}/",
                params=params,
                headers=headers,
                data=body.encode("utf-8"),
            ) as resp:
                return resp.status, await resp.text()

    async def insert(self, table: str, row: Mapping[str, Any]) -> bool:
        """Insert one row; returns True on a 2xx answer."""

        if not self.settings.clickhouse_enabled:
            self._bump("skipped")
            return False
        self._bump("attempted")
        query = insert_query(table)
        body = json.dumps(row, ensure_ascii=False, default=str)
        headers = {"Content-Type": "application/json"}
        if self.settings.clickhouse_user:
            headers["X-ClickHouse-User"] = self.settings.clickhouse_user
        if self.settings.clickhouse_password:
            headers["X-ClickHouse-Key"] = self.settings.clickhouse_password
        logger.debug("Inserting into ClickHouse db=%s table=%s body=%s", self.settings.clickhouse_db, table, body)
        try:
            status, text = await self._post(
                {"database": self.settings.clickhouse_db, "query": query},
                headers,
                body,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            self._bump("failed")
            logger.error("ClickHouse insert failed table=%s id=%s error=%s body=%s", table, row.get("id"), exc, body)
            return False
        if status < 200 or status >= 300:
            self._bump("failed")
            logger.error(
                "ClickHouse insert rejected table=%s id=%s status=%s response=%s body=%s",
                table,
                row.get("id"),
                status,
                text.strip(),
                body,
            )
            return False
        self._bump("inserted")
        logger.info("Inserted row into ClickHouse table=%s id=%s", table, row.get("id"))
        return True

    async def write_local(
        self,
        base_dir: Optional[Path],
        type_name: str,
        identifier: str,
        name: str,
        row: Mapping[str, Any],
    ) -> Optional[Path]:
        if not base_dir:
            return None
        path = None
        try:
            path = local_record_path(base_dir, type_name, identifier, name)
            await asyncio.to_thread(_write_json, path, row)
        except (OSError, ValueError) as exc:
            self._bump("local_failed")
            logger.error("Local %s write failed id=%s path=%s error=%s", type_name, identifier, path, exc)
            return None
        self._bump("local_written")
        logger.info("Local %s file written id=%s path=%s", type_name, identifier, path)
        return path

    async def save(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        type_name: str,
        local_dir: Optional[Path] = None,
        name: str = "",
    ) -> bool:
        identifier = str(row.get("id") or "")
        inserted, _ = await asyncio.gather(
            self.insert(table, row),
            self.write_local(local_dir, type_name, identifier, name, row),
        )
        return inserted

    async def save_navigation(self, navigation: Navigation) -> bool:
        return await self.save(
            T_NAVIGATION,
            navigation.to_row(),
            type_name="Navigation",
            local_dir=self.settings.navigation_write_local_path,
            name=str(navigation.attempt),
        )

    async def save_mark(self, mark: Mark) -> bool:
        return await self.save(
            T_MARK,
            mark.to_row(),
            type_name="Mark",
            local_dir=self.settings.mark_write_local_path,
        )

    async def save_coverage(self, coverage: Coverage) -> bool:
        return await self.save(
            T_COVERAGE,
            coverage.to_row(),
            type_name="Coverage",
            local_dir=self.settings.coverage_write_local_path,
        )

    async def replay(self, path: Union[str, Path], table: str) -> Dict[str, int]:
        """Re-insert local record files under ``path`` into ``table``."""

        summary = {"files": 0, "inserted": 0, "failed": 0, "invalid": 0}
        for file_path in iter_record_files(Path(path)):
            summary["files"] += 1
            try:
                row = json.loads(file_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                summary["invalid"] += 1
                logger.error("Skipping unreadable record file path=%s error=%s", file_path, exc)
                continue
            if not isinstance(row, dict):
                summary["invalid"] += 1
                logger.error("Skipping record file without a JSON object path=%s", file_path)
                continue
            if await self.insert(table, row):
                summary["inserted"] += 1
            else:
                summary["failed"] += 1
        logger.info("Replay finished table=%s summary=%s", table, summary)
        return summary


def iter_record_files(path: Path) -> Iterator[Path]:
    if path.is_file():
        yield path
        return
    if path.is_dir():
        yield from sorted(p for p in path.rglob("*.json") if p.is_file())
