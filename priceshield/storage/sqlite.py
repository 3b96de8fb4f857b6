"""
基于 SQLite 的快照存储。

线程安全策略：单连接 + threading.Lock 互斥访问，配合 WAL 模式减少写锁冲突。
协程接口通过 asyncio.to_thread 将阻塞 IO 移出事件循环。
"""
from __future__ import annotations

import asyncio
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from priceshield.config import DB_PATH
from priceshield.core.entities import PriceSnapshot
from priceshield.core.utils.logger import setup_logger
from priceshield.core.utils.time_utils import days_ago, format_timestamp, normalize_timestamp

logger = setup_logger("sqlite_storage")


class SQLiteStorage:
    """基于 SQLite 的快照存储，id 形如 snap_<32 位十六进制>"""

    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        # check_same_thread=False 允许多线程共用同一连接，由 _lock 保证安全
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._init_schema()

    def _init_schema(self) -> None:
        """初始化表结构"""
        with self._conn:
            # captured_at 为定长 UTC 字符串，可直接按文本比较先后
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS price_snapshots (
                    id TEXT PRIMARY KEY,
                    url TEXT NOT NULL,
                    product_name TEXT NOT NULL,
                    price_cents INTEGER NOT NULL,
                    currency TEXT NOT NULL,
                    captured_at TEXT NOT NULL,
                    user_agent TEXT
                )
                """
            )
            self._conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_price_snapshots_url_time
                ON price_snapshots(url, captured_at)
                """
            )

    # ============ 同步实现 ============

    def insert_snapshot(self, record: Dict[str, Any]) -> str:
        snapshot_id = f"snap_{uuid.uuid4().hex}"
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO price_snapshots (
                    id, url, product_name, price_cents, currency, captured_at, user_agent
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot_id,
                    record["url"],
                    record["product_name"],
                    int(record["price_cents"]),
                    record["currency"],
                    normalize_timestamp(record["captured_at"]),
                    record.get("user_agent"),
                ),
            )
        logger.debug(f"快照已保存: {snapshot_id} url={record['url']}")
        return snapshot_id

    def select_snapshots(
        self,
        url: str,
        product_name: Optional[str] = None,
        days: Optional[float] = None,
    ) -> List[PriceSnapshot]:
        sql = "SELECT * FROM price_snapshots WHERE url = ?"
        params: List[Any] = [url]
        if product_name:
            sql += " AND product_name = ?"
            params.append(product_name)
        if days:
            sql += " AND captured_at >= ?"
            params.append(format_timestamp(days_ago(days)))
        sql += " ORDER BY captured_at ASC"

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def remove_snapshot(self, snapshot_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM price_snapshots WHERE id = ?", (snapshot_id,))

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row) -> PriceSnapshot:
        return PriceSnapshot(
            id=row["id"],
            url=row["url"],
            product_name=row["product_name"],
            price_cents=row["price_cents"],
            currency=row["currency"],
            captured_at=row["captured_at"],
            user_agent=row["user_agent"],
        )

    # ============ StorageAdapter 协议 ============

    async def save_snapshot(self, record: Dict[str, Any]) -> str:
        return await asyncio.to_thread(self.insert_snapshot, record)

    async def query_snapshots(
        self,
        url: str,
        product_name: Optional[str] = None,
        days: Optional[float] = None,
    ) -> List[PriceSnapshot]:
        return await asyncio.to_thread(self.select_snapshots, url, product_name, days)

    async def delete_snapshot(self, snapshot_id: str) -> None:
        await asyncio.to_thread(self.remove_snapshot, snapshot_id)
