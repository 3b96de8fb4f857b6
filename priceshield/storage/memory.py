"""内存存储 - 用于测试与单次 CLI/API 调用"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from priceshield.core.entities import PriceSnapshot
from priceshield.core.utils.time_utils import days_ago, parse_timestamp


class MemoryStorage:
    """进程内快照存储，id 形如 mem-1、mem-2"""

    def __init__(self) -> None:
        self._snapshots: Dict[str, PriceSnapshot] = {}
        self._counter = 0

    async def save_snapshot(self, record: Dict[str, Any]) -> str:
        self._counter += 1
        snapshot_id = f"mem-{self._counter}"
        self._snapshots[snapshot_id] = PriceSnapshot(
            id=snapshot_id,
            url=record["url"],
            product_name=record["product_name"],
            price_cents=int(record["price_cents"]),
            currency=record["currency"],
            captured_at=record["captured_at"],
            user_agent=record.get("user_agent"),
        )
        return snapshot_id

    async def query_snapshots(
        self,
        url: str,
        product_name: Optional[str] = None,
        days: Optional[float] = None,
    ) -> List[PriceSnapshot]:
        cutoff = days_ago(days) if days else None

        results = []
        for snap in self._snapshots.values():
            if snap.url != url:
                continue
            if product_name and snap.product_name != product_name:
                continue
            if cutoff and parse_timestamp(snap.captured_at) < cutoff:
                continue
            results.append(snap)

        return sorted(results, key=lambda s: parse_timestamp(s.captured_at))

    async def delete_snapshot(self, snapshot_id: str) -> None:
        self._snapshots.pop(snapshot_id, None)

    def get_all(self) -> List[PriceSnapshot]:
        """返回全部快照（测试用）"""
        return list(self._snapshots.values())

    def __len__(self) -> int:
        return len(self._snapshots)
