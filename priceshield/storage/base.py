"""存储适配器协议 - 节点通过它读写价格快照"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from priceshield.core.entities import PriceSnapshot


@runtime_checkable
class StorageAdapter(Protocol):
    """
    价格快照存储协议

    所有方法均为协程；执行器本身从不调用存储，只把它原样传给节点。
    """

    async def save_snapshot(self, record: Dict[str, Any]) -> str:
        """保存不含 id 的快照记录，返回新生成的 id"""
        ...

    async def query_snapshots(
        self,
        url: str,
        product_name: Optional[str] = None,
        days: Optional[float] = None,
    ) -> List[PriceSnapshot]:
        """按采集时间升序返回快照，仅保留 captured_at >= now - days 的记录"""
        ...

    async def delete_snapshot(self, snapshot_id: str) -> None:
        ...
