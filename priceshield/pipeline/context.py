"""管线执行上下文 - 单次运行的共享状态"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from priceshield.api.schemas import TraceEvent
from priceshield.storage.base import StorageAdapter


class NodeState(str, Enum):
    """单次运行中节点的状态"""

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecutionContext:
    """
    管线执行上下文，每次运行新建

    results 只由执行器写入（每个节点完成时写一次），单调增长；
    运行结束后由调用方决定是否保留。
    """

    storage: StorageAdapter

    # 节点 ID -> 节点输出
    results: Dict[str, Any] = field(default_factory=dict)

    # 运行标识
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # 执行追踪
    trace: List[TraceEvent] = field(default_factory=list)

    def add_trace(
        self,
        node_id: str,
        node_type: str,
        status: NodeState,
        elapsed_ms: Optional[int] = None,
        error: Optional[str] = None,
        output_keys: Optional[List[str]] = None,
    ) -> None:
        """添加执行追踪记录"""
        self.trace.append(
            TraceEvent(
                node_id=node_id,
                node_type=node_type,
                status=status.value,
                elapsed_ms=elapsed_ms,
                error=error,
                output_keys=output_keys,
            )
        )

    def get_result(self, node_id: str, default: Any = None) -> Any:
        return self.results.get(node_id, default)

    def snapshot_results(self) -> Dict[str, Any]:
        """导出已完成节点的输出（可 JSON 序列化）"""
        return serialize_value(self.results)


def serialize_value(value: Any) -> Any:
    """将节点输出序列化为可 JSON 输出的结构"""
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [serialize_value(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        return serialize_value(asdict(value))
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return str(value)
