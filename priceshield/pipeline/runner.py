"""管线执行器 - 按拓扑顺序执行节点"""

from __future__ import annotations

import copy
import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from priceshield.api.schemas import PipelineDefinition, PipelineEdgeConfig
from priceshield.api.settings import get_pipeline_settings
from priceshield.core.utils.logger import setup_logger
from priceshield.pipeline.context import ExecutionContext, NodeState, serialize_value
from priceshield.pipeline.errors import NodeExecutionError, UnknownNodeTypeError
from priceshield.pipeline.graph import PipelineGraph
from priceshield.pipeline.registry import NodeRegistry, get_default_registry

logger = setup_logger("pipeline_runner")


class RunState(str, Enum):
    """单次运行的状态，FAILED 为终态"""

    VALIDATING = "validating"
    SCHEDULING = "scheduling"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineResult:
    """一次成功运行的结果"""

    outputs: Dict[str, Any] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outputs": serialize_value(self.outputs),
            "execution_order": list(self.execution_order),
            "duration_ms": self.duration_ms,
        }


def merge_inputs(
    incoming_edges: List[PipelineEdgeConfig],
    results: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    合并前驱输出作为节点输入

    规则：
    1. 按入边顺序依次写入，后写入的字段覆盖先写入的
    2. 无 mapping 的边复制前驱输出的全部字段
    3. 有 mapping 的边只复制列出的字段并重命名，前驱缺失的字段跳过
    4. 前驱输出不是字典时，以前驱 ID 为键整体放入

    Args:
        incoming_edges: 入边列表（按 edges 声明顺序）
        results: 已完成节点的输出

    Returns:
        合并后的输入；无入边时为空字典
    """
    merged: Dict[str, Any] = {}

    for edge in incoming_edges:
        output = results.get(edge.from_node)

        if not isinstance(output, Mapping):
            merged[edge.from_node] = output
            continue

        if edge.mapping is None:
            merged.update(output)
            continue

        for item in edge.mapping:
            if item.source in output:
                merged[item.target] = output[item.source]

    return merged


class PipelineExecutor:
    """
    管线执行器

    按确定性拓扑顺序逐个执行节点，支持：
    - 执行前结构校验（可选节点类型预检）
    - 多前驱输入合并（字段映射、后写覆盖）
    - 执行追踪（trace）

    任一节点失败即终止整次运行，已完成节点的输出保留在 ctx.results 中。
    """

    def __init__(
        self,
        registry: Optional[NodeRegistry] = None,
        strict_types: Optional[bool] = None,
    ):
        """
        初始化执行器

        Args:
            registry: 节点注册表，默认使用全局注册表
            strict_types: 是否在执行前校验全部节点类型，默认取 PIPELINE_STRICT_TYPES
        """
        self.registry = registry if registry is not None else get_default_registry()
        if strict_types is None:
            strict_types = get_pipeline_settings().strict_types
        self.strict_types = strict_types

    def validate(self, pipeline: PipelineDefinition) -> PipelineGraph:
        """
        校验管线定义并构建图，不执行任何节点

        Raises:
            PipelineValidationError: 结构无效
            UnknownNodeTypeError: strict_types 开启且存在未注册类型
        """
        graph = PipelineGraph(pipeline)

        if self.strict_types:
            for node in pipeline.nodes:
                if not self.registry.has(node.type):
                    raise UnknownNodeTypeError(node.type, self.registry.types())

        return graph

    async def execute(
        self,
        pipeline: Union[PipelineDefinition, Dict[str, Any]],
        ctx: ExecutionContext,
    ) -> PipelineResult:
        """
        执行管线

        Args:
            pipeline: 管线定义（也接受同结构的字典）
            ctx: 执行上下文

        Returns:
            PipelineResult

        Raises:
            PipelineValidationError: 图结构无效（无任何节点执行）
            UnknownNodeTypeError: 节点类型未注册
            NodeExecutionError: 节点执行失败
        """
        if not isinstance(pipeline, PipelineDefinition):
            pipeline = PipelineDefinition.model_validate(pipeline)

        start_time = time.perf_counter()
        self._log_state(ctx, RunState.VALIDATING)

        try:
            graph = self.validate(pipeline)
            self._log_state(ctx, RunState.SCHEDULING)
            order = graph.topological_sort()
            logger.debug(
                f"[{ctx.run_id}] 执行顺序: {order}，{len(order)} 个节点 {NodeState.PENDING.value}"
            )

            self._log_state(ctx, RunState.RUNNING)
            execution_order: List[str] = []
            for node_id in order:
                await self._run_node(graph, node_id, ctx)
                execution_order.append(node_id)
        except Exception as e:
            self._log_state(ctx, RunState.FAILED, error=str(e))
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self._log_state(ctx, RunState.COMPLETED, duration_ms=duration_ms)

        return PipelineResult(
            outputs={node_id: ctx.results[node_id] for node_id in execution_order},
            execution_order=execution_order,
            duration_ms=duration_ms,
        )

    async def _run_node(
        self,
        graph: PipelineGraph,
        node_id: str,
        ctx: ExecutionContext,
    ) -> None:
        """执行单个节点并记录输出"""
        node_config = graph.node_configs[node_id]
        inputs = merge_inputs(graph.get_incoming_edges(node_id), ctx.results)

        node = self.registry.create(node_config.type)

        logger.debug(f"[{ctx.run_id}] 节点 {node_id} ({node_config.type}) {NodeState.READY.value}")
        ctx.add_trace(node_id=node_id, node_type=node_config.type, status=NodeState.RUNNING)
        start_time = time.perf_counter()

        try:
            output = node.execute(inputs, copy.deepcopy(node_config.config), ctx)
            if inspect.isawaitable(output):
                output = await output
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            ctx.add_trace(
                node_id=node_id,
                node_type=node_config.type,
                status=NodeState.FAILED,
                elapsed_ms=elapsed_ms,
                error=str(e),
            )
            logger.error(f"[{ctx.run_id}] 节点 {node_id} 执行失败: {e}")
            raise NodeExecutionError(node_id, node_config.type, e) from e

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        ctx.results[node_id] = output
        ctx.add_trace(
            node_id=node_id,
            node_type=node_config.type,
            status=NodeState.COMPLETED,
            elapsed_ms=elapsed_ms,
            output_keys=node.get_output_keys()
            or (list(output.keys()) if isinstance(output, Mapping) else None),
        )
        logger.debug(f"[{ctx.run_id}] 节点 {node_id} 完成，耗时 {elapsed_ms}ms")

    @staticmethod
    def _log_state(ctx: ExecutionContext, state: RunState, **extra: Any) -> None:
        suffix = " ".join(f"{k}={v}" for k, v in extra.items())
        if state is RunState.FAILED:
            logger.warning(f"[{ctx.run_id}] 管线状态: {state.value} {suffix}".rstrip())
        else:
            logger.info(f"[{ctx.run_id}] 管线状态: {state.value} {suffix}".rstrip())

    def __repr__(self) -> str:
        return f"PipelineExecutor(registry={self.registry!r}, strict_types={self.strict_types})"
