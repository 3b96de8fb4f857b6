"""DAG 编排层 - 节点化价格分析管线执行引擎"""

from priceshield.pipeline.context import ExecutionContext, NodeState
from priceshield.pipeline.errors import (
    CyclicGraphError,
    DuplicateNodeIdError,
    NodeExecutionError,
    PipelineError,
    PipelineValidationError,
    UnknownNodeReferenceError,
    UnknownNodeTypeError,
)
from priceshield.pipeline.graph import PipelineGraph
from priceshield.pipeline.node_base import PipelineNode
from priceshield.pipeline.registry import NodeRegistry, get_default_registry
from priceshield.pipeline.runner import PipelineExecutor, PipelineResult, RunState, merge_inputs

__all__ = [
    "ExecutionContext",
    "NodeState",
    "PipelineNode",
    "PipelineGraph",
    "PipelineExecutor",
    "PipelineResult",
    "RunState",
    "merge_inputs",
    "NodeRegistry",
    "get_default_registry",
    "PipelineError",
    "PipelineValidationError",
    "DuplicateNodeIdError",
    "UnknownNodeReferenceError",
    "CyclicGraphError",
    "UnknownNodeTypeError",
    "NodeExecutionError",
]
