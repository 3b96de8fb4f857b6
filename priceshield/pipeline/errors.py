"""管线异常体系

PipelineError
├── PipelineValidationError    图结构校验失败（执行前抛出，无副作用）
│   ├── DuplicateNodeIdError
│   ├── UnknownNodeReferenceError
│   └── CyclicGraphError
├── UnknownNodeTypeError       节点类型未注册
└── NodeExecutionError         节点执行失败（包装原始异常）
"""

from __future__ import annotations

from typing import Iterable, List


class PipelineError(Exception):
    """管线错误基类"""

    pass


class PipelineValidationError(PipelineError):
    """图结构无效"""

    pass


class DuplicateNodeIdError(PipelineValidationError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"节点 ID 重复: {node_id}")


class UnknownNodeReferenceError(PipelineValidationError):
    def __init__(self, node_id: str, edge: str):
        self.node_id = node_id
        self.edge = edge
        super().__init__(f"边 {edge} 引用了不存在的节点: {node_id}")


class CyclicGraphError(PipelineValidationError):
    def __init__(self, node_ids: Iterable[str]):
        self.node_ids: List[str] = list(node_ids)
        super().__init__(f"检测到循环依赖，涉及节点: {', '.join(self.node_ids)}")


class UnknownNodeTypeError(PipelineError):
    def __init__(self, type_name: str, available: Iterable[str]):
        self.type_name = type_name
        self.available: List[str] = list(available)
        super().__init__(
            f"节点类型未注册: {type_name!r}，可用类型: {', '.join(self.available) or '无'}"
        )


class NodeExecutionError(PipelineError):
    """节点执行失败，__cause__ 为原始异常"""

    def __init__(self, node_id: str, node_type: str, error: BaseException):
        self.node_id = node_id
        self.node_type = node_type
        self.error = error
        super().__init__(f"节点 {node_id} ({node_type}) 执行失败: {error}")
