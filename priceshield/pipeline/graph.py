"""DAG 图结构和拓扑排序"""

from __future__ import annotations

import heapq
from collections import defaultdict
from typing import Dict, List

from priceshield.api.schemas import PipelineDefinition, PipelineEdgeConfig, PipelineNodeConfig
from priceshield.pipeline.errors import (
    CyclicGraphError,
    DuplicateNodeIdError,
    UnknownNodeReferenceError,
)


class PipelineGraph:
    """
    DAG 图结构

    解析 PipelineDefinition 构建有向无环图，支持：
    - 结构校验（ID 唯一、边引用存在、无环）
    - 确定性拓扑排序（同时就绪的节点按其在 nodes 中的位置先后）
    - 入边 / 前驱 / 后继查询
    """

    def __init__(self, definition: PipelineDefinition):
        """
        从 PipelineDefinition 构建图

        Raises:
            DuplicateNodeIdError: 节点 ID 重复
            UnknownNodeReferenceError: 边引用了不存在的节点
            CyclicGraphError: 存在循环依赖
        """
        self.definition = definition

        # 节点 ID -> 节点配置
        self.node_configs: Dict[str, PipelineNodeConfig] = {}
        # 节点 ID -> 在 nodes 中的位置
        self._index: Dict[str, int] = {}
        for index, node in enumerate(definition.nodes):
            if node.id in self.node_configs:
                raise DuplicateNodeIdError(node.id)
            self.node_configs[node.id] = node
            self._index[node.id] = index

        # 邻接表：source -> [target, ...]
        self._successors: Dict[str, List[str]] = defaultdict(list)
        # 反向邻接表：target -> [source, ...]
        self._predecessors: Dict[str, List[str]] = defaultdict(list)
        # 入边表：target -> [edge, ...]，保持 edges 声明顺序
        self._incoming: Dict[str, List[PipelineEdgeConfig]] = defaultdict(list)
        # 入度表
        self._in_degree: Dict[str, int] = {node_id: 0 for node_id in self.node_configs}

        self._build_graph(definition.edges)

        self._order = self._kahn()

    @property
    def node_ids(self) -> List[str]:
        """节点 ID（按声明顺序）"""
        return list(self.node_configs.keys())

    def _build_graph(self, edges: List[PipelineEdgeConfig]) -> None:
        """构建邻接表"""
        for edge in edges:
            label = f"{edge.from_node} -> {edge.to_node}"
            if edge.from_node not in self.node_configs:
                raise UnknownNodeReferenceError(edge.from_node, label)
            if edge.to_node not in self.node_configs:
                raise UnknownNodeReferenceError(edge.to_node, label)

            self._successors[edge.from_node].append(edge.to_node)
            self._predecessors[edge.to_node].append(edge.from_node)
            self._incoming[edge.to_node].append(edge)
            self._in_degree[edge.to_node] += 1

    def _kahn(self) -> List[str]:
        """Kahn 算法；就绪队列为按节点位置排序的小顶堆"""
        in_degree = self._in_degree.copy()
        ready = [
            self._index[node_id] for node_id, degree in in_degree.items() if degree == 0
        ]
        heapq.heapify(ready)
        order: List[str] = []

        while ready:
            node_id = self.definition.nodes[heapq.heappop(ready)].id
            order.append(node_id)

            # 平行边会被计数多次，入度也按边数累加
            for target in self._successors[node_id]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    heapq.heappush(ready, self._index[target])

        if len(order) != len(self.node_configs):
            remaining = [node_id for node_id in self.node_configs if in_degree[node_id] > 0]
            raise CyclicGraphError(remaining)

        return order

    def topological_sort(self) -> List[str]:
        """
        返回拓扑排序后的节点 ID 列表

        同一定义多次调用结果一致。
        """
        return list(self._order)

    def get_incoming_edges(self, node_id: str) -> List[PipelineEdgeConfig]:
        """获取指向节点的入边（按 edges 声明顺序）"""
        return list(self._incoming.get(node_id, []))

    def get_predecessors(self, node_id: str) -> List[str]:
        return list(self._predecessors.get(node_id, []))

    def get_successors(self, node_id: str) -> List[str]:
        return list(self._successors.get(node_id, []))

    def get_root_nodes(self) -> List[str]:
        """获取没有前驱的节点（入口节点）"""
        return [node_id for node_id, degree in self._in_degree.items() if degree == 0]

    def __len__(self) -> int:
        return len(self.node_configs)

    def __repr__(self) -> str:
        return (
            f"PipelineGraph(nodes={len(self.node_configs)}, "
            f"edges={len(self.definition.edges)})"
        )
