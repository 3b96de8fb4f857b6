"""PipelineGraph 测试"""

import pytest

from priceshield.pipeline.errors import (
    CyclicGraphError,
    DuplicateNodeIdError,
    PipelineValidationError,
    UnknownNodeReferenceError,
)
from priceshield.pipeline.graph import PipelineGraph


def _nodes(*ids):
    return [{"id": node_id, "type": "const"} for node_id in ids]


class TestPipelineGraph:
    def test_simple_linear_graph(self, make_pipeline):
        """简单线性 DAG"""
        graph = PipelineGraph(
            make_pipeline(
                _nodes("c", "b", "a"),
                [{"from": "a", "to": "b"}, {"from": "b", "to": "c"}],
            )
        )
        assert graph.topological_sort() == ["a", "b", "c"]

    def test_ties_broken_by_node_position(self, make_pipeline):
        """同时就绪的节点按声明顺序执行"""
        graph = PipelineGraph(
            make_pipeline(
                _nodes("root", "z", "y", "x", "sink"),
                [
                    {"from": "root", "to": "x"},
                    {"from": "root", "to": "y"},
                    {"from": "root", "to": "z"},
                    {"from": "x", "to": "sink"},
                    {"from": "y", "to": "sink"},
                    {"from": "z", "to": "sink"},
                ],
            )
        )
        assert graph.topological_sort() == ["root", "z", "y", "x", "sink"]

    def test_order_is_deterministic(self, make_pipeline):
        pipeline = make_pipeline(
            _nodes("a", "b", "c", "d"),
            [{"from": "a", "to": "d"}, {"from": "c", "to": "b"}],
        )
        orders = {tuple(PipelineGraph(pipeline).topological_sort()) for _ in range(5)}
        assert orders == {("a", "c", "b", "d")}

    def test_diamond_graph(self, make_pipeline):
        """菱形 DAG"""
        graph = PipelineGraph(
            make_pipeline(
                _nodes("input", "left", "right", "merge"),
                [
                    {"from": "input", "to": "left"},
                    {"from": "input", "to": "right"},
                    {"from": "left", "to": "merge"},
                    {"from": "right", "to": "merge"},
                ],
            )
        )
        order = graph.topological_sort()
        assert order[0] == "input"
        assert order[-1] == "merge"
        assert graph.get_predecessors("merge") == ["left", "right"]
        assert graph.get_successors("input") == ["left", "right"]
        assert graph.get_root_nodes() == ["input"]

    def test_incoming_edges_keep_edge_list_order(self, make_pipeline):
        graph = PipelineGraph(
            make_pipeline(
                _nodes("a", "b", "c"),
                [{"from": "b", "to": "c"}, {"from": "a", "to": "c"}],
            )
        )
        assert [e.from_node for e in graph.get_incoming_edges("c")] == ["b", "a"]
        assert graph.get_incoming_edges("a") == []

    def test_empty_pipeline(self, make_pipeline):
        assert PipelineGraph(make_pipeline([])).topological_sort() == []

    def test_duplicate_node_id(self, make_pipeline):
        with pytest.raises(DuplicateNodeIdError) as exc_info:
            PipelineGraph(make_pipeline(_nodes("a", "b", "a")))
        assert exc_info.value.node_id == "a"
        assert isinstance(exc_info.value, PipelineValidationError)

    def test_unknown_edge_reference(self, make_pipeline):
        with pytest.raises(UnknownNodeReferenceError) as exc_info:
            PipelineGraph(make_pipeline(_nodes("a"), [{"from": "a", "to": "ghost"}]))
        assert exc_info.value.node_id == "ghost"

    def test_cyclic_dependency_detection(self, make_pipeline):
        """循环依赖检测，错误信息列出环上的节点"""
        with pytest.raises(CyclicGraphError) as exc_info:
            PipelineGraph(
                make_pipeline(
                    _nodes("start", "a", "b", "c"),
                    [
                        {"from": "start", "to": "a"},
                        {"from": "a", "to": "b"},
                        {"from": "b", "to": "c"},
                        {"from": "c", "to": "a"},
                    ],
                )
            )

        assert exc_info.value.node_ids == ["a", "b", "c"]
        assert "start" not in str(exc_info.value)

    def test_self_loop(self, make_pipeline):
        with pytest.raises(CyclicGraphError):
            PipelineGraph(make_pipeline(_nodes("a"), [{"from": "a", "to": "a"}]))
