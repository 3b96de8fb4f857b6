"""PipelineExecutor 测试"""

import pytest
from pydantic import ValidationError

from priceshield.api.schemas import PipelineEdgeConfig
from priceshield.pipeline.context import ExecutionContext
from priceshield.pipeline.errors import (
    CyclicGraphError,
    NodeExecutionError,
    UnknownNodeTypeError,
)
from priceshield.pipeline.runner import PipelineExecutor, PipelineResult, merge_inputs


def _const(node_id, output=None):
    return {"id": node_id, "type": "const", "config": {"tag": node_id, "output": output or {}}}


def _inputs_of(calls, node_id):
    return next(call["inputs"] for call in calls if call["id"] == node_id)


class TestMergeInputs:
    def test_no_edges(self):
        assert merge_inputs([], {}) == {}

    def test_unmapped_edges_union(self):
        edges = [
            PipelineEdgeConfig.model_validate({"from": "a", "to": "c"}),
            PipelineEdgeConfig.model_validate({"from": "b", "to": "c"}),
        ]
        merged = merge_inputs(edges, {"a": {"x": 1}, "b": {"y": 2}})
        assert merged == {"x": 1, "y": 2}

    def test_mapping_renames_and_skips_missing(self):
        edge = PipelineEdgeConfig.model_validate(
            {"from": "a", "to": "b", "mapping": {"x": "renamed", "missing": "never"}}
        )
        assert merge_inputs([edge], {"a": {"x": 1, "y": 2}}) == {"renamed": 1}

    def test_mapping_pairs_form(self):
        edge = PipelineEdgeConfig.model_validate(
            {"from": "a", "to": "b", "mapping": [["x", "first"], ["x", "second"]]}
        )
        assert merge_inputs([edge], {"a": {"x": 1}}) == {"first": 1, "second": 1}

    @pytest.mark.parametrize("pair", [["x"], ["x", "y", "z"], []])
    def test_mapping_pair_must_have_two_items(self, pair):
        with pytest.raises(ValidationError):
            PipelineEdgeConfig.model_validate({"from": "a", "to": "b", "mapping": [pair]})

    def test_non_mapping_output_keyed_by_predecessor(self):
        edge = PipelineEdgeConfig.model_validate({"from": "a", "to": "b"})
        assert merge_inputs([edge], {"a": [1, 2]}) == {"a": [1, 2]}


class TestPipelineExecutor:
    @pytest.mark.asyncio
    async def test_execution_order_covers_all_nodes(self, executor, ctx, make_pipeline):
        pipeline = make_pipeline(
            [_const("d"), _const("b"), _const("a"), _const("c")],
            [
                {"from": "a", "to": "b"},
                {"from": "a", "to": "c"},
                {"from": "b", "to": "d"},
                {"from": "c", "to": "d"},
            ],
        )

        result = await executor.execute(pipeline, ctx)

        assert isinstance(result, PipelineResult)
        order = result.execution_order
        assert sorted(order) == ["a", "b", "c", "d"]
        for edge in pipeline.edges:
            assert order.index(edge.from_node) < order.index(edge.to_node)
        assert order == ["a", "b", "c", "d"]
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_root_nodes_receive_empty_input(self, executor, ctx, make_pipeline, const_calls):
        pipeline = make_pipeline(
            [_const("r1", {"x": 1}), _const("r2", {"y": 2}), _const("leaf")],
            [{"from": "r1", "to": "leaf"}, {"from": "r2", "to": "leaf"}],
        )

        await executor.execute(pipeline, ctx)

        assert _inputs_of(const_calls, "r1") == {}
        assert _inputs_of(const_calls, "r2") == {}
        assert _inputs_of(const_calls, "leaf") == {"x": 1, "y": 2}

    @pytest.mark.asyncio
    async def test_later_edge_wins_on_collision(self, executor, ctx, make_pipeline, const_calls):
        """按 edges 声明顺序合并，与节点声明顺序无关"""
        pipeline = make_pipeline(
            [_const("a", {"v": "from-a"}), _const("b", {"v": "from-b"}), _const("c")],
            [{"from": "b", "to": "c"}, {"from": "a", "to": "c"}],
        )

        result = await executor.execute(pipeline, ctx)

        assert result.execution_order == ["a", "b", "c"]
        assert _inputs_of(const_calls, "c") == {"v": "from-a"}

    @pytest.mark.asyncio
    async def test_mapping_restricts_fields(self, executor, ctx, make_pipeline, const_calls):
        pipeline = make_pipeline(
            [_const("a", {"x": 1, "y": 2, "z": 3}), _const("b")],
            [{"from": "a", "to": "b", "mapping": {"x": "alpha", "z": "zeta"}}],
        )

        await executor.execute(pipeline, ctx)

        assert _inputs_of(const_calls, "b") == {"alpha": 1, "zeta": 3}

    @pytest.mark.asyncio
    async def test_outputs_and_trace(self, executor, ctx, make_pipeline):
        pipeline = make_pipeline([_const("a", {"x": 1}), {"id": "s", "type": "sync"}])

        result = await executor.execute(pipeline, ctx)

        assert result.outputs == {"a": {"x": 1}, "s": {"sync": True}}
        assert ctx.results == result.outputs
        assert [event.status for event in ctx.trace] == ["running", "completed"] * 2
        assert ctx.trace[0].output_keys is None
        assert ctx.trace[1].output_keys == ["x"]
        assert result.to_dict()["outputs"] == {"a": {"x": 1}, "s": {"sync": True}}

    @pytest.mark.asyncio
    async def test_cycle_fails_before_any_node_runs(
        self, executor, ctx, make_pipeline, memory_storage, const_calls
    ):
        pipeline = make_pipeline(
            [{"id": "w", "type": "write"}, _const("a"), _const("b")],
            [{"from": "a", "to": "b"}, {"from": "b", "to": "a"}],
        )

        with pytest.raises(CyclicGraphError):
            await executor.execute(pipeline, ctx)

        assert const_calls == []
        assert ctx.results == {}
        assert len(memory_storage) == 0

    @pytest.mark.asyncio
    async def test_unknown_type_mid_run_keeps_earlier_side_effects(
        self, executor, ctx, make_pipeline, memory_storage, const_calls
    ):
        pipeline = make_pipeline(
            [{"id": "w", "type": "write"}, {"id": "x", "type": "no-such-type"}, _const("after")],
            [{"from": "w", "to": "x"}, {"from": "x", "to": "after"}],
        )

        with pytest.raises(UnknownNodeTypeError) as exc_info:
            await executor.execute(pipeline, ctx)

        assert exc_info.value.type_name == "no-such-type"
        assert "w" in ctx.results
        assert len(memory_storage) == 1
        assert const_calls == []

    @pytest.mark.asyncio
    async def test_strict_types_rejects_before_execution(self, registry, ctx, make_pipeline, memory_storage):
        executor = PipelineExecutor(registry=registry, strict_types=True)
        pipeline = make_pipeline(
            [{"id": "w", "type": "write"}, {"id": "x", "type": "no-such-type"}],
            [{"from": "w", "to": "x"}],
        )

        with pytest.raises(UnknownNodeTypeError):
            await executor.execute(pipeline, ctx)

        assert ctx.results == {}
        assert len(memory_storage) == 0

    @pytest.mark.asyncio
    async def test_node_failure_wrapped(self, executor, ctx, make_pipeline):
        pipeline = make_pipeline(
            [_const("a", {"x": 1}), {"id": "bad", "type": "fail", "config": {"message": "kaput"}}],
            [{"from": "a", "to": "bad"}],
        )

        with pytest.raises(NodeExecutionError) as exc_info:
            await executor.execute(pipeline, ctx)

        error = exc_info.value
        assert error.node_id == "bad"
        assert error.node_type == "fail"
        assert isinstance(error.__cause__, ValueError)
        assert "kaput" in str(error)
        assert ctx.results == {"a": {"x": 1}}
        assert [event.status for event in ctx.trace] == ["running", "completed", "running", "failed"]
        assert ctx.trace[-1].error == "kaput"

    @pytest.mark.asyncio
    async def test_accepts_plain_dict(self, executor, ctx):
        result = await executor.execute(
            {"nodes": [_const("only", {"ok": True})], "edges": []}, ctx
        )
        assert result.outputs == {"only": {"ok": True}}

    @pytest.mark.asyncio
    async def test_node_cannot_mutate_definition_config(self, executor, memory_storage, make_pipeline):
        pipeline = make_pipeline([{"id": "m", "type": "mutate", "config": {"nested": {"seen": []}}}])

        for _ in range(2):
            ctx = ExecutionContext(storage=memory_storage)
            result = await executor.execute(pipeline, ctx)
            assert result.outputs["m"] == {"seen": [ctx.run_id]}

        assert pipeline.nodes[0].config == {"nested": {"seen": []}}

    def test_strict_types_from_settings(self, registry, monkeypatch):
        from priceshield.api.settings import get_pipeline_settings

        monkeypatch.setenv("PIPELINE_STRICT_TYPES", "true")
        get_pipeline_settings.cache_clear()
        try:
            assert PipelineExecutor(registry=registry).strict_types is True
        finally:
            get_pipeline_settings.cache_clear()
