"""Pipeline 测试共享 fixtures"""

from typing import Any, Dict, List

import pytest

from priceshield.api.schemas import PipelineDefinition
from priceshield.pipeline.context import ExecutionContext
from priceshield.pipeline.node_base import PipelineNode
from priceshield.pipeline.nodes import register_all_nodes
from priceshield.pipeline.registry import NodeRegistry
from priceshield.pipeline.runner import PipelineExecutor


# ============ 测试节点 ============

class ConstNode(PipelineNode):
    """返回 config["output"]，并记录收到的输入"""

    type = "const"
    calls: List[Dict[str, Any]] = []

    async def execute(self, inputs, config, ctx):
        ConstNode.calls.append({"id": config.get("tag"), "inputs": dict(inputs)})
        return config.get("output", {})


class FailNode(PipelineNode):
    """总是失败"""

    type = "fail"

    async def execute(self, inputs, config, ctx):
        raise ValueError(config.get("message", "boom"))


class WriteNode(PipelineNode):
    """写入一条快照（用于验证副作用）"""

    type = "write"

    async def execute(self, inputs, config, ctx):
        snapshot_id = await ctx.storage.save_snapshot(
            {
                "url": config.get("url", "https://shop.test/item"),
                "product_name": "item",
                "price_cents": 100,
                "currency": "USD",
                "captured_at": "2026-01-01T00:00:00.000Z",
            }
        )
        return {"snapshot_id": snapshot_id}


class SyncNode(PipelineNode):
    """同步返回结果的节点"""

    type = "sync"

    def execute(self, inputs, config, ctx):
        return {"sync": True}


class MutateNode(PipelineNode):
    """修改收到的嵌套配置"""

    type = "mutate"

    async def execute(self, inputs, config, ctx):
        config["nested"]["seen"].append(ctx.run_id)
        return {"seen": list(config["nested"]["seen"])}


@pytest.fixture(autouse=True)
def const_calls():
    """ConstNode 的调用记录，每个测试重置"""
    ConstNode.calls = []
    yield ConstNode.calls
    ConstNode.calls = []


@pytest.fixture
def registry():
    """内置节点 + 测试节点的独立注册表"""
    registry = register_all_nodes(NodeRegistry())
    for node_cls in (ConstNode, FailNode, WriteNode, SyncNode, MutateNode):
        registry.register(node_cls.type, node_cls)
    return registry


@pytest.fixture
def executor(registry):
    return PipelineExecutor(registry=registry, strict_types=False)


@pytest.fixture
def ctx(memory_storage):
    return ExecutionContext(storage=memory_storage)


@pytest.fixture
def make_pipeline():
    """从字典构建管线定义"""

    def _make(nodes, edges=None) -> PipelineDefinition:
        return PipelineDefinition.model_validate({"nodes": nodes, "edges": edges or []})

    return _make
