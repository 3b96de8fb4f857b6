"""Pipeline 节点实现"""

from __future__ import annotations

from typing import TYPE_CHECKING

# 核心节点（真实实现）
from priceshield.pipeline.nodes.core import (
    CompareSitesNode,
    CompareTimeNode,
    DetectDynamicPricingNode,
    DetectHiddenFeesNode,
    DetectSubscriptionTrapsNode,
    DetectSurgeNode,
    ExtractPriceNode,
    FetchPageNode,
    PriceDropAlertNode,
    PriceSpikeAlertNode,
    QueryHistoryNode,
    ReportNode,
    SaveSnapshotNode,
    ScoreNode,
)
from priceshield.pipeline.nodes.mock import MockFetchPageNode

if TYPE_CHECKING:
    from priceshield.pipeline.registry import NodeRegistry

BUILTIN_NODES = [
    # 输入
    FetchPageNode,
    # 提取
    ExtractPriceNode,
    # 检测
    DetectHiddenFeesNode,
    DetectSubscriptionTrapsNode,
    DetectDynamicPricingNode,
    DetectSurgeNode,
    # 比较
    CompareSitesNode,
    CompareTimeNode,
    # 告警
    PriceDropAlertNode,
    PriceSpikeAlertNode,
    # 存储
    SaveSnapshotNode,
    QueryHistoryNode,
    # 输出
    ScoreNode,
    ReportNode,
    # 离线
    MockFetchPageNode,
]


def register_all_nodes(registry: "NodeRegistry") -> "NodeRegistry":
    """注册全部内置节点，节点类本身即为工厂"""
    for node_cls in BUILTIN_NODES:
        registry.register(node_cls.type, node_cls)
    return registry


__all__ = [
    "BUILTIN_NODES",
    "register_all_nodes",
    "FetchPageNode",
    "ExtractPriceNode",
    "DetectHiddenFeesNode",
    "DetectSubscriptionTrapsNode",
    "DetectDynamicPricingNode",
    "DetectSurgeNode",
    "CompareSitesNode",
    "CompareTimeNode",
    "PriceDropAlertNode",
    "PriceSpikeAlertNode",
    "SaveSnapshotNode",
    "QueryHistoryNode",
    "ScoreNode",
    "ReportNode",
    "MockFetchPageNode",
]
