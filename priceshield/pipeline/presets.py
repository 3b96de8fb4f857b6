"""内置管线预设"""

from __future__ import annotations

from typing import List, Optional

from priceshield.api.schemas import PipelineDefinition


def create_analyze_page_pipeline(url: str, format: str = "json") -> PipelineDefinition:
    """
    单页价格分析：抓取 -> 提取价格 -> 检测隐藏费用 / 订阅陷阱 -> 评分 -> 报告

    两个检测节点都输出 issues 字段，在评分边上分别映射为 fee_issues 与
    trap_issues，避免合并时互相覆盖。
    """
    return PipelineDefinition.model_validate(
        {
            "nodes": [
                {"id": "fetch", "type": "fetch-page", "config": {"url": url}},
                {"id": "extract", "type": "extract-price", "config": {}},
                {"id": "fees", "type": "detect-hidden-fees", "config": {}},
                {"id": "traps", "type": "detect-subscription-traps", "config": {}},
                {"id": "score", "type": "score", "config": {}},
                {"id": "report", "type": "report", "config": {"format": format}},
            ],
            "edges": [
                {"from": "fetch", "to": "extract"},
                {"from": "fetch", "to": "fees"},
                {"from": "fetch", "to": "traps"},
                {"from": "fees", "to": "score", "mapping": {"issues": "fee_issues"}},
                {"from": "traps", "to": "score", "mapping": {"issues": "trap_issues"}},
                {"from": "fetch", "to": "report", "mapping": {"url": "url"}},
                {"from": "extract", "to": "report"},
                {"from": "score", "to": "report"},
            ],
        }
    )


def create_track_price_pipeline(
    url: str,
    product_name: str,
    days: int = 30,
    drop_threshold: float = 10,
    spike_threshold: float = 15,
    webhook_url: Optional[str] = None,
) -> PipelineDefinition:
    """价格追踪：抓取当前价格并保存快照，查询历史后分析走势并检查降价 / 涨价"""
    return PipelineDefinition.model_validate(
        {
            "nodes": [
                {"id": "fetch", "type": "fetch-page", "config": {"url": url}},
                {"id": "extract", "type": "extract-price", "config": {}},
                {"id": "save", "type": "save-snapshot", "config": {"product_name": product_name}},
                {
                    "id": "history",
                    "type": "query-history",
                    "config": {"url": url, "product_name": product_name, "days": days},
                },
                {
                    "id": "trend",
                    "type": "compare-time",
                    "config": {"url": url, "product_name": product_name, "days": days},
                },
                {
                    "id": "drop",
                    "type": "price-drop-alert",
                    "config": {"drop_threshold": drop_threshold, "webhook_url": webhook_url},
                },
                {
                    "id": "spike",
                    "type": "price-spike-alert",
                    "config": {"spike_threshold": spike_threshold, "webhook_url": webhook_url},
                },
            ],
            "edges": [
                {"from": "fetch", "to": "extract"},
                {
                    "from": "fetch",
                    "to": "save",
                    "mapping": {"url": "url", "user_agent": "user_agent"},
                },
                {"from": "extract", "to": "save"},
                {"from": "save", "to": "history"},
                {"from": "history", "to": "trend"},
                {"from": "trend", "to": "drop"},
                {"from": "fetch", "to": "drop", "mapping": {"url": "url"}},
                {"from": "trend", "to": "spike"},
                {"from": "fetch", "to": "spike", "mapping": {"url": "url"}},
            ],
        }
    )


def create_compare_sites_pipeline(
    urls: List[str], product_name: str = "product"
) -> PipelineDefinition:
    """跨站比价：单节点抓取多个站点并比较"""
    return PipelineDefinition.model_validate(
        {
            "nodes": [
                {
                    "id": "compare",
                    "type": "compare-sites",
                    "config": {"urls": list(urls), "product_name": product_name},
                }
            ],
            "edges": [],
        }
    )
