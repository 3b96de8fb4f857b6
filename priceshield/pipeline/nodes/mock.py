"""Mock 节点实现 - 离线运行与测试用"""

from __future__ import annotations

from typing import Any, Dict, List

from priceshield.config import DEFAULT_USER_AGENT
from priceshield.core.utils.time_utils import format_timestamp
from priceshield.pipeline.context import ExecutionContext
from priceshield.pipeline.node_base import PipelineNode


class MockFetchPageNode(PipelineNode):
    """抓取页面节点 - 直接返回 config 中的 html，不发起网络请求"""

    type = "mock-fetch-page"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        return {
            "url": config.get("url") or inputs.get("url") or "mock://page",
            "html": config.get("html", ""),
            "user_agent": config.get("user_agent", DEFAULT_USER_AGENT),
            "fetched_at": format_timestamp(),
        }

    def get_output_keys(self) -> List[str]:
        return ["url", "html", "user_agent", "fetched_at"]
