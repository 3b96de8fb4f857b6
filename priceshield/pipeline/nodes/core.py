"""核心节点实现 - 抓取、提取、检测、比较、告警、存储与输出"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

import requests

from priceshield.api.settings import get_alert_settings, get_fetch_settings, get_pipeline_settings
from priceshield.core.entities import (
    AnalysisReport,
    CrossSiteComparison,
    PriceComponent,
    PriceIssue,
    PriceIssueType,
    PriceSnapshot,
    PriceSource,
    PriceTrend,
    TrendDirection,
)
from priceshield.core.price import (
    calculate_trust_score,
    detect_hidden_fees,
    detect_subscription_traps,
    extract_prices,
    score_to_grade,
)
from priceshield.core.price.detector import round_half_up
from priceshield.core.utils.logger import setup_logger
from priceshield.core.utils.time_utils import DAY_MS, format_timestamp, parse_timestamp
from priceshield.pipeline.context import ExecutionContext, serialize_value
from priceshield.pipeline.node_base import PipelineNode

logger = setup_logger("pipeline_nodes")

DEFAULT_PROBE_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/146.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 18_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148",
    "Mozilla/5.0 (Linux; Android 15) AppleWebKit/537.36 Chrome/146.0.0.0 Mobile Safari/537.36",
]

GRADE_SUMMARIES = {
    "A": "Highly trustworthy - no significant issues detected",
    "B": "Generally trustworthy - minor concerns found",
    "C": "Mixed signals - some suspicious patterns detected",
    "D": "Caution advised - multiple warning signs",
    "E": "High risk - significant manipulation detected",
    "F": "Avoid - strong evidence of deception",
}


# ============ 公共工具 ============

def fetch_html(url: str, user_agent: str, timeout: float) -> str:
    """同步抓取页面 HTML，非 2xx 状态抛出异常"""
    response = requests.get(url, headers={"User-Agent": user_agent}, timeout=timeout)
    if not response.ok:
        raise RuntimeError(f"页面抓取失败: {response.status_code} {response.reason}")
    return response.text


def post_webhook(webhook_url: str, payload: Dict[str, Any]) -> bool:
    """
    推送 webhook 通知

    失败不影响管线，仅记录告警并返回 False
    """
    timeout = get_alert_settings().webhook_timeout_seconds
    try:
        response = requests.post(webhook_url, json=payload, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"webhook 推送失败: {webhook_url} {e}")
        return False
    logger.info(f"webhook 已推送: event={payload.get('event')}")
    return True


def as_price_issue(item: Any) -> Optional[PriceIssue]:
    """识别列表元素是否为价格问题（实体或同结构字典）"""
    if isinstance(item, PriceIssue):
        return item
    if isinstance(item, Mapping) and "type" in item and "severity" in item:
        return PriceIssue(
            type=PriceIssueType(item["type"]),
            severity=int(item["severity"]),
            description=item.get("description", ""),
            evidence=item.get("evidence", ""),
            estimated_extra_cost_cents=int(item.get("estimated_extra_cost_cents", 0)),
        )
    return None


def collect_issues(inputs: Mapping[str, Any]) -> List[PriceIssue]:
    """从合并输入的所有列表字段中收集价格问题（issues 字段优先）"""
    keys = sorted(inputs.keys(), key=lambda k: k != "issues")
    issues: List[PriceIssue] = []
    for key in keys:
        value = inputs[key]
        if not isinstance(value, (list, tuple)):
            continue
        for item in value:
            issue = as_price_issue(item)
            if issue is not None:
                issues.append(issue)
    return issues


def representative_price(prices: Iterable[PriceComponent]) -> Optional[PriceSource]:
    """取最高价作为代表价格，币种取第一个价格的币种"""
    prices = list(prices)
    if not prices:
        return None
    return PriceSource(
        url="",
        price_cents=max(p.amount_cents for p in prices),
        currency=prices[0].currency,
    )


def sort_snapshots(snapshots: Iterable[PriceSnapshot]) -> List[PriceSnapshot]:
    return sorted(snapshots, key=lambda s: parse_timestamp(s.captured_at))


def resolve_url(inputs: Mapping[str, Any], config: Mapping[str, Any]) -> Optional[str]:
    """config 中的 url 优先于输入"""
    return config.get("url") or inputs.get("url")


# ============ 输入节点 ============

class FetchPageNode(PipelineNode):
    """抓取页面节点 - 下载 HTML 供后续节点分析"""

    type = "fetch-page"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        url = resolve_url(inputs, config)
        if not url:
            raise ValueError("fetch-page: 需要通过 config 或输入提供 url")

        settings = get_fetch_settings()
        user_agent = config.get("user_agent") or settings.user_agent
        timeout = float(config.get("timeout") or settings.timeout_seconds)

        html = await asyncio.to_thread(fetch_html, url, user_agent, timeout)
        logger.info(f"页面抓取成功: {url} ({len(html)} 字符)")

        return {
            "url": url,
            "html": html,
            "user_agent": user_agent,
            "fetched_at": format_timestamp(),
        }

    def get_output_keys(self) -> List[str]:
        return ["url", "html", "user_agent", "fetched_at"]


# ============ 提取节点 ============

class ExtractPriceNode(PipelineNode):
    """价格提取节点"""

    type = "extract-price"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        prices = extract_prices(inputs.get("html") or "")
        return {"prices": prices, "count": len(prices)}

    def get_output_keys(self) -> List[str]:
        return ["prices", "count"]


# ============ 检测节点 ============

class DetectHiddenFeesNode(PipelineNode):
    """隐藏费用检测节点"""

    type = "detect-hidden-fees"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        issues = detect_hidden_fees(inputs.get("html") or "")
        total = sum(issue.estimated_extra_cost_cents for issue in issues)
        if issues:
            logger.info(f"检测到隐藏费用 {len(issues)} 项，合计 {total} 分")
        return {"issues": issues, "total_hidden_fee_cents": total}

    def get_output_keys(self) -> List[str]:
        return ["issues", "total_hidden_fee_cents"]


class DetectSubscriptionTrapsNode(PipelineNode):
    """订阅陷阱检测节点"""

    type = "detect-subscription-traps"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        return {"issues": detect_subscription_traps(inputs.get("html") or "")}

    def get_output_keys(self) -> List[str]:
        return ["issues"]


class DetectDynamicPricingNode(PipelineNode):
    """
    动态定价检测节点

    使用多个 User-Agent 抓取同一页面，比较各自的最高价。
    单次抓取失败记为空价格列表，不中断检测。
    """

    type = "detect-dynamic-pricing"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        url = resolve_url(inputs, config)
        if not url:
            raise ValueError("detect-dynamic-pricing: 需要提供 url")

        user_agents = config.get("user_agents") or DEFAULT_PROBE_USER_AGENTS
        threshold = float(config.get("threshold", 5))
        timeout = get_fetch_settings().probe_timeout_seconds

        prices_by_ua = []
        for user_agent in user_agents:
            try:
                html = await asyncio.to_thread(fetch_html, url, user_agent, timeout)
                prices = extract_prices(html)
            except (requests.RequestException, RuntimeError) as e:
                logger.warning(f"UA 探测失败: {user_agent[:40]}... {e}")
                prices = []
            prices_by_ua.append({"user_agent": user_agent, "prices": prices})

        max_prices = [
            max(p.amount_cents for p in entry["prices"])
            for entry in prices_by_ua
            if entry["prices"]
        ]
        max_prices = [price for price in max_prices if price > 0]

        issues: List[PriceIssue] = []
        if len(max_prices) >= 2:
            low, high = min(max_prices), max(max_prices)
            diff_percent = (high - low) / low * 100 if low > 0 else 0
            if diff_percent >= threshold:
                issues.append(
                    PriceIssue(
                        type=PriceIssueType.DYNAMIC_PRICING,
                        severity=min(100, round_half_up(diff_percent * 3)),
                        description=(
                            f"Price varies {diff_percent:.1f}% across different devices/browsers"
                        ),
                        evidence=f"Min: {low / 100:.2f}, Max: {high / 100:.2f}",
                        estimated_extra_cost_cents=high - low,
                    )
                )

        return {
            "issues": issues,
            "prices_by_ua": prices_by_ua,
            "is_dynamic": bool(issues),
        }

    def get_output_keys(self) -> List[str]:
        return ["issues", "prices_by_ua", "is_dynamic"]


class DetectSurgeNode(PipelineNode):
    """
    涨价（surge）检测节点

    最新快照价格高于历史均价 surge_threshold% 以上视为涨价。
    输入没有快照时从存储中按 url 查询。
    """

    type = "detect-surge"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        surge_threshold = float(config.get("surge_threshold", 20))
        snapshots = inputs.get("snapshots")

        if not snapshots:
            url = resolve_url(inputs, config)
            if url:
                days = config.get("days", get_pipeline_settings().history_days)
                snapshots = await ctx.storage.query_snapshots(url, None, days)

        if not snapshots or len(snapshots) < 2:
            return {"issues": [], "is_surging": False}

        ordered = sort_snapshots(snapshots)
        latest, history = ordered[-1], ordered[:-1]
        average = sum(s.price_cents for s in history) / len(history)
        surge_percent = (latest.price_cents - average) / average * 100 if average > 0 else 0

        issues: List[PriceIssue] = []
        if surge_percent >= surge_threshold:
            issues.append(
                PriceIssue(
                    type=PriceIssueType.SURGE_PRICING,
                    severity=min(100, round_half_up(surge_percent * 2)),
                    description=(
                        f"Current price is {surge_percent:.1f}% above the "
                        f"{len(history)}-sample average"
                    ),
                    evidence=(
                        f"Current: {latest.price_cents / 100:.2f}, Avg: {average / 100:.2f}"
                    ),
                    estimated_extra_cost_cents=round_half_up(latest.price_cents - average),
                )
            )

        return {
            "issues": issues,
            "is_surging": bool(issues),
            "current_price": latest.price_cents,
            "average_price": round_half_up(average),
        }

    def get_output_keys(self) -> List[str]:
        return ["issues", "is_surging", "current_price", "average_price"]


# ============ 比较节点 ============

class CompareSitesNode(PipelineNode):
    """跨站比价节点 - 以各站最高价为代表价格，仅比较同币种"""

    type = "compare-sites"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        urls = config.get("urls") or inputs.get("urls") or []
        if len(urls) < 2:
            raise ValueError("compare-sites: 至少需要 2 个 URL")

        product_name = config.get("product_name") or "product"
        settings = get_fetch_settings()

        sources = []
        for url in urls:
            try:
                html = await asyncio.to_thread(
                    fetch_html, url, settings.user_agent, settings.probe_timeout_seconds
                )
                prices = extract_prices(html)
            except (requests.RequestException, RuntimeError) as e:
                logger.warning(f"比价抓取失败: {url} {e}")
                prices = []
            sources.append({"url": url, "prices": prices})

        return {
            "comparison": self._compare(product_name, sources),
            "sources": sources,
        }

    @staticmethod
    def _compare(product_name: str, sources: List[Dict[str, Any]]) -> Optional[CrossSiteComparison]:
        candidates: List[PriceSource] = []
        for source in sources:
            price = representative_price(source["prices"])
            if price is not None:
                price.url = source["url"]
                candidates.append(price)

        if len(candidates) < 2:
            return None

        currency = candidates[0].currency
        same_currency = [c for c in candidates if c.currency == currency]
        if len(same_currency) < 2:
            return None

        ordered = sorted(same_currency, key=lambda c: c.price_cents)
        cheapest, most_expensive = ordered[0], ordered[-1]
        spread = (
            round_half_up(
                (most_expensive.price_cents - cheapest.price_cents) / cheapest.price_cents * 100
            )
            if cheapest.price_cents > 0
            else 0
        )

        return CrossSiteComparison(
            product_name=product_name,
            cheapest=cheapest,
            most_expensive=most_expensive,
            spread_percent=spread,
            sources=same_currency,
        )

    def get_output_keys(self) -> List[str]:
        return ["comparison", "sources"]


class CompareTimeNode(PipelineNode):
    """时间维度比价节点 - 比较窗口内首末快照得出走势"""

    type = "compare-time"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        snapshots = inputs.get("snapshots")

        if not snapshots:
            url = resolve_url(inputs, config)
            if not url:
                return {"trend": None}
            days = config.get("days", get_pipeline_settings().history_days)
            snapshots = await ctx.storage.query_snapshots(url, config.get("product_name"), days)

        if len(snapshots) < 2:
            return {"trend": None}

        ordered = sort_snapshots(snapshots)
        first, last = ordered[0], ordered[-1]

        change = (
            (last.price_cents - first.price_cents) / first.price_cents * 100
            if first.price_cents > 0
            else 0
        )
        stable_threshold = float(config.get("stable_threshold", 3))
        period_ms = (
            parse_timestamp(last.captured_at) - parse_timestamp(first.captured_at)
        ).total_seconds() * 1000
        period_days = max(1, round_half_up(period_ms / DAY_MS))

        if abs(change) < stable_threshold:
            direction = TrendDirection.STABLE
        elif change > 0:
            direction = TrendDirection.RISING
        else:
            direction = TrendDirection.FALLING

        return {
            "trend": PriceTrend(
                direction=direction,
                change_percent=round_half_up(change * 10) / 10,
                period_days=period_days,
                snapshots=ordered,
            )
        }

    def get_output_keys(self) -> List[str]:
        return ["trend"]


# ============ 告警节点 ============

class PriceDropAlertNode(PipelineNode):
    """降价告警节点"""

    type = "price-drop-alert"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        drop_threshold = float(config.get("drop_threshold", 10))
        trend: Optional[PriceTrend] = inputs.get("trend")

        if trend is None or trend.direction != TrendDirection.FALLING:
            return {
                "dropped": False,
                "drop_percent": 0,
                "message": "No price drop detected",
                "notified": False,
            }

        drop_percent = abs(trend.change_percent)
        dropped = drop_percent >= drop_threshold
        notified = False

        webhook_url = config.get("webhook_url")
        if dropped and webhook_url:
            notified = await asyncio.to_thread(
                post_webhook,
                webhook_url,
                {
                    "event": "price-drop",
                    "url": inputs.get("url") or "unknown",
                    "drop_percent": drop_percent,
                    "message": (
                        f"Price dropped {drop_percent:.1f}% over {trend.period_days} days"
                    ),
                },
            )

        if dropped:
            message = f"Price dropped {drop_percent:.1f}% - good time to buy!"
        else:
            message = f"Price fell {drop_percent:.1f}% (below {drop_threshold:g}% threshold)"

        return {
            "dropped": dropped,
            "drop_percent": drop_percent,
            "message": message,
            "notified": notified,
        }

    def get_output_keys(self) -> List[str]:
        return ["dropped", "drop_percent", "message", "notified"]


class PriceSpikeAlertNode(PipelineNode):
    """涨价告警节点 - 超过阈值时同时产出 surge-pricing 问题"""

    type = "price-spike-alert"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        spike_threshold = float(config.get("spike_threshold", 15))
        trend: Optional[PriceTrend] = inputs.get("trend")

        if trend is None or trend.direction != TrendDirection.RISING:
            return {
                "spiked": False,
                "spike_percent": 0,
                "issues": [],
                "message": "No price spike detected",
                "notified": False,
            }

        spike_percent = trend.change_percent
        spiked = spike_percent >= spike_threshold
        issues: List[PriceIssue] = []
        notified = False

        if spiked:
            issues.append(
                PriceIssue(
                    type=PriceIssueType.SURGE_PRICING,
                    severity=min(100, round_half_up(spike_percent * 2)),
                    description=(
                        f"Price spiked {spike_percent:.1f}% over {trend.period_days} days"
                    ),
                    evidence=f"{len(trend.snapshots)} snapshots analyzed",
                )
            )

            webhook_url = config.get("webhook_url")
            if webhook_url:
                notified = await asyncio.to_thread(
                    post_webhook,
                    webhook_url,
                    {
                        "event": "price-spike",
                        "url": inputs.get("url") or "unknown",
                        "spike_percent": spike_percent,
                        "message": f"Price spiked {spike_percent:.1f}%",
                    },
                )

        if spiked:
            message = f"WARNING: Price spiked {spike_percent:.1f}% - consider waiting"
        else:
            message = f"Price rose {spike_percent:.1f}% (below {spike_threshold:g}% threshold)"

        return {
            "spiked": spiked,
            "spike_percent": spike_percent,
            "issues": issues,
            "message": message,
            "notified": notified,
        }

    def get_output_keys(self) -> List[str]:
        return ["spiked", "spike_percent", "issues", "message", "notified"]


# ============ 存储节点 ============

class SaveSnapshotNode(PipelineNode):
    """保存价格快照节点 - 以最高价作为代表价格"""

    type = "save-snapshot"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        price = representative_price(inputs.get("prices") or [])

        snapshot_id = await ctx.storage.save_snapshot(
            {
                "url": inputs.get("url") or "unknown",
                "product_name": config.get("product_name") or inputs.get("product_name") or "unknown",
                "price_cents": price.price_cents if price else 0,
                "currency": price.currency if price else "USD",
                "captured_at": format_timestamp(),
                "user_agent": inputs.get("user_agent"),
            }
        )
        logger.info(f"快照已保存: {snapshot_id}")

        return {"snapshot_id": snapshot_id, "saved_at": format_timestamp()}

    def get_output_keys(self) -> List[str]:
        return ["snapshot_id", "saved_at"]


class QueryHistoryNode(PipelineNode):
    """查询历史快照节点"""

    type = "query-history"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        url = resolve_url(inputs, config)
        if not url:
            raise ValueError("query-history: 需要提供 url")

        days = config.get("days", get_pipeline_settings().history_days)
        snapshots = await ctx.storage.query_snapshots(url, config.get("product_name"), days)
        return {"snapshots": snapshots, "count": len(snapshots)}

    def get_output_keys(self) -> List[str]:
        return ["snapshots", "count"]


# ============ 输出节点 ============

class ScoreNode(PipelineNode):
    """
    评分节点

    多个前驱的问题列表可能以不同字段名合并进来（如 fee_issues、trap_issues），
    这里汇总所有列表字段中的价格问题后计算可信分。
    """

    type = "score"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        issues = collect_issues(inputs)
        trust_score = calculate_trust_score(issues)
        return {
            "trust_score": trust_score,
            "grade": score_to_grade(trust_score),
            "issue_count": len(issues),
            "issues": issues,
        }

    def get_output_keys(self) -> List[str]:
        return ["trust_score", "grade", "issue_count", "issues"]


class ReportNode(PipelineNode):
    """报告节点 - 支持 json / markdown / text 三种格式"""

    type = "report"

    async def execute(self, inputs, config, ctx: ExecutionContext) -> Dict[str, Any]:
        output_format = config.get("format", "json")
        grade = inputs.get("grade") or "?"

        report = AnalysisReport(
            url=inputs.get("url") or "unknown",
            analyzed_at=format_timestamp(),
            prices=list(inputs.get("prices") or []),
            issues=collect_issues(inputs),
            trust_score=inputs.get("trust_score", 0),
            grade=grade,
            summary=GRADE_SUMMARIES.get(grade, "Analysis complete"),
        )

        if output_format == "markdown":
            formatted = format_markdown(report)
        elif output_format == "text":
            formatted = format_text(report)
        else:
            formatted = json.dumps(serialize_value(report), ensure_ascii=False, indent=2)

        return {"report": report, "formatted": formatted}

    def get_output_keys(self) -> List[str]:
        return ["report", "formatted"]


def format_markdown(report: AnalysisReport) -> str:
    lines = [
        "# Price Shield Report",
        "",
        f"**URL:** {report.url}",
        f"**Score:** {report.trust_score}/100 (Grade {report.grade})",
        f"**Summary:** {report.summary}",
        "",
    ]

    if report.prices:
        lines += ["## Detected Prices", ""]
        for price in report.prices:
            lines.append(f"- {price.label}: {price.currency} {price.amount_cents / 100:.2f}")
        lines.append("")

    if report.issues:
        lines += ["## Issues Found", ""]
        for issue in report.issues:
            lines.append(
                f"- **{issue.type.value}** (severity {issue.severity}): {issue.description}"
            )
        lines.append("")

    return "\n".join(lines)


def format_text(report: AnalysisReport) -> str:
    lines = [
        "=== Price Shield Report ===",
        f"URL: {report.url}",
        f"Score: {report.trust_score}/100 ({report.grade})",
        f"Summary: {report.summary}",
        f"Prices: {len(report.prices)}",
        f"Issues: {len(report.issues)}",
    ]
    for issue in report.issues:
        lines.append(f"  [{issue.type.value}] {issue.description}")
    return "\n".join(lines)
