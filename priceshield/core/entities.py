"""价格领域实体定义"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class PriceIssueType(str, Enum):
    """价格问题类型"""

    HIDDEN_FEE = "hidden-fee"
    DRIP_PRICING = "drip-pricing"
    DYNAMIC_PRICING = "dynamic-pricing"
    BAIT_AND_SWITCH = "bait-and-switch"
    DECOY_PRICING = "decoy-pricing"
    SURGE_PRICING = "surge-pricing"
    SUBSCRIPTION_TRAP = "subscription-trap"
    CURRENCY_TRICK = "currency-trick"


class TrendDirection(str, Enum):
    """价格走势方向"""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass
class PriceIssue:
    """检测到的价格问题"""

    type: PriceIssueType
    severity: int  # 0-100
    description: str
    evidence: str
    estimated_extra_cost_cents: int = 0


@dataclass
class PriceComponent:
    """页面上识别出的单个价格"""

    label: str
    amount_cents: int
    currency: str
    was_visible: bool = True
    added_at_checkout: bool = False


@dataclass
class PriceSnapshot:
    """某一时刻的价格快照（持久化记录）"""

    id: str
    url: str
    product_name: str
    price_cents: int
    currency: str
    captured_at: str  # ISO 8601
    user_agent: Optional[str] = None


@dataclass
class PriceTrend:
    """一段时间内的价格走势"""

    direction: TrendDirection
    change_percent: float
    period_days: int
    snapshots: List[PriceSnapshot] = field(default_factory=list)


@dataclass
class PriceSource:
    """跨站比价中单个来源的代表价格"""

    url: str
    price_cents: int
    currency: str


@dataclass
class CrossSiteComparison:
    """跨站比价结果"""

    product_name: str
    cheapest: PriceSource
    most_expensive: PriceSource
    spread_percent: int
    sources: List[PriceSource] = field(default_factory=list)


@dataclass
class AnalysisReport:
    """单页分析报告"""

    url: str
    analyzed_at: str
    prices: List[PriceComponent]
    issues: List[PriceIssue]
    trust_score: int
    grade: str
    summary: str
