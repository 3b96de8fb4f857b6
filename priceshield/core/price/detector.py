"""价格检测 - 基于正则的 HTML 价格/费用/订阅陷阱识别"""

from __future__ import annotations

import math
import re
from typing import Iterable, List, Optional

from priceshield.core.entities import PriceComponent, PriceIssue, PriceIssueType

# 含货币代码，用于在费用附近查找金额
PRICE_PATTERN = re.compile(
    r"(?:\$|€|£|¥|₩|USD|EUR|GBP)\s*((?:\d{1,3}(?:[,.]\d{3})+|\d+)(?:[.,]\d{1,2})?)"
)

# 仅货币符号，用于提取页面可见价格
VISIBLE_PRICE_PATTERN = re.compile(
    r"(\$|€|£|¥|₩)\s*((?:\d{1,3}(?:[,.]\d{3})+|\d+)(?:[.,]\d{1,2})?)"
)

CURRENCY_BY_SYMBOL = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₩": "KRW",
}

# (正则, 名称, 严重度)
FEE_RULES = [
    (re.compile(r"service\s+fee", re.I), "Service Fee", 70),
    (re.compile(r"processing\s+fee", re.I), "Processing Fee", 65),
    (re.compile(r"handling\s+(?:fee|charge)", re.I), "Handling Fee", 60),
    (re.compile(r"convenience\s+fee", re.I), "Convenience Fee", 75),
    (re.compile(r"platform\s+fee", re.I), "Platform Fee", 65),
    (re.compile(r"booking\s+fee", re.I), "Booking Fee", 60),
    (re.compile(r"resort\s+fee", re.I), "Resort Fee", 80),
    (re.compile(r"cleaning\s+fee", re.I), "Cleaning Fee", 50),
    (re.compile(r"(?:admin|administration)\s+fee", re.I), "Admin Fee", 55),
    (re.compile(r"delivery\s+(?:fee|charge|surcharge)", re.I), "Delivery Fee", 40),
    (re.compile(r"(?:mandatory|required)\s+(?:tip|gratuity)", re.I), "Mandatory Gratuity", 85),
    (re.compile(r"surcharge", re.I), "Surcharge", 60),
]

TRAP_RULES = [
    (
        re.compile(
            r"(?:first|intro(?:ductory)?)\s+(?:\d+\s+)?(?:month|year)s?\s+(?:at|for)\s+"
            r"(?:\$|€|£)\s*[\d.]+\s*[,;.]\s*(?:then|after\s+(?:that|which))\s+(?:\$|€|£)\s*[\d.]+",
            re.I,
        ),
        "Introductory price increases significantly after trial period",
        75,
    ),
    (
        re.compile(
            r"cancel\s+(?:at\s+)?any\s+time.*?(?:billed?\s+(?:annually|yearly)|annual\s+(?:billing|plan))",
            re.I,
        ),
        '"Cancel anytime" but billed annually - cancellation may not refund remaining period',
        60,
    ),
]

# 费用关键字前后查找金额的窗口大小
FEE_CONTEXT_CHARS = 100
# 低于该涨幅视为税费等正常差异
DRIP_MIN_PERCENT = 5


def round_half_up(value: float) -> int:
    """四舍五入到整数（.5 向上取整）"""
    return int(math.floor(value + 0.5))


def parse_amount(text: str) -> float:
    """解析金额文本，兼容 1,299.99 与 29,99 两种写法"""
    if re.search(r",\d{1,2}$", text):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")
    return float(text)


def to_cents(text: str) -> int:
    return round_half_up(parse_amount(text) * 100)


def extract_prices(html: str) -> List[PriceComponent]:
    """提取页面中所有可见价格"""
    components: List[PriceComponent] = []
    for match in VISIBLE_PRICE_PATTERN.finditer(html):
        symbol, amount = match.group(1), match.group(2)
        components.append(
            PriceComponent(
                label="detected-price",
                amount_cents=to_cents(amount),
                currency=CURRENCY_BY_SYMBOL.get(symbol, "USD"),
            )
        )
    return components


def detect_hidden_fees(html: str) -> List[PriceIssue]:
    """检测隐藏费用，每条规则最多命中一次"""
    issues: List[PriceIssue] = []

    for pattern, label, severity in FEE_RULES:
        match = pattern.search(html)
        if not match:
            continue

        context = html[
            max(0, match.start() - FEE_CONTEXT_CHARS): match.end() + FEE_CONTEXT_CHARS
        ]
        price_match = PRICE_PATTERN.search(context)
        estimated_cost = to_cents(price_match.group(1)) if price_match else 0

        issues.append(
            PriceIssue(
                type=PriceIssueType.HIDDEN_FEE,
                severity=severity,
                description=f"{label} detected - may not be included in the advertised price",
                evidence=match.group(0),
                estimated_extra_cost_cents=estimated_cost,
            )
        )

    return issues


def detect_drip_pricing(
    initial_price_cents: int, final_price_cents: int
) -> Optional[PriceIssue]:
    """检测滴漏定价（从标价到结算价格逐步上涨）"""
    if initial_price_cents <= 0 or final_price_cents <= initial_price_cents:
        return None

    increase = final_price_cents - initial_price_cents
    percent_increase = increase / initial_price_cents * 100
    if percent_increase < DRIP_MIN_PERCENT:
        return None

    return PriceIssue(
        type=PriceIssueType.DRIP_PRICING,
        severity=min(100, round_half_up(percent_increase * 2)),
        description=f"Price increased {percent_increase:.1f}% from advertised to checkout",
        evidence=(
            f"Advertised: {initial_price_cents / 100:.2f}, "
            f"Final: {final_price_cents / 100:.2f}"
        ),
        estimated_extra_cost_cents=increase,
    )


def detect_subscription_traps(html: str) -> List[PriceIssue]:
    """检测订阅陷阱"""
    issues: List[PriceIssue] = []
    for pattern, description, severity in TRAP_RULES:
        match = pattern.search(html)
        if match:
            issues.append(
                PriceIssue(
                    type=PriceIssueType.SUBSCRIPTION_TRAP,
                    severity=severity,
                    description=description,
                    evidence=match.group(0)[:200],
                )
            )
    return issues


def calculate_trust_score(issues: Iterable[PriceIssue]) -> int:
    """根据问题严重度计算 0-100 的可信分"""
    score = 100
    for issue in issues:
        score -= round_half_up(issue.severity * 0.3)
    return max(0, min(100, score))


def score_to_grade(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 75:
        return "B"
    if score >= 60:
        return "C"
    if score >= 40:
        return "D"
    if score >= 20:
        return "E"
    return "F"
