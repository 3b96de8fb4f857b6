"""价格检测工具"""

from priceshield.core.price.detector import (
    calculate_trust_score,
    detect_drip_pricing,
    detect_hidden_fees,
    detect_subscription_traps,
    extract_prices,
    score_to_grade,
)

__all__ = [
    "extract_prices",
    "detect_hidden_fees",
    "detect_drip_pricing",
    "detect_subscription_traps",
    "calculate_trust_score",
    "score_to_grade",
]
