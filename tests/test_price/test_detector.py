"""价格检测工具测试"""

import pytest

from priceshield.core.entities import PriceIssue, PriceIssueType
from priceshield.core.price import (
    calculate_trust_score,
    detect_drip_pricing,
    detect_hidden_fees,
    detect_subscription_traps,
    extract_prices,
    score_to_grade,
)
from priceshield.core.price.detector import parse_amount, round_half_up, to_cents


class TestAmounts:
    @pytest.mark.parametrize(
        "text, expected",
        [("10", 10.0), ("1,299.99", 1299.99), ("29,99", 29.99), ("1.299,50", 1299.5)],
    )
    def test_parse_amount(self, text, expected):
        assert parse_amount(text) == pytest.approx(expected)

    def test_to_cents(self):
        assert to_cents("19.99") == 1999
        assert to_cents("1,000") == 100000

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(22.5) == 23
        assert round_half_up(-0.5) == 0


class TestExtractPrices:
    def test_currencies(self):
        prices = extract_prices("<p>$19.99</p><p>€ 5</p><p>£7.50</p><p>¥1200</p><p>₩5000</p>")
        assert [(p.currency, p.amount_cents) for p in prices] == [
            ("USD", 1999),
            ("EUR", 500),
            ("GBP", 750),
            ("JPY", 120000),
            ("KRW", 500000),
        ]
        assert all(p.label == "detected-price" and p.was_visible for p in prices)

    @pytest.mark.parametrize(
        "html, cents",
        [
            ("<p>$1299.99</p>", 129999),
            ("<p>$1,299.99</p>", 129999),
            ("<p>€1.299,50</p>", 129950),
            ("<p>$12,99</p>", 1299),
            ("<p>$25000</p>", 2500000),
        ],
    )
    def test_amount_without_thousands_separator(self, html, cents):
        prices = extract_prices(html)

        assert [p.amount_cents for p in prices] == [cents]

    def test_fee_amount_without_thousands_separator(self):
        issues = detect_hidden_fees("<p>Resort fee of $1250 per stay</p>")

        assert issues[0].estimated_extra_cost_cents == 125000

    def test_no_prices(self):
        assert extract_prices("<p>free</p>") == []


class TestHiddenFees:
    def test_fee_amount_from_nearby_price(self):
        issues = detect_hidden_fees("<p>Convenience fee: $4.50 per ticket</p>")

        assert len(issues) == 1
        issue = issues[0]
        assert issue.type == PriceIssueType.HIDDEN_FEE
        assert issue.severity == 75
        assert issue.estimated_extra_cost_cents == 450
        assert issue.description.startswith("Convenience Fee detected")

    def test_each_rule_matches_once(self):
        issues = detect_hidden_fees("resort fee, resort fee, cleaning fee")
        assert [i.severity for i in issues] == [80, 50]
        assert all(i.estimated_extra_cost_cents == 0 for i in issues)

    def test_clean_page(self):
        assert detect_hidden_fees("<p>All-in price $99</p>") == []


class TestSubscriptionTraps:
    def test_intro_price(self):
        issues = detect_subscription_traps("Intro 3 months for $1.99, then $19.99/month")
        assert len(issues) == 1
        assert issues[0].severity == 75

    def test_cancel_anytime_billed_annually(self, trap_page_html):
        issues = detect_subscription_traps(trap_page_html)
        assert [i.severity for i in issues] == [75, 60]

    def test_evidence_truncated(self):
        html = "cancel any time " + "x" * 300 + " billed annually"
        issues = detect_subscription_traps(html)
        assert len(issues[0].evidence) == 200


class TestDripPricing:
    def test_detected(self):
        issue = detect_drip_pricing(10000, 12500)
        assert issue.type == PriceIssueType.DRIP_PRICING
        assert issue.severity == 50
        assert issue.estimated_extra_cost_cents == 2500

    @pytest.mark.parametrize("initial, final", [(10000, 10400), (10000, 9000), (0, 500)])
    def test_not_detected(self, initial, final):
        assert detect_drip_pricing(initial, final) is None


class TestScoring:
    def _issue(self, severity):
        return PriceIssue(
            type=PriceIssueType.HIDDEN_FEE, severity=severity, description="", evidence=""
        )

    def test_trust_score(self):
        assert calculate_trust_score([]) == 100
        assert calculate_trust_score([self._issue(70)]) == 79
        assert calculate_trust_score([self._issue(100)] * 5) == 0

    @pytest.mark.parametrize(
        "score, grade",
        [(100, "A"), (90, "A"), (89, "B"), (75, "B"), (60, "C"), (40, "D"), (20, "E"), (19, "F"), (0, "F")],
    )
    def test_grades(self, score, grade):
        assert score_to_grade(score) == grade
