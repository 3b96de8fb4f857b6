"""Root-level test configuration and shared fixtures.

Module-specific fixtures should be placed in their respective conftest.py files.
"""

from datetime import timedelta

import pytest

from priceshield.core.utils.time_utils import format_timestamp, utc_now
from priceshield.storage import MemoryStorage


# ============================================================================
# Shared Data Fixtures
# ============================================================================


FEE_PAGE_HTML = """
<html><body>
  <h1>Concert ticket</h1>
  <span class="price">$89.99</span>
  <p>A $10 Service Fee applies to every order.</p>
</body></html>
"""

TRAP_PAGE_HTML = """
<html><body>
  <span class="price">$1.99</span>
  <p>First month at $1.99, then $29.99 per month.</p>
  <p>Cancel any time - plan is billed annually.</p>
</body></html>
"""


@pytest.fixture
def fee_page_html() -> str:
    """带服务费的商品页"""
    return FEE_PAGE_HTML


@pytest.fixture
def trap_page_html() -> str:
    """带订阅陷阱的商品页"""
    return TRAP_PAGE_HTML


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def timestamp_days_ago():
    """生成 N 天前的定长 UTC 时间戳

    Example:
        captured_at = timestamp_days_ago(30)
    """

    def _make(days: float) -> str:
        return format_timestamp(utc_now() - timedelta(days=days))

    return _make
