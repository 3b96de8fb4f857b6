"""存储测试 fixtures"""

import tempfile
from pathlib import Path

import pytest

from priceshield.storage import MemoryStorage, SQLiteStorage


@pytest.fixture
def temp_dir():
    """创建临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, temp_dir):
    """两种存储实现共用同一组协议测试"""
    if request.param == "memory":
        yield MemoryStorage()
        return

    storage = SQLiteStorage(temp_dir / "snapshots.db")
    yield storage
    storage.close()


@pytest.fixture
def make_record(timestamp_days_ago):
    def _make(days=0, url="https://shop.test/item", product_name="item", price_cents=1000):
        return {
            "url": url,
            "product_name": product_name,
            "price_cents": price_cents,
            "currency": "USD",
            "captured_at": timestamp_days_ago(days),
            "user_agent": "pytest",
        }

    return _make
