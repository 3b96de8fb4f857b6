"""时间戳工具 - 统一使用 UTC ISO 8601 字符串"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

DAY_MS = 86_400_000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime] = None) -> str:
    """
    格式化为定长 UTC 时间字符串，如 2026-01-01T00:00:00.000Z

    定长格式保证字符串比较与时间先后一致
    """
    value = value or utc_now()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: str) -> datetime:
    """解析 ISO 8601 字符串，无时区信息时视为 UTC"""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_timestamp(value: str) -> str:
    return format_timestamp(parse_timestamp(value))


def days_ago(days: float) -> datetime:
    return utc_now() - timedelta(days=days)
