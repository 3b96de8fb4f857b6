"""
应用配置模块，基于 pydantic-settings 实现。

各配置类通过环境变量注入参数值，每个类拥有独立的环境变量前缀，
使用 lru_cache 保证配置对象在进程生命周期内只实例化一次。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from priceshield.config import DB_PATH, DEFAULT_USER_AGENT


class FetchSettings(BaseSettings):
    """页面抓取配置，环境变量前缀为 FETCH_。"""

    model_config = SettingsConfigDict(env_prefix="FETCH_", extra="ignore")

    user_agent: str = DEFAULT_USER_AGENT
    # 单页抓取超时（秒）
    timeout_seconds: float = Field(default=15.0, gt=0)
    # 多 UA / 多站点探测时的单次请求超时（秒）
    probe_timeout_seconds: float = Field(default=10.0, gt=0)


class AlertSettings(BaseSettings):
    """告警 webhook 配置，环境变量前缀为 ALERT_。"""

    model_config = SettingsConfigDict(env_prefix="ALERT_", extra="ignore")

    webhook_timeout_seconds: float = Field(default=5.0, gt=0)


class StorageSettings(BaseSettings):
    """快照存储配置，环境变量前缀为 STORAGE_。"""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    backend: Literal["memory", "sqlite"] = "sqlite"
    db_path: Path = DB_PATH


class PipelineSettings(BaseSettings):
    """管线执行配置，环境变量前缀为 PIPELINE_。"""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", extra="ignore")

    # 执行前是否校验所有节点类型均已注册（默认按需在节点运行前解析）
    strict_types: bool = False
    # 默认历史查询窗口（天）
    history_days: int = Field(default=30, ge=1)


# --- 单例工厂函数 ---


@lru_cache
def get_fetch_settings() -> FetchSettings:
    return FetchSettings()


@lru_cache
def get_alert_settings() -> AlertSettings:
    return AlertSettings()


@lru_cache
def get_storage_settings() -> StorageSettings:
    return StorageSettings()


@lru_cache
def get_pipeline_settings() -> PipelineSettings:
    return PipelineSettings()


__all__ = [
    "AlertSettings",
    "FetchSettings",
    "PipelineSettings",
    "StorageSettings",
    "get_alert_settings",
    "get_fetch_settings",
    "get_pipeline_settings",
    "get_storage_settings",
]
