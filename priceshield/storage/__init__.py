"""快照存储 - 协议与内置实现

提供:
- StorageAdapter 协议
- MemoryStorage: 进程内存储
- SQLiteStorage: 本地持久化存储
"""

from __future__ import annotations

from typing import Optional

from priceshield.api.settings import get_storage_settings
from priceshield.storage.base import StorageAdapter
from priceshield.storage.memory import MemoryStorage
from priceshield.storage.sqlite import SQLiteStorage

_storage: Optional[StorageAdapter] = None


def create_storage(backend: str, db_path=None) -> StorageAdapter:
    """按名称创建存储实例"""
    if backend == "memory":
        return MemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(db_path) if db_path else SQLiteStorage()
    raise ValueError(f"未知的存储类型: {backend}")


def get_storage() -> StorageAdapter:
    """获取进程内共享的存储实例（单例），类型由 STORAGE_BACKEND 决定"""
    global _storage
    if _storage is None:
        settings = get_storage_settings()
        _storage = create_storage(settings.backend, settings.db_path)
    return _storage


__all__ = [
    "StorageAdapter",
    "MemoryStorage",
    "SQLiteStorage",
    "create_storage",
    "get_storage",
]
