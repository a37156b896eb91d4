"""RecordStore 抽象層。

提供可抽換的紀錄儲存後端，支援記憶體與 SQLite 兩種實作。
"""

from __future__ import annotations

from event_api.config import EventApiConfig
from event_api.store.base import RecordStore
from event_api.store.memory import MemoryRecordStore
from event_api.store.sqlite_backend import SQLiteRecordStore


def create_store(config: EventApiConfig) -> RecordStore:
    """依配置建立儲存後端。

    Args:
        config: Event API 配置

    Returns:
        RecordStore 實例
    """
    if config.store.get_backend() == 'memory':
        return MemoryRecordStore()
    return SQLiteRecordStore(db_path=config.store.get_db_path())


__all__ = ['MemoryRecordStore', 'RecordStore', 'SQLiteRecordStore', 'create_store']
