"""Event API - 建立在泛用紀錄儲存上的 Event CRUD REST API。"""

__version__ = '0.1.0'

from event_api.config import EventApiConfig, StoreConfig
from event_api.gateway import EventGateway
from event_api.store import MemoryRecordStore, RecordStore, SQLiteRecordStore, create_store

__all__ = [
    'EventApiConfig',
    'EventGateway',
    'MemoryRecordStore',
    'RecordStore',
    'SQLiteRecordStore',
    'StoreConfig',
    'create_store',
]
