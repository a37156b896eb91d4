"""全域測試設定。"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from event_api.gateway import EventGateway
from event_api.store import MemoryRecordStore, RecordStore, SQLiteRecordStore
from event_api.types import RecordType, Taxonomy


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """清除會影響配置的環境變數，避免本機 .env 干擾測試。"""
    for name in (
        'EVENT_API_STORE',
        'EVENT_API_DB_PATH',
        'EVENT_API_ADMIN_TOKENS',
        'EVENT_API_HOST',
        'EVENT_API_PORT',
        'LOG_LEVEL',
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(params=['memory', 'sqlite'])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncIterator[RecordStore]:
    """依參數建立記憶體或 SQLite 後端，已註冊 Event 類型與分類法。"""
    backend: RecordStore
    if request.param == 'memory':
        backend = MemoryRecordStore()
    else:
        backend = SQLiteRecordStore(db_path=str(tmp_path / 'store.db'))

    await backend.register_type(RecordType(name='em_event'))
    await backend.register_type(RecordType(name='page'))
    await backend.register_taxonomy(Taxonomy(name='em_event_category', record_type='em_event'))

    yield backend

    await backend.close()


@pytest.fixture
async def gateway(store: RecordStore) -> EventGateway:
    """建立 EventGateway（記憶體與 SQLite 各跑一次）。"""
    gw = EventGateway(store)
    await gw.register_schema()
    return gw

