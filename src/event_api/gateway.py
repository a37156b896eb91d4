"""Event Store Gateway。

將 Event 的建立、更新、刪除、查詢轉譯為 RecordStore 操作，
負責欄位驗證、輸入清理與回應組裝。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from event_api.config import EventApiConfig
from event_api.exceptions import (
    EventApiError,
    MissingIdError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from event_api.sanitize import (
    is_empty,
    sanitize_labels,
    sanitize_text_field,
    sanitize_textarea_field,
)
from event_api.store.base import RecordStore
from event_api.types import EventView, Record, RecordType, Taxonomy

logger = logging.getLogger(__name__)

# 驗證順序固定，錯誤訊息才可重現
REQUIRED_FIELDS = ('title', 'event_start_time', 'event_end_time', 'description')
META_KEYS = ('event_start_time', 'event_end_time')

# 儲存層 id 為 64 位元有號整數
_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1


def _clean(field: str, value: Any) -> str:
    """依欄位性質清理輸入值。description 保留換行。"""
    if field == 'description':
        return sanitize_textarea_field(value)
    return sanitize_text_field(value)


def _parse_id(value: Any) -> int | None:
    """將 id 轉為整數，無法轉換或超出 64 位元範圍時回傳 None。

    只接受整數本身或完整的整數字串，"12abc"、"1.0" 與布林值皆視為無效。
    """
    parsed: int | None = None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if value.is_integer() else None
    elif isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return None
    if parsed is None or not _MIN_ID <= parsed <= _MAX_ID:
        return None
    return parsed


class EventGateway:
    """Event 的 CRUD 閘道。

    Args:
        store: 紀錄儲存後端
        config: Event API 配置（可選，預設使用 EventApiConfig()）
    """

    def __init__(self, store: RecordStore, config: EventApiConfig | None = None) -> None:
        self._store = store
        self._config = config or EventApiConfig()

    @property
    def store(self) -> RecordStore:
        """目前使用的儲存後端。"""
        return self._store

    async def register_schema(self) -> None:
        """向儲存層註冊 Event 紀錄類型與分類法。"""
        await self._store.register_type(
            RecordType(name=self._config.record_type, label='Events', singular_label='Event')
        )
        await self._store.register_taxonomy(
            Taxonomy(
                name=self._config.taxonomy,
                record_type=self._config.record_type,
                label='Event Categories',
                singular_label='Event Category',
                hierarchical=True,
            )
        )
        logger.info(
            'Event schema 已註冊',
            extra={'record_type': self._config.record_type, 'taxonomy': self._config.taxonomy},
        )

    # =========================================================================
    # 驗證
    # =========================================================================

    def validate(self, payload: Mapping[str, Any]) -> None:
        """依固定順序檢查必填欄位，遇到第一個缺失欄位即拋出。

        清理後為空字串的值（例如只有 HTML 標籤）同樣視為缺失。

        Args:
            payload: 請求本體

        Raises:
            ValidationError: 必填欄位缺失
        """
        for field in REQUIRED_FIELDS:
            value = payload.get(field)
            if is_empty(value) or not _clean(field, value):
                raise ValidationError(field)

    async def _resolve(self, record_id: Any, *, code: str) -> Record:
        """將 id 解析為 Event 紀錄。

        Raises:
            NotFoundError: id 無效、不存在、已移入 trash 或不是 Event
        """
        parsed = _parse_id(record_id)
        record = await self._store.get_record(parsed) if parsed is not None else None
        if (
            record is None
            or record['type'] != self._config.record_type
            or record['status'] != 'publish'
        ):
            if code == 'invalid_id':
                raise NotFoundError('Invalid Event ID', code=code)
            raise NotFoundError(code=code)
        return record

    # =========================================================================
    # 寫入
    # =========================================================================

    async def create(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """建立 Event。

        Args:
            payload: 請求本體

        Returns:
            {'success': True, 'id': 新紀錄 id}

        Raises:
            ValidationError: 必填欄位缺失
            StoreError: 儲存層寫入失敗
        """
        self.validate(payload)
        labels = [] if is_empty(payload.get('category')) else sanitize_labels(payload['category'])

        try:
            async with self._store.transaction():
                record_id = await self._store.create_record(
                    self._config.record_type,
                    title=_clean('title', payload['title']),
                    content=_clean('description', payload['description']),
                    status='publish',
                )
                for key in META_KEYS:
                    await self._store.set_meta(record_id, key, _clean(key, payload[key]))
                if labels:
                    await self._store.set_terms(record_id, self._config.taxonomy, labels)
        except EventApiError:
            raise
        except Exception as e:
            raise StoreError(f'Failed to create event: {e}') from e

        logger.info('Event 已建立', extra={'event_id': record_id, 'categories': labels})
        return {'success': True, 'id': record_id}

    async def update(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """部分更新 Event。

        只套用存在且非空的欄位；category 會取代原有的分類指派。
        所有寫入在同一個交易內完成。

        Args:
            payload: 請求本體，須包含 id

        Returns:
            {'success': True}

        Raises:
            MissingIdError: 未帶 id
            NotFoundError: id 無法對應到 Event
        """
        if is_empty(payload.get('id')):
            raise MissingIdError()
        record = await self._resolve(payload['id'], code='invalid_id')
        record_id = record['id']

        changes: dict[str, str] = {}
        for field in ('title', 'description', *META_KEYS):
            value = payload.get(field)
            if is_empty(value):
                continue
            cleaned = _clean(field, value)
            if cleaned:
                changes[field] = cleaned
        labels = [] if is_empty(payload.get('category')) else sanitize_labels(payload['category'])

        async with self._store.transaction():
            if 'title' in changes or 'description' in changes:
                await self._store.update_record(
                    record_id,
                    title=changes.get('title'),
                    content=changes.get('description'),
                )
            for key in META_KEYS:
                if key in changes:
                    await self._store.set_meta(record_id, key, changes[key])
            if labels:
                await self._store.set_terms(record_id, self._config.taxonomy, labels)

        logger.info(
            'Event 已更新',
            extra={'event_id': record_id, 'fields': sorted(changes), 'categories': labels},
        )
        return {'success': True}

    async def delete(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """永久刪除 Event，連同 metadata 與分類關聯。

        Args:
            payload: 請求本體，須包含 id

        Returns:
            {'success': True}

        Raises:
            MissingIdError: 未帶 id
            NotFoundError: id 無法對應到 Event
        """
        if is_empty(payload.get('id')):
            raise MissingIdError()
        record = await self._resolve(payload['id'], code='invalid_id')

        await self._store.delete_record(record['id'], force=True)
        logger.info('Event 已刪除', extra={'event_id': record['id']})
        return {'success': True}

    # =========================================================================
    # 讀取
    # =========================================================================

    async def _to_view(self, record: Record) -> EventView:
        """組裝 EventView。"""
        record_id = record['id']
        return EventView(
            id=record_id,
            title=record['title'],
            description=record['content'],
            event_start_time=await self._store.get_meta(record_id, 'event_start_time'),
            event_end_time=await self._store.get_meta(record_id, 'event_end_time'),
            category=await self._store.get_terms(record_id, self._config.taxonomy),
        )

    async def get(self, record_id: Any) -> EventView:
        """讀取單一 Event。

        Args:
            record_id: Event id

        Returns:
            EventView

        Raises:
            NotFoundError: id 無法對應到 Event
        """
        record = await self._resolve(record_id, code='not_found')
        logger.debug('讀取 Event', extra={'event_id': record['id']})
        return await self._to_view(record)

    async def list_events(self, date: str | None = None) -> list[EventView]:
        """列出所有 Event。

        Args:
            date: 篩選字串，event_start_time 須包含此子字串（不解析日期）

        Returns:
            EventView 列表，依建立順序排列
        """
        needle = sanitize_text_field(date) if date else ''
        if needle:
            records = await self._store.query_records(
                self._config.record_type,
                meta_key='event_start_time',
                meta_contains=needle,
            )
        else:
            records = await self._store.query_records(self._config.record_type)

        views = [await self._to_view(record) for record in records]
        logger.debug('列出 Event', extra={'date': needle or None, 'count': len(views)})
        return views
