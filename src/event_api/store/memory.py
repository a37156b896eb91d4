"""記憶體 RecordStore 實作。

適用於單一 server、開發與測試場景，進程重啟後資料會遺失。
"""

from __future__ import annotations

import copy
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from event_api.exceptions import StoreError
from event_api.types import Record, RecordStatus, RecordType, Taxonomy, Term

logger = logging.getLogger(__name__)


@dataclass
class _State:
    """可整體快照的內部資料。"""

    records: dict[int, Record] = field(default_factory=lambda: {})
    meta: dict[int, dict[str, str]] = field(default_factory=lambda: {})
    terms: dict[int, Term] = field(default_factory=lambda: {})
    relationships: dict[int, dict[str, list[int]]] = field(default_factory=lambda: {})
    record_counter: int = 0
    term_counter: int = 0


class MemoryRecordStore:
    """記憶體 RecordStore。

    所有資料儲存於 dict 中。交易以深複製快照實作，
    區塊內發生例外時整體還原。
    """

    def __init__(self) -> None:
        self._types: dict[str, RecordType] = {}
        self._taxonomies: dict[str, Taxonomy] = {}
        self._state = _State()

    # =========================================================================
    # Schema
    # =========================================================================

    async def register_type(self, record_type: RecordType) -> None:
        """註冊紀錄類型。"""
        self._types[record_type.name] = record_type
        logger.debug('紀錄類型已註冊', extra={'record_type': record_type.name})

    async def register_taxonomy(self, taxonomy: Taxonomy) -> None:
        """註冊分類法。"""
        self._taxonomies[taxonomy.name] = taxonomy
        logger.debug('分類法已註冊', extra={'taxonomy': taxonomy.name})

    def _require_type(self, record_type: str) -> None:
        if record_type not in self._types:
            raise StoreError(f"Unknown record type '{record_type}'")

    def _require_taxonomy(self, taxonomy: str) -> Taxonomy:
        registered = self._taxonomies.get(taxonomy)
        if registered is None:
            raise StoreError(f"Unknown taxonomy '{taxonomy}'")
        return registered

    def _require_record(self, record_id: int) -> Record:
        record = self._state.records.get(record_id)
        if record is None:
            raise StoreError(f'Record {record_id} does not exist')
        return record

    # =========================================================================
    # 紀錄
    # =========================================================================

    async def create_record(
        self,
        record_type: str,
        title: str,
        content: str,
        status: RecordStatus = 'publish',
    ) -> int:
        """新增紀錄，指派遞增 id。"""
        self._require_type(record_type)
        self._state.record_counter += 1
        record_id = self._state.record_counter
        self._state.records[record_id] = Record(
            id=record_id,
            type=record_type,
            title=title,
            content=content,
            status=status,
        )
        return record_id

    async def update_record(
        self,
        record_id: int,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> None:
        """更新紀錄欄位。"""
        record = self._require_record(record_id)
        if title is not None:
            record['title'] = title
        if content is not None:
            record['content'] = content

    async def delete_record(self, record_id: int, force: bool = False) -> None:
        """刪除紀錄，force 為 False 時只移入 trash。"""
        record = self._require_record(record_id)
        if not force:
            record['status'] = 'trash'
            return

        del self._state.records[record_id]
        self._state.meta.pop(record_id, None)
        self._state.relationships.pop(record_id, None)

    async def get_record(self, record_id: int) -> Record | None:
        """讀取紀錄的複本。"""
        record = self._state.records.get(record_id)
        if record is None:
            return None
        return Record(**record)

    async def query_records(
        self,
        record_type: str,
        *,
        meta_key: str | None = None,
        meta_contains: str | None = None,
        status: RecordStatus = 'publish',
    ) -> list[Record]:
        """依類型、狀態與 metadata 子字串查詢紀錄。"""
        results: list[Record] = []
        for record_id in sorted(self._state.records):
            record = self._state.records[record_id]
            if record['type'] != record_type or record['status'] != status:
                continue
            if meta_key is not None and meta_contains is not None:
                value = self._state.meta.get(record_id, {}).get(meta_key)
                if value is None or meta_contains not in value:
                    continue
            results.append(Record(**record))
        return results

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_meta(self, record_id: int, key: str) -> str:
        """讀取 metadata。"""
        return self._state.meta.get(record_id, {}).get(key, '')

    async def set_meta(self, record_id: int, key: str, value: str) -> None:
        """寫入 metadata。"""
        self._require_record(record_id)
        self._state.meta.setdefault(record_id, {})[key] = value

    # =========================================================================
    # 分類法
    # =========================================================================

    def _find_term(self, taxonomy: str, name: str) -> Term | None:
        for term in self._state.terms.values():
            if term['taxonomy'] == taxonomy and term['name'] == name:
                return term
        return None

    async def get_terms(self, record_id: int, taxonomy: str) -> list[str]:
        """讀取紀錄的 term 名稱。"""
        term_ids = self._state.relationships.get(record_id, {}).get(taxonomy, [])
        return [self._state.terms[term_id]['name'] for term_id in term_ids]

    async def set_terms(self, record_id: int, taxonomy: str, names: list[str]) -> None:
        """取代紀錄的 term 指派，缺少的 term 自動建立。"""
        self._require_taxonomy(taxonomy)
        self._require_record(record_id)
        term_ids: list[int] = []
        for name in names:
            term = await self.create_term(taxonomy, name)
            if term['id'] not in term_ids:
                term_ids.append(term['id'])
        self._state.relationships.setdefault(record_id, {})[taxonomy] = term_ids

    async def list_terms(self, taxonomy: str) -> list[Term]:
        """列出分類法下所有 term。"""
        return [Term(**term) for term in self._state.terms.values() if term['taxonomy'] == taxonomy]

    async def create_term(self, taxonomy: str, name: str, parent: int | None = None) -> Term:
        """建立 term，同名已存在則回傳既有 term。"""
        registered = self._require_taxonomy(taxonomy)
        existing = self._find_term(taxonomy, name)
        if existing is not None:
            return Term(**existing)

        if parent is not None:
            if not registered.hierarchical:
                raise StoreError(f"Taxonomy '{taxonomy}' is not hierarchical")
            parent_term = self._state.terms.get(parent)
            if parent_term is None or parent_term['taxonomy'] != taxonomy:
                raise StoreError(f'Parent term {parent} does not exist')

        self._state.term_counter += 1
        term = Term(id=self._state.term_counter, taxonomy=taxonomy, name=name, parent=parent)
        self._state.terms[term['id']] = term
        logger.debug('Term 已建立', extra={'taxonomy': taxonomy, 'term': name})
        return Term(**term)

    # =========================================================================
    # 生命週期
    # =========================================================================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """以快照實作交易，例外時還原。"""
        snapshot = copy.deepcopy(self._state)
        try:
            yield
        except BaseException:
            self._state = snapshot
            logger.debug('交易已回復（記憶體）')
            raise

    async def close(self) -> None:
        """記憶體後端無需釋放資源。"""
