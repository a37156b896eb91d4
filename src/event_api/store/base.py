"""RecordStore 介面定義。

Event API 不自行管理持久化，而是透過此介面操作一個泛用的紀錄儲存：
紀錄 CRUD、鍵值 metadata，以及分類法 term 指派。
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from event_api.types import Record, RecordStatus, RecordType, Taxonomy, Term


@runtime_checkable
class RecordStore(Protocol):
    """紀錄儲存 Protocol。

    實作者負責紀錄、metadata 與 term 的持久化。
    操作未註冊的類型或分類法、或操作不存在的紀錄時，應拋出 StoreError。
    """

    async def register_type(self, record_type: RecordType) -> None:
        """註冊紀錄類型，重複註冊不應報錯。"""
        ...

    async def register_taxonomy(self, taxonomy: Taxonomy) -> None:
        """註冊分類法，重複註冊不應報錯。"""
        ...

    async def create_record(
        self,
        record_type: str,
        title: str,
        content: str,
        status: RecordStatus = 'publish',
    ) -> int:
        """新增紀錄。

        Args:
            record_type: 紀錄類型名稱
            title: 標題
            content: 內文
            status: 紀錄狀態

        Returns:
            儲存層指派的紀錄 id（不重複使用）
        """
        ...

    async def update_record(
        self,
        record_id: int,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> None:
        """更新紀錄欄位，None 表示不變更。"""
        ...

    async def delete_record(self, record_id: int, force: bool = False) -> None:
        """刪除紀錄。

        Args:
            record_id: 紀錄 id
            force: True 時永久刪除紀錄、metadata 與 term 關聯；
                False 時僅將狀態改為 trash
        """
        ...

    async def get_record(self, record_id: int) -> Record | None:
        """依 id 讀取紀錄，不存在時回傳 None。"""
        ...

    async def query_records(
        self,
        record_type: str,
        *,
        meta_key: str | None = None,
        meta_contains: str | None = None,
        status: RecordStatus = 'publish',
    ) -> list[Record]:
        """查詢指定類型的紀錄。

        Args:
            record_type: 紀錄類型名稱
            meta_key: 篩選用的 metadata key
            meta_contains: metadata 值須包含此子字串（需與 meta_key 一起使用）
            status: 紀錄狀態

        Returns:
            紀錄列表，依 id 遞增排序
        """
        ...

    async def get_meta(self, record_id: int, key: str) -> str:
        """讀取 metadata，不存在時回傳空字串。"""
        ...

    async def set_meta(self, record_id: int, key: str, value: str) -> None:
        """寫入 metadata，已存在則覆寫。"""
        ...

    async def get_terms(self, record_id: int, taxonomy: str) -> list[str]:
        """讀取紀錄在指定分類法下的 term 名稱。"""
        ...

    async def set_terms(self, record_id: int, taxonomy: str, names: list[str]) -> None:
        """以 names 取代紀錄在指定分類法下的 term 指派。

        不存在的 term 會在分類法根層自動建立。
        """
        ...

    async def list_terms(self, taxonomy: str) -> list[Term]:
        """列出分類法下所有 term。"""
        ...

    async def create_term(self, taxonomy: str, name: str, parent: int | None = None) -> Term:
        """在分類法下建立 term，同名 term 已存在時直接回傳。"""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """交易範圍，區塊內拋出例外時回復所有寫入。"""
        ...

    async def close(self) -> None:
        """釋放資源。"""
        ...
