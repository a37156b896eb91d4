"""SQLite RecordStore 實作。

使用 Python 標準庫 sqlite3 持久化紀錄、metadata 與分類法 term，零外部依賴。
Server 重啟後資料自動保留。
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import cast

from event_api.exceptions import StoreError
from event_api.types import Record, RecordStatus, RecordType, Taxonomy, Term

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = 'events.db'

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS record_types (
        name TEXT PRIMARY KEY,
        label TEXT NOT NULL DEFAULT '',
        singular_label TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS taxonomies (
        name TEXT PRIMARY KEY,
        record_type TEXT NOT NULL,
        label TEXT NOT NULL DEFAULT '',
        singular_label TEXT NOT NULL DEFAULT '',
        hierarchical INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        status TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS record_meta (
        record_id INTEGER NOT NULL REFERENCES records(id) ON DELETE CASCADE,
        meta_key TEXT NOT NULL,
        meta_value TEXT NOT NULL,
        PRIMARY KEY (record_id, meta_key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS terms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        taxonomy TEXT NOT NULL,
        name TEXT NOT NULL,
        parent INTEGER REFERENCES terms(id),
        UNIQUE (taxonomy, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS term_relationships (
        record_id INTEGER NOT NULL REFERENCES records(id) ON DELETE CASCADE,
        term_id INTEGER NOT NULL REFERENCES terms(id),
        taxonomy TEXT NOT NULL,
        position INTEGER NOT NULL,
        PRIMARY KEY (record_id, term_id)
    )
    """,
)


def _row_to_record(row: sqlite3.Row) -> Record:
    return Record(
        id=row['id'],
        type=row['type'],
        title=row['title'],
        content=row['content'],
        status=cast(RecordStatus, row['status']),
    )


def _row_to_term(row: sqlite3.Row) -> Term:
    return Term(id=row['id'], taxonomy=row['taxonomy'], name=row['name'], parent=row['parent'])


class SQLiteRecordStore:
    """SQLite RecordStore。

    紀錄、metadata、term 與 term 關聯分別存在獨立資料表，
    永久刪除紀錄時以外鍵 cascade 一併清除 metadata 與 term 關聯。
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        """初始化 SQLite 後端。

        Args:
            db_path: 資料庫檔案路徑，預設為 events.db
        """
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute('PRAGMA foreign_keys = ON')
        self._in_transaction = False
        self._create_tables()
        logger.info('SQLite RecordStore 已初始化', extra={'db_path': db_path})

    def _create_tables(self) -> None:
        """建立資料表（若不存在）。"""
        for statement in _SCHEMA:
            self._conn.execute(statement)
        self._conn.commit()

    def _execute(self, sql: str, params: tuple[object, ...] = ()) -> sqlite3.Cursor:
        """執行 SQL，將 sqlite3 例外轉為 StoreError。"""
        try:
            return self._conn.execute(sql, params)
        except (sqlite3.Error, OverflowError) as e:
            raise StoreError(f'SQLite error: {e}') from e

    def _commit(self) -> None:
        """交易範圍外的寫入立即提交。"""
        if not self._in_transaction:
            self._conn.commit()

    # =========================================================================
    # Schema
    # =========================================================================

    async def register_type(self, record_type: RecordType) -> None:
        """註冊紀錄類型。"""
        self._execute(
            """
            INSERT INTO record_types (name, label, singular_label)
            VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                label = excluded.label,
                singular_label = excluded.singular_label
            """,
            (record_type.name, record_type.label, record_type.singular_label),
        )
        self._commit()
        logger.debug('紀錄類型已註冊（SQLite）', extra={'record_type': record_type.name})

    async def register_taxonomy(self, taxonomy: Taxonomy) -> None:
        """註冊分類法。"""
        self._execute(
            """
            INSERT INTO taxonomies (name, record_type, label, singular_label, hierarchical)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                record_type = excluded.record_type,
                label = excluded.label,
                singular_label = excluded.singular_label,
                hierarchical = excluded.hierarchical
            """,
            (
                taxonomy.name,
                taxonomy.record_type,
                taxonomy.label,
                taxonomy.singular_label,
                int(taxonomy.hierarchical),
            ),
        )
        self._commit()
        logger.debug('分類法已註冊（SQLite）', extra={'taxonomy': taxonomy.name})

    def _require_type(self, record_type: str) -> None:
        row = self._execute('SELECT 1 FROM record_types WHERE name = ?', (record_type,)).fetchone()
        if row is None:
            raise StoreError(f"Unknown record type '{record_type}'")

    def _require_taxonomy(self, taxonomy: str) -> bool:
        """確認分類法已註冊，回傳是否允許階層。"""
        row = self._execute(
            'SELECT hierarchical FROM taxonomies WHERE name = ?', (taxonomy,)
        ).fetchone()
        if row is None:
            raise StoreError(f"Unknown taxonomy '{taxonomy}'")
        return bool(row['hierarchical'])

    def _require_record(self, record_id: int) -> None:
        row = self._execute('SELECT 1 FROM records WHERE id = ?', (record_id,)).fetchone()
        if row is None:
            raise StoreError(f'Record {record_id} does not exist')

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
        """新增紀錄。AUTOINCREMENT 確保 id 不重複使用。"""
        self._require_type(record_type)
        cursor = self._execute(
            'INSERT INTO records (type, title, content, status) VALUES (?, ?, ?, ?)',
            (record_type, title, content, status),
        )
        self._commit()
        record_id = cursor.lastrowid
        if record_id is None:
            raise StoreError('Insert did not return a record id')
        return record_id

    async def update_record(
        self,
        record_id: int,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> None:
        """更新紀錄欄位。"""
        self._require_record(record_id)
        self._execute(
            """
            UPDATE records SET
                title = COALESCE(?, title),
                content = COALESCE(?, content),
                updated_at = datetime('now')
            WHERE id = ?
            """,
            (title, content, record_id),
        )
        self._commit()

    async def delete_record(self, record_id: int, force: bool = False) -> None:
        """刪除紀錄，force 為 False 時只移入 trash。"""
        self._require_record(record_id)
        if force:
            self._execute('DELETE FROM records WHERE id = ?', (record_id,))
        else:
            self._execute(
                "UPDATE records SET status = 'trash', updated_at = datetime('now') WHERE id = ?",
                (record_id,),
            )
        self._commit()

    async def get_record(self, record_id: int) -> Record | None:
        """依 id 讀取紀錄。"""
        row = self._execute(
            'SELECT id, type, title, content, status FROM records WHERE id = ?',
            (record_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    async def query_records(
        self,
        record_type: str,
        *,
        meta_key: str | None = None,
        meta_contains: str | None = None,
        status: RecordStatus = 'publish',
    ) -> list[Record]:
        """依類型、狀態與 metadata 子字串查詢紀錄。

        子字串比對使用 instr()，大小寫敏感且不受 LIKE 萬用字元影響。
        """
        if meta_key is not None and meta_contains is not None:
            cursor = self._execute(
                """
                SELECT r.id, r.type, r.title, r.content, r.status
                FROM records r
                JOIN record_meta m ON m.record_id = r.id AND m.meta_key = ?
                WHERE r.type = ? AND r.status = ? AND instr(m.meta_value, ?) > 0
                ORDER BY r.id
                """,
                (meta_key, record_type, status, meta_contains),
            )
        else:
            cursor = self._execute(
                """
                SELECT id, type, title, content, status
                FROM records
                WHERE type = ? AND status = ?
                ORDER BY id
                """,
                (record_type, status),
            )
        return [_row_to_record(row) for row in cursor.fetchall()]

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_meta(self, record_id: int, key: str) -> str:
        """讀取 metadata。"""
        row = self._execute(
            'SELECT meta_value FROM record_meta WHERE record_id = ? AND meta_key = ?',
            (record_id, key),
        ).fetchone()
        if row is None:
            return ''
        return cast(str, row['meta_value'])

    async def set_meta(self, record_id: int, key: str, value: str) -> None:
        """寫入 metadata（UPSERT）。"""
        self._require_record(record_id)
        self._execute(
            """
            INSERT INTO record_meta (record_id, meta_key, meta_value)
            VALUES (?, ?, ?)
            ON CONFLICT(record_id, meta_key) DO UPDATE SET
                meta_value = excluded.meta_value
            """,
            (record_id, key, value),
        )
        self._commit()

    # =========================================================================
    # 分類法
    # =========================================================================

    async def get_terms(self, record_id: int, taxonomy: str) -> list[str]:
        """讀取紀錄的 term 名稱，依指派順序排列。"""
        cursor = self._execute(
            """
            SELECT t.name
            FROM term_relationships tr
            JOIN terms t ON t.id = tr.term_id
            WHERE tr.record_id = ? AND tr.taxonomy = ?
            ORDER BY tr.position
            """,
            (record_id, taxonomy),
        )
        return [row['name'] for row in cursor.fetchall()]

    async def set_terms(self, record_id: int, taxonomy: str, names: list[str]) -> None:
        """取代紀錄的 term 指派，缺少的 term 自動建立。"""
        self._require_taxonomy(taxonomy)
        self._require_record(record_id)
        term_ids: list[int] = []
        for name in names:
            term = await self.create_term(taxonomy, name)
            if term['id'] not in term_ids:
                term_ids.append(term['id'])

        self._execute(
            'DELETE FROM term_relationships WHERE record_id = ? AND taxonomy = ?',
            (record_id, taxonomy),
        )
        for position, term_id in enumerate(term_ids):
            self._execute(
                """
                INSERT INTO term_relationships (record_id, term_id, taxonomy, position)
                VALUES (?, ?, ?, ?)
                """,
                (record_id, term_id, taxonomy, position),
            )
        self._commit()

    async def list_terms(self, taxonomy: str) -> list[Term]:
        """列出分類法下所有 term。"""
        cursor = self._execute(
            'SELECT id, taxonomy, name, parent FROM terms WHERE taxonomy = ? ORDER BY id',
            (taxonomy,),
        )
        return [_row_to_term(row) for row in cursor.fetchall()]

    async def create_term(self, taxonomy: str, name: str, parent: int | None = None) -> Term:
        """建立 term，同名已存在則回傳既有 term。"""
        hierarchical = self._require_taxonomy(taxonomy)
        row = self._execute(
            'SELECT id, taxonomy, name, parent FROM terms WHERE taxonomy = ? AND name = ?',
            (taxonomy, name),
        ).fetchone()
        if row is not None:
            return _row_to_term(row)

        if parent is not None:
            if not hierarchical:
                raise StoreError(f"Taxonomy '{taxonomy}' is not hierarchical")
            parent_row = self._execute(
                'SELECT 1 FROM terms WHERE id = ? AND taxonomy = ?', (parent, taxonomy)
            ).fetchone()
            if parent_row is None:
                raise StoreError(f'Parent term {parent} does not exist')

        cursor = self._execute(
            'INSERT INTO terms (taxonomy, name, parent) VALUES (?, ?, ?)',
            (taxonomy, name, parent),
        )
        self._commit()
        term_id = cursor.lastrowid
        if term_id is None:
            raise StoreError('Insert did not return a term id')
        logger.debug('Term 已建立（SQLite）', extra={'taxonomy': taxonomy, 'term': name})
        return Term(id=term_id, taxonomy=taxonomy, name=name, parent=parent)

    # =========================================================================
    # 生命週期
    # =========================================================================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """交易範圍：區塊結束時一次提交，例外時回復。"""
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            logger.debug('交易已回復（SQLite）')
            raise
        else:
            self._conn.commit()
        finally:
            self._in_transaction = False

    async def close(self) -> None:
        """關閉 SQLite 連線。"""
        self._conn.close()
        logger.info('SQLite RecordStore 已關閉')
