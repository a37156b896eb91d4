"""Event API 統一配置模組。

提供儲存後端、紀錄類型與權限等設定，未明確指定的值從環境變數讀取。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

# 預設值
DEFAULT_DB_PATH = 'events.db'
DEFAULT_RECORD_TYPE = 'em_event'
DEFAULT_TAXONOMY = 'em_event_category'
DEFAULT_CAPABILITY = 'manage_options'
DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 8000

StoreBackend = Literal['memory', 'sqlite']


@dataclass
class StoreConfig:
    """紀錄儲存後端配置。

    Attributes:
        backend: 後端類型（memory 或 sqlite），未指定時讀取 EVENT_API_STORE
        db_path: SQLite 資料庫路徑，未指定時讀取 EVENT_API_DB_PATH
    """

    backend: StoreBackend | None = None
    db_path: str | None = None

    def get_backend(self) -> StoreBackend:
        """取得後端類型。

        Raises:
            ValueError: 環境變數指定了不支援的後端
        """
        if self.backend is not None:
            return self.backend
        value = os.environ.get('EVENT_API_STORE', 'sqlite').strip().lower()
        if value == 'memory':
            return 'memory'
        if value == 'sqlite':
            return 'sqlite'
        msg = f'不支援的儲存後端: {value}'
        raise ValueError(msg)

    def get_db_path(self) -> str:
        """取得 SQLite 資料庫路徑。"""
        if self.db_path is not None:
            return self.db_path
        return os.environ.get('EVENT_API_DB_PATH', DEFAULT_DB_PATH)


@dataclass
class EventApiConfig:
    """Event API 配置。

    Attributes:
        store: 儲存後端配置
        record_type: Event 紀錄類型名稱
        taxonomy: Event 分類法名稱
        required_capability: 所有端點要求的權限
        admin_tokens: 具管理權限的 bearer token（可選，未指定時從環境變數讀取）
        host: HTTP 伺服器綁定位址
        port: HTTP 伺服器埠號
        log_level: 日誌等級
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    record_type: str = DEFAULT_RECORD_TYPE
    taxonomy: str = DEFAULT_TAXONOMY
    required_capability: str = DEFAULT_CAPABILITY
    admin_tokens: list[str] | None = None
    host: str = field(default_factory=lambda: os.environ.get('EVENT_API_HOST', DEFAULT_HOST))
    port: int = field(
        default_factory=lambda: int(os.environ.get('EVENT_API_PORT', str(DEFAULT_PORT)))
    )
    log_level: str = field(default_factory=lambda: os.environ.get('LOG_LEVEL', 'INFO').upper())

    def get_admin_tokens(self) -> list[str]:
        """取得管理者 token，優先使用明確指定的值，否則讀取 EVENT_API_ADMIN_TOKENS。

        環境變數以逗號分隔多個 token，空白項目會被忽略。

        Returns:
            token 列表，若未設定則回傳空列表
        """
        if self.admin_tokens is not None:
            return list(self.admin_tokens)
        raw = os.environ.get('EVENT_API_ADMIN_TOKENS', '')
        return [token.strip() for token in raw.split(',') if token.strip()]
