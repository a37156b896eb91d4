"""型別定義模組。

定義紀錄儲存層與 Event API 共用的資料結構。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypedDict

RecordStatus = Literal['publish', 'trash']
"""紀錄狀態：publish 為公開可查詢，trash 為非強制刪除後的回收狀態。"""


# --- Schema ---


@dataclass(frozen=True)
class RecordType:
    """自訂紀錄類型。

    Attributes:
        name: 類型識別名稱（例如 "em_event"）
        label: 顯示名稱
        singular_label: 單數顯示名稱
    """

    name: str
    label: str = ''
    singular_label: str = ''


@dataclass(frozen=True)
class Taxonomy:
    """分類法定義。

    Attributes:
        name: 分類法識別名稱（例如 "em_event_category"）
        record_type: 套用的紀錄類型名稱
        label: 顯示名稱
        singular_label: 單數顯示名稱
        hierarchical: 是否允許父子階層
    """

    name: str
    record_type: str
    label: str = ''
    singular_label: str = ''
    hierarchical: bool = True


# --- Store ---


class Record(TypedDict):
    """儲存層紀錄。"""

    id: int
    type: str
    title: str
    content: str
    status: RecordStatus


class Term(TypedDict):
    """分類法中的單一 term。

    parent 為 None 表示位於分類法根層。
    """

    id: int
    taxonomy: str
    name: str
    parent: int | None


# --- API ---


class EventView(TypedDict):
    """Event 的反正規化檢視，供 show / list 回傳。"""

    id: int
    title: str
    description: str
    event_start_time: str
    event_end_time: str
    category: list[str]
