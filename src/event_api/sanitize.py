"""輸入文字清理。

所有寫入儲存層的文字欄位都先經過這裡：移除 HTML 標籤、
收斂空白，並視欄位性質決定是否保留換行。
"""

from __future__ import annotations

import re
from typing import Any

_TAG_RE = re.compile(r'<[^>]*>')
_SPACE_RE = re.compile(r'[ \t\f\v]+')
_WHITESPACE_RE = re.compile(r'\s+')
# 未閉合的 "<" 後接字母視為殘缺標籤
_OPEN_TAG_RE = re.compile(r'<[a-zA-Z/!][^<]*$')


def _to_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ''
    if isinstance(value, (list, dict)):
        return ''
    return str(value)


def _strip_tags(text: str) -> str:
    text = _TAG_RE.sub('', text)
    return _OPEN_TAG_RE.sub('', text)


def sanitize_text_field(value: Any) -> str:
    """清理單行文字欄位。

    移除 HTML 標籤，換行與 tab 轉為空白，連續空白收斂為一個並去頭尾。

    Args:
        value: 原始值（非字串會先轉成文字）

    Returns:
        清理後的字串
    """
    text = _strip_tags(_to_text(value))
    return _WHITESPACE_RE.sub(' ', text).strip()


def sanitize_textarea_field(value: Any) -> str:
    """清理多行文字欄位，保留換行。

    Args:
        value: 原始值

    Returns:
        清理後的字串
    """
    text = _strip_tags(_to_text(value)).replace('\r\n', '\n').replace('\r', '\n')
    lines = [_SPACE_RE.sub(' ', line).rstrip() for line in text.split('\n')]
    return '\n'.join(lines).strip()


def sanitize_labels(value: Any) -> list[str]:
    """將 category 欄位正規化為標籤列表。

    接受單一字串或字串列表，清理後去除空值與重複，保留原順序。

    Args:
        value: 原始 category 值

    Returns:
        標籤列表
    """
    items = value if isinstance(value, (list, tuple)) else [value]
    labels: list[str] = []
    for item in items:
        label = sanitize_text_field(item)
        if label and label not in labels:
            labels.append(label)
    return labels


def is_empty(value: Any) -> bool:
    """判斷欄位值是否視為空值。

    None、False、空字串或純空白字串、字串 "0"、空列表與空 dict 視為空值；0 亦為空值。
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip() or value == '0'
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, (int, float)):
        return value == 0
    return False
