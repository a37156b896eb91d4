"""Event API 例外模組。

每個例外對應一個 HTTP 狀態碼與機器可讀的錯誤代碼，由 FastAPI 例外處理器
直接轉成回應本體。
"""

from __future__ import annotations

from typing import Any


class EventApiError(Exception):
    """Event API 基礎例外。

    Attributes:
        code: 機器可讀的錯誤代碼
        message: 人類可讀的錯誤訊息
        status: HTTP 狀態碼
    """

    code = 'event_api_error'
    status = 500
    default_message = 'Internal error'

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """轉成回應本體。"""
        return {'code': self.code, 'message': self.message, 'data': {'status': self.status}}


class ValidationError(EventApiError):
    """必填欄位缺失。"""

    code = 'missing_field'
    status = 400

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f'Missing field: {field}')


class MissingIdError(EventApiError):
    """請求本體未帶 id。"""

    code = 'missing_id'
    status = 400
    default_message = 'Missing event ID'


class NotFoundError(EventApiError):
    """id 無法對應到 Event。

    update / delete 使用 invalid_id，show 使用 not_found。
    """

    code = 'not_found'
    status = 404
    default_message = 'Event not found'


class StoreError(EventApiError):
    """儲存層操作失敗。"""

    code = 'store_error'
    status = 500
    default_message = 'Storage operation failed'


class AuthorizationError(EventApiError):
    """呼叫者缺少所需權限。"""

    code = 'rest_forbidden'
    status = 403
    default_message = 'Sorry, you are not allowed to do that.'
