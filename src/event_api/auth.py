"""權限檢查模組。

所有端點都需要呼叫者具備管理權限。檢查邏輯以 Authorizer Protocol 注入，
預設實作以 bearer token 對應到一組權限。
"""

from __future__ import annotations

import hmac
import logging
from typing import Protocol, runtime_checkable

from fastapi import Request

from event_api.config import EventApiConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class Authorizer(Protocol):
    """權限判斷 Protocol。"""

    def can(self, request: Request, capability: str) -> bool:
        """判斷發出請求的呼叫者是否具備指定權限。

        Args:
            request: HTTP 請求
            capability: 權限名稱（例如 "manage_options"）

        Returns:
            具備權限時回傳 True
        """
        ...


def _bearer_token(request: Request) -> str | None:
    """從 Authorization header 取出 bearer token。"""
    header = request.headers.get('authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class TokenAuthorizer:
    """以 bearer token 判斷權限。

    Args:
        tokens: token 對應的權限集合
    """

    def __init__(self, tokens: dict[str, set[str]]) -> None:
        self._tokens = {token: set(caps) for token, caps in tokens.items()}

    @classmethod
    def from_config(cls, config: EventApiConfig) -> TokenAuthorizer:
        """由配置建立，每個管理者 token 皆授予 required_capability。"""
        tokens = {token: {config.required_capability} for token in config.get_admin_tokens()}
        if not tokens:
            logger.warning('未設定管理者 token，所有請求都會被拒絕')
        return cls(tokens)

    def can(self, request: Request, capability: str) -> bool:
        """判斷 bearer token 是否具備指定權限。"""
        presented = _bearer_token(request)
        if presented is None:
            return False

        # 逐一以常數時間比對，避免洩漏 token 前綴
        for token, capabilities in self._tokens.items():
            if hmac.compare_digest(token.encode(), presented.encode()):
                return capability in capabilities
        return False
