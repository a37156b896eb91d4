"""FastAPI 應用程序入口。

提供 Event CRUD API 端點，所有端點都需要管理權限。
應用程序由 create_app() 明確組裝：建立儲存後端、閘道與權限檢查，
並於啟動時向儲存層註冊 Event schema。
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from event_api import __version__
from event_api.auth import Authorizer, TokenAuthorizer
from event_api.config import EventApiConfig
from event_api.exceptions import AuthorizationError, EventApiError
from event_api.gateway import EventGateway
from event_api.store import RecordStore, create_store

logger = logging.getLogger(__name__)


# --- 回應模型 ---
class EventViewResponse(BaseModel):
    """Event 檢視。"""

    id: int
    title: str
    description: str
    event_start_time: str
    event_end_time: str
    category: list[str]


class CreateResponse(BaseModel):
    """建立結果。"""

    success: bool
    id: int


class SuccessResponse(BaseModel):
    """更新 / 刪除結果。"""

    success: bool


# --- 依賴注入 ---
def get_gateway(request: Request) -> EventGateway:
    """取得應用程序的 EventGateway。"""
    gateway: EventGateway = request.app.state.gateway
    return gateway


def require_admin(request: Request) -> None:
    """確認呼叫者具備管理權限，否則拋出 AuthorizationError。"""
    authorizer: Authorizer = request.app.state.authorizer
    config: EventApiConfig = request.app.state.config
    if not authorizer.can(request, config.required_capability):
        logger.warning(
            '拒絕未授權請求',
            extra={'path': request.url.path, 'capability': config.required_capability},
        )
        raise AuthorizationError()


async def _json_payload(request: Request) -> dict[str, Any]:
    """讀取 JSON 本體，無法解析或不是物件時視為空 payload。"""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    if not isinstance(body, dict):
        return {}
    return body


# --- API 路由 ---
router = APIRouter(prefix='/events', dependencies=[Depends(require_admin)])

GatewayDep = Annotated[EventGateway, Depends(get_gateway)]


@router.post('/create', response_model=CreateResponse)
async def create_event(request: Request, gateway: GatewayDep) -> dict[str, Any]:
    """建立 Event 端點。

    Returns:
        {'success': True, 'id': 新 Event id}
    """
    payload = await _json_payload(request)
    return await gateway.create(payload)


@router.post('/update', response_model=SuccessResponse)
async def update_event(request: Request, gateway: GatewayDep) -> dict[str, Any]:
    """部分更新 Event 端點。"""
    payload = await _json_payload(request)
    return await gateway.update(payload)


@router.post('/delete', response_model=SuccessResponse)
async def delete_event(request: Request, gateway: GatewayDep) -> dict[str, Any]:
    """永久刪除 Event 端點。"""
    payload = await _json_payload(request)
    return await gateway.delete(payload)


@router.get('/show', response_model=EventViewResponse)
async def show_event(
    gateway: GatewayDep,
    event_id: Annotated[str | None, Query(alias='id')] = None,
) -> dict[str, Any]:
    """取得單一 Event 端點。

    Args:
        event_id: Event id（query 參數 id）

    Returns:
        EventView
    """
    view = await gateway.get(event_id)
    return dict(view)


@router.get('/list', response_model=list[EventViewResponse])
async def list_events(
    gateway: GatewayDep,
    date: Annotated[str | None, Query()] = None,
) -> list[dict[str, Any]]:
    """列出 Event 端點。

    Args:
        date: 篩選字串，event_start_time 須包含此子字串

    Returns:
        EventView 列表
    """
    views = await gateway.list_events(date)
    return [dict(view) for view in views]


# --- 例外處理 ---
async def _handle_event_api_error(request: Request, exc: EventApiError) -> JSONResponse:
    """將 EventApiError 轉為錯誤回應。"""
    extra = {'path': request.url.path, 'code': exc.code, 'status': exc.status}
    if exc.status >= 500:
        logger.error(exc.message, extra=extra)
    else:
        logger.warning(exc.message, extra=extra)
    return JSONResponse(exc.to_dict(), status_code=exc.status)


# --- 應用程序工廠 ---
def create_app(
    config: EventApiConfig | None = None,
    *,
    store: RecordStore | None = None,
    authorizer: Authorizer | None = None,
) -> FastAPI:
    """建立 FastAPI 應用程序。

    Args:
        config: Event API 配置（可選，預設使用 EventApiConfig()）
        store: 紀錄儲存後端（可選，預設依配置建立）
        authorizer: 權限檢查（可選，預設使用 TokenAuthorizer）

    Returns:
        FastAPI 應用程序
    """
    load_dotenv()

    config = config or EventApiConfig()
    store = store if store is not None else create_store(config)
    gateway = EventGateway(store, config)
    authorizer = authorizer if authorizer is not None else TokenAuthorizer.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """應用程序生命週期管理。"""
        logger.info('應用程序啟動')
        await gateway.register_schema()

        yield

        await store.close()
        logger.info('應用程序關閉')

    app = FastAPI(title='Event API', version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.gateway = gateway
    app.state.authorizer = authorizer

    app.add_exception_handler(EventApiError, _handle_event_api_error)
    app.include_router(router)

    @app.get('/health')
    async def health() -> JSONResponse:
        """健康檢查端點。"""
        return JSONResponse({'status': 'healthy'})

    return app
