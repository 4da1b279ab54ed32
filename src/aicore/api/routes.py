from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from ..client import AIClient, HostClient
from ..config import load_settings, save_settings
from ..errors import AICoreError, NotFoundError, ValidationError
from ..llm import PROVIDERS, ChatMessage, ModelCatalog
from ..storage import LogFilters, LogPage, StorageBackend, Thread, ThreadSummary
from .dependencies import (
    get_client_options,
    get_host_client,
    get_model_catalog,
    get_storage,
    require_admin,
)
from .schemas import (
    DeleteResponse,
    ModelsResponse,
    SavedResponse,
    SendRequest,
    SendResponse,
    SettingsResponse,
    SettingsUpdate,
    StatsResponse,
    ThreadCreateRequest,
    ThreadCreateResponse,
    ThreadSendRequest,
    ThreadSendResponse,
)

logger = logging.getLogger(__name__)

ENGINE_HEADER = "X-AICore-Engine"

router = APIRouter(prefix="/api", tags=["ai"], dependencies=[Depends(require_admin)])


@router.post("/send", response_model=SendResponse)
async def send(
    payload: SendRequest,
    response: Response,
    storage: StorageBackend = Depends(get_storage),
    host_client: Optional[HostClient] = Depends(get_host_client),
    client_options: dict[str, Any] = Depends(get_client_options),
) -> SendResponse:
    if not payload.message and not payload.chat:
        raise ValidationError("Provide message or chat")

    settings = await load_settings(storage)
    async with AIClient(
        storage,
        host_client=host_client,
        model=payload.model,
        system_message=payload.system_message,
        settings=settings,
        **client_options,
    ) as ai:
        response.headers[ENGINE_HEADER] = ai.engine_label
        if payload.message:
            if payload.chat:
                ai.set_chat(payload.chat)
            reply = await ai.send(payload.message)
            chat = ai.chat
        else:
            reply = await ai.send(payload.chat)
            chat = [*payload.chat, ChatMessage(role="assistant", content=reply)]

    return SendResponse(response=reply, chat=chat)


@router.get("/threads", response_model=list[ThreadSummary])
async def list_threads(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    storage: StorageBackend = Depends(get_storage),
) -> list[ThreadSummary]:
    return await storage.list_threads(limit, offset)


@router.post("/threads", response_model=ThreadCreateResponse)
async def create_thread(
    payload: ThreadCreateRequest,
    storage: StorageBackend = Depends(get_storage),
) -> ThreadCreateResponse:
    settings = await load_settings(storage)
    thread_id = await storage.create_thread(
        title=payload.title,
        model=payload.model or settings.default_model,
        system_message=payload.system_message,
    )
    return ThreadCreateResponse(thread_id=thread_id)


@router.get("/threads/{thread_id}", response_model=Thread)
async def get_thread(
    thread_id: int,
    storage: StorageBackend = Depends(get_storage),
) -> Thread:
    thread = await storage.get_thread(thread_id)
    if thread is None:
        raise NotFoundError(f"Thread {thread_id} not found")
    return thread


@router.delete("/threads/{thread_id}", response_model=DeleteResponse)
async def delete_thread(
    thread_id: int,
    storage: StorageBackend = Depends(get_storage),
) -> DeleteResponse:
    if not await storage.delete_thread(thread_id):
        raise NotFoundError(f"Thread {thread_id} not found")
    return DeleteResponse(deleted=True)


@router.post("/threads/{thread_id}/send", response_model=ThreadSendResponse)
async def send_to_thread(
    thread_id: int,
    payload: ThreadSendRequest,
    response: Response,
    storage: StorageBackend = Depends(get_storage),
    host_client: Optional[HostClient] = Depends(get_host_client),
    client_options: dict[str, Any] = Depends(get_client_options),
) -> ThreadSendResponse:
    settings = await load_settings(storage)
    async with AIClient(
        storage,
        host_client=host_client,
        model=payload.model,
        settings=settings,
        **client_options,
    ) as ai:
        await ai.load_thread(thread_id)
        response.headers[ENGINE_HEADER] = ai.engine_label
        reply = await ai.send(payload.message)
        chat = ai.chat

    return ThreadSendResponse(response=reply, thread_id=thread_id, chat=chat)


@router.get("/logs", response_model=LogPage)
async def list_logs(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=500),
    model: Optional[str] = Query(default=None),
    engine: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None, description="Inclusive, YYYY-MM-DD."),
    date_to: Optional[date] = Query(default=None, description="Inclusive, YYYY-MM-DD."),
    storage: StorageBackend = Depends(get_storage),
) -> LogPage:
    filters = LogFilters(
        model=model or None,
        engine=engine or None,
        status=status or None,
        date_from=date_from,
        date_to=date_to,
    )
    return await storage.list_logs(filters, limit=per_page, offset=(page - 1) * per_page)


@router.get("/logs/stats", response_model=StatsResponse)
async def log_stats(storage: StorageBackend = Depends(get_storage)) -> StatsResponse:
    return StatsResponse(
        overview=await storage.log_stats(),
        by_model=await storage.log_stats_by_model(),
    )


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(storage: StorageBackend = Depends(get_storage)) -> SettingsResponse:
    settings = await load_settings(storage)
    return SettingsResponse(**settings.model_dump())


@router.post("/settings", response_model=SavedResponse)
async def update_settings(
    payload: SettingsUpdate,
    storage: StorageBackend = Depends(get_storage),
) -> SavedResponse:
    await save_settings(storage, **payload.model_dump(exclude_none=True))
    return SavedResponse(saved=True)


@router.get("/models", response_model=ModelsResponse)
async def list_models(
    refresh: bool = Query(default=False, description="Bypass the catalog cache."),
    storage: StorageBackend = Depends(get_storage),
    catalog: ModelCatalog = Depends(get_model_catalog),
    client_options: dict[str, Any] = Depends(get_client_options),
) -> ModelsResponse:
    settings = await load_settings(storage)
    result: dict[str, list] = {}
    for provider_cls in PROVIDERS:
        api_key = settings.key_for(provider_cls.default_model)
        if not api_key:
            result[provider_cls.engine] = []
            continue
        try:
            result[provider_cls.engine] = await provider_cls.list_models(
                api_key, refresh, catalog=catalog, **client_options
            )
        except AICoreError as e:
            logger.warning("Could not list %s models: %s", provider_cls.display_name, e.message)
            result[provider_cls.engine] = []
    return ModelsResponse(**result)
