"""Session-scoped commands driving a WorkflowController.

Each session owns one controller (and therefore one FormState); commands
return the session snapshot so a thin client can re-render after every call.
Route handlers are plain ``def`` because controller calls block on the
gateway; they run on a thread pool and each controller serializes its own
commands.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from expense_desk.core.config import Settings
from expense_desk.core.logging import session_id_ctx
from expense_desk.services.gateway import ExpenseGateway
from expense_desk.services.session import SessionContext, bootstrap_session
from expense_desk.services.workflow import WorkflowController

logger = logging.getLogger("expense_desk.sessions")

router = APIRouter(prefix="/workflow/sessions", tags=["workflow"])

GatewayFactory = Callable[[Settings, SessionContext], ExpenseGateway]


def _close_gateway(gateway: Optional[ExpenseGateway]) -> None:
    close = getattr(gateway, "close", None)
    if callable(close):
        close()


@dataclass
class _Entry:
    controller: WorkflowController
    gateway: ExpenseGateway
    last_used: float


class SessionTable:
    """In-process table of live workflow sessions.

    Sessions untouched for ``idle_seconds`` are evicted (and their gateways
    closed) on the next ``add`` or ``get``. ``close_all`` runs at shutdown.
    """

    def __init__(
        self,
        idle_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_idle(self, now: float) -> None:
        expired = [
            sid for sid, entry in self._entries.items()
            if now - entry.last_used > self._idle_seconds
        ]
        for sid in expired:
            entry = self._entries.pop(sid)
            logger.info("evicting idle workflow session %s", sid)
            _close_gateway(entry.gateway)

    def add(self, controller: WorkflowController, gateway: ExpenseGateway) -> str:
        session_id = uuid.uuid4().hex
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            self._entries[session_id] = _Entry(controller, gateway, now)
        return session_id

    def get(self, session_id: str) -> Optional[WorkflowController]:
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            entry.last_used = now
            return entry.controller

    def remove(self, session_id: str) -> bool:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return False
        _close_gateway(entry.gateway)
        return True

    def close_all(self) -> None:
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            _close_gateway(entry.gateway)
        if entries:
            logger.info("closed %d workflow sessions", len(entries))


# Request models ---------------------------------------------------
class SessionCreateIn(BaseModel):
    token: Optional[str] = Field(
        None,
        min_length=1,
        description="Bearer token issued at login; defaults to the API_TOKEN setting",
    )


class CategoryIn(BaseModel):
    category_id: str


class FieldIn(BaseModel):
    key: str = Field(..., description='Core key ("amount") or "categorySpecific.<key>"')
    value: Any = None


# Dependencies -----------------------------------------------------
def get_table(request: Request) -> SessionTable:
    return request.app.state.sessions


async def get_controller(
    session_id: str, table: SessionTable = Depends(get_table)
) -> WorkflowController:
    controller = table.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="session not found")
    session_id_ctx.set(session_id)
    if not controller.authenticated:
        table.remove(session_id)
        raise HTTPException(status_code=401, detail="session expired")
    return controller


# Routes -----------------------------------------------------------
@router.post("", status_code=201, summary="Open a workflow session")
def create_session(payload: SessionCreateIn, request: Request, table: SessionTable = Depends(get_table)):
    settings: Settings = request.app.state.settings
    factory: GatewayFactory = request.app.state.gateway_factory
    session = SessionContext(token=payload.token or settings.api_token)
    gateway = factory(settings, session)
    try:
        user = bootstrap_session(gateway, session)
    except Exception:
        _close_gateway(gateway)
        raise
    controller = WorkflowController(
        gateway,
        session,
        page_size=settings.page_size,
        close_delay=settings.close_delay_seconds,
    )
    controller.start()
    session_id = table.add(controller, gateway)
    session_id_ctx.set(session_id)
    logger.info("workflow session opened")
    return {"session_id": session_id, "user": user, "session": controller.snapshot()}


@router.get("/{session_id}", summary="Current session state")
def get_session(controller: WorkflowController = Depends(get_controller)):
    return controller.snapshot()


@router.delete("/{session_id}", status_code=204, summary="End a workflow session")
def end_session(session_id: str, table: SessionTable = Depends(get_table)):
    if not table.remove(session_id):
        raise HTTPException(status_code=404, detail="session not found")
    return Response(status_code=204)


@router.post("/{session_id}/category", summary="Select a category")
def select_category(payload: CategoryIn, controller: WorkflowController = Depends(get_controller)):
    controller.select_category(payload.category_id)
    return controller.snapshot()


@router.post("/{session_id}/back", summary="Go back one level")
def back(controller: WorkflowController = Depends(get_controller)):
    controller.back()
    return controller.snapshot()


@router.post("/{session_id}/add", summary="Open an empty add form")
def add(controller: WorkflowController = Depends(get_controller)):
    controller.add()
    return controller.snapshot()


@router.post("/{session_id}/view/{record_id}", summary="Open a record read-only")
def view(record_id: str, controller: WorkflowController = Depends(get_controller)):
    controller.view(record_id)
    return controller.snapshot()


@router.post("/{session_id}/edit/{record_id}", summary="Open a record for editing")
def edit(record_id: str, controller: WorkflowController = Depends(get_controller)):
    controller.edit(record_id)
    return controller.snapshot()


@router.post("/{session_id}/close", summary="Close the open form")
def close(controller: WorkflowController = Depends(get_controller)):
    controller.close()
    return controller.snapshot()


@router.patch("/{session_id}/fields", summary="Change one form input")
def set_field(payload: FieldIn, controller: WorkflowController = Depends(get_controller)):
    controller.set_field(payload.key, payload.value)
    return controller.snapshot()


@router.post("/{session_id}/submit", summary="Submit the add/edit form")
def submit(controller: WorkflowController = Depends(get_controller)):
    record = controller.submit()
    return {
        "record": record.model_dump(by_alias=True, mode="json"),
        "session": controller.snapshot(),
    }


@router.post("/{session_id}/delete/confirm", summary="Confirm the pending delete")
def confirm_delete(controller: WorkflowController = Depends(get_controller)):
    controller.confirm_delete()
    return controller.snapshot()


@router.post("/{session_id}/delete/cancel", summary="Cancel the pending delete")
def cancel_delete(controller: WorkflowController = Depends(get_controller)):
    controller.cancel_delete()
    return controller.snapshot()


@router.post("/{session_id}/delete/{record_id}", summary="Ask to delete a record")
def request_delete(record_id: str, controller: WorkflowController = Depends(get_controller)):
    prompt = controller.request_delete(record_id)
    return {"prompt": prompt, "session": controller.snapshot()}


@router.get("/{session_id}/records", summary="One page of the category listing")
def records(
    page: int = Query(1, ge=1, description="1-based page number"),
    controller: WorkflowController = Depends(get_controller),
):
    result = controller.page(page)
    return {
        "items": [r.model_dump(by_alias=True, mode="json") for r in result.items],
        "page": result.page,
        "pageSize": result.page_size,
        "totalItems": result.total_items,
        "totalPages": result.total_pages,
    }


@router.get("/{session_id}/receipt/{record_id}", summary="Receipt snapshot for one record")
def receipt(record_id: str, controller: WorkflowController = Depends(get_controller)):
    return controller.receipt(record_id)


@router.get("/{session_id}/reports/labour", summary="Labour records grouped by employee")
def labour_report(
    start_date: Optional[date] = Query(None, description="Filter: start date inclusive"),
    end_date: Optional[date] = Query(None, description="Filter: end date inclusive"),
    controller: WorkflowController = Depends(get_controller),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")
    return controller.labour_report(start_date, end_date)
