# api/routers/requests.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from api.auth import get_current_user_id
from api.dependencies import get_day_names, get_request_service
from api.schemas import (
    ChainConfirmBody,
    CreateRequestBody,
    RequestView,
    RespondBody,
    request_view,
)
from app.core.exchange.errors import ERROR_MESSAGES, ExchangeError
from app.core.exchange.service import RequestService
from common.weekdays import DayNames

router = APIRouter(tags=["requests"])


def _server_error(action: str, exc: Exception) -> HTTPException:
    logging.error("Error while %s: %s", action, exc)
    return HTTPException(status_code=500, detail={"msg": ERROR_MESSAGES["SERVER_ERROR"]})


@router.post("/requests", response_model=RequestView, status_code=201)
async def create_request(
    body: CreateRequestBody,
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    """Create a slot swap, time request, time change or slot release."""
    try:
        request = await service.create_request(user_id, body.room_id, body.to_new_request(day_names))
        return request_view(request, day_names, room_id=body.room_id)
    except ExchangeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload())
    except Exception as exc:
        raise _server_error("creating a request", exc)


@router.post("/requests/{request_id}/chain-confirm", response_model=RequestView)
async def confirm_chain(
    request_id: str,
    body: ChainConfirmBody,
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    try:
        request = await service.confirm_chain(user_id, request_id, body.action)
        return request_view(request, day_names)
    except ExchangeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload())
    except Exception as exc:
        raise _server_error("confirming a chain", exc)


@router.post("/requests/{request_id}/{action}", response_model=RequestView)
async def handle_request(
    request_id: str,
    action: str,
    body: Optional[RespondBody] = None,
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    """Approve or reject a request addressed to the caller (or any request, for the owner)."""
    try:
        request = await service.handle_request(
            user_id, request_id, action, body.message if body else None
        )
        return request_view(request, day_names)
    except ExchangeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload())
    except Exception as exc:
        raise _server_error("handling a request", exc)


@router.delete("/requests/{request_id}", response_model=RequestView)
async def cancel_request(
    request_id: str,
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    try:
        request = await service.cancel_request(user_id, request_id)
        return request_view(request, day_names)
    except ExchangeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload())
    except Exception as exc:
        raise _server_error("cancelling a request", exc)


@router.get("/sent-requests", response_model=List[RequestView])
async def sent_requests(
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    try:
        entries = await service.sent_requests(user_id)
    except Exception as exc:
        raise _server_error("listing sent requests", exc)
    return [
        request_view(entry.request, day_names, room_id=entry.room_id, room_name=entry.room_name)
        for entry in entries
    ]


@router.get("/received-requests", response_model=List[RequestView])
async def received_requests(
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    try:
        entries = await service.received_requests(user_id)
    except Exception as exc:
        raise _server_error("listing received requests", exc)
    return [
        request_view(entry.request, day_names, room_id=entry.room_id, room_name=entry.room_name)
        for entry in entries
    ]
