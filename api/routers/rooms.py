# api/routers/rooms.py
import logging

from fastapi import APIRouter, Depends, HTTPException

from api.auth import get_current_user_id
from api.dependencies import get_day_names, get_request_service
from api.schemas import RoomView, room_view
from app.core.exchange.errors import ERROR_MESSAGES, ExchangeError
from app.core.exchange.service import RequestService
from common.weekdays import DayNames

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/{room_id}", response_model=RoomView)
async def get_room(
    room_id: int,
    user_id: int = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    day_names: DayNames = Depends(get_day_names),
):
    """Members, slots and requests of a room the caller belongs to."""
    try:
        aggregate = await service.get_room(user_id, room_id)
    except ExchangeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload())
    except Exception as exc:
        logging.error("Error while loading room %s: %s", room_id, exc)
        raise HTTPException(status_code=500, detail={"msg": ERROR_MESSAGES["SERVER_ERROR"]})
    return room_view(aggregate, day_names)
